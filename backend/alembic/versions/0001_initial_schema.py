"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates all tables for the No-Dues Clearance service:
users, departments, clearance_requests, approval_entries.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_WHERE = sa.text("overall_status IN ('pending', 'in-progress')")


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.Enum("student", "staff", "admin", name="userrole"), nullable=False),
        sa.Column("department_id", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_users_name", "users", ["name"])
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_department_id", "users", ["department_id"])

    # --- departments ---
    op.create_table(
        "departments",
        sa.Column("department_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(150), nullable=False, unique=True),
        sa.Column("created_by", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    with op.batch_alter_table("users") as batch:
        batch.create_foreign_key(
            "fk_users_department_id", "departments", ["department_id"], ["department_id"]
        )

    # --- clearance_requests ---
    op.create_table(
        "clearance_requests",
        sa.Column("request_id", sa.String(36), primary_key=True),
        sa.Column("student_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=False),
        sa.Column(
            "overall_status",
            sa.Enum("pending", "in-progress", "approved", "rejected", name="overall_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("final_approval_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_clearance_requests_student_id", "clearance_requests", ["student_id"])
    op.create_index("ix_clearance_requests_overall_status", "clearance_requests", ["overall_status"])
    op.create_index(
        "uq_clearance_requests_active_student",
        "clearance_requests",
        ["student_id"],
        unique=True,
        sqlite_where=ACTIVE_WHERE,
        postgresql_where=ACTIVE_WHERE,
    )

    # --- approval_entries ---
    op.create_table(
        "approval_entries",
        sa.Column("request_id", sa.String(36), sa.ForeignKey("clearance_requests.request_id"), primary_key=True),
        sa.Column("department_id", sa.String(36), sa.ForeignKey("departments.department_id"), primary_key=True),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "approved", "rejected", name="entry_status"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("comment", sa.Text, nullable=False, server_default=""),
        sa.Column("approved_by_id", sa.String(36), sa.ForeignKey("users.user_id"), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_approval_entries_department_id", "approval_entries", ["department_id"])


def downgrade() -> None:
    op.drop_table("approval_entries")
    op.drop_index("uq_clearance_requests_active_student", table_name="clearance_requests")
    op.drop_table("clearance_requests")
    with op.batch_alter_table("users") as batch:
        batch.drop_constraint("fk_users_department_id", type_="foreignkey")
    op.drop_table("departments")
    op.drop_table("users")
