"""ClearanceRequest aggregate and its per-department ApprovalEntry rows."""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey, Index, Enum as SAEnum, text
from sqlalchemy.orm import relationship

from clearance.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class EntryStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class OverallStatus(str, enum.Enum):
    pending = "pending"
    in_progress = "in-progress"
    approved = "approved"
    rejected = "rejected"


ACTIVE_STATUSES = frozenset({OverallStatus.pending, OverallStatus.in_progress})
TERMINAL_STATUSES = frozenset({OverallStatus.approved, OverallStatus.rejected})


class ClearanceRequest(Base):
    __tablename__ = "clearance_requests"

    request_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    student_id = Column(String(36), ForeignKey("users.user_id"), nullable=False, index=True)
    overall_status = Column(
        SAEnum(OverallStatus, name="overall_status", values_callable=_enum_values),
        nullable=False,
        default=OverallStatus.pending,
        index=True,
    )
    final_approval_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    student = relationship("User", foreign_keys=[student_id])
    entries = relationship(
        "ApprovalEntry",
        back_populates="request",
        order_by="ApprovalEntry.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        # At most one active request per student
        Index(
            "uq_clearance_requests_active_student",
            "student_id",
            unique=True,
            sqlite_where=text("overall_status IN ('pending', 'in-progress')"),
            postgresql_where=text("overall_status IN ('pending', 'in-progress')"),
        ),
    )
    # UPDATEs are issued as ... WHERE version = <loaded version>
    __mapper_args__ = {"version_id_col": version}

    @property
    def is_terminal(self) -> bool:
        return self.overall_status in TERMINAL_STATUSES

    def entry_for(self, department_id: str) -> "ApprovalEntry | None":
        for entry in self.entries:
            if entry.department_id == department_id:
                return entry
        return None


class ApprovalEntry(Base):
    __tablename__ = "approval_entries"

    request_id = Column(String(36), ForeignKey("clearance_requests.request_id"), primary_key=True)
    department_id = Column(String(36), ForeignKey("departments.department_id"), primary_key=True, index=True)
    position = Column(Integer, nullable=False)
    status = Column(SAEnum(EntryStatus, name="entry_status"), nullable=False, default=EntryStatus.pending)
    comment = Column(Text, nullable=False, default="")
    approved_by_id = Column(String(36), ForeignKey("users.user_id"), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)

    request = relationship("ClearanceRequest", back_populates="entries")
    department = relationship("Department", lazy="joined")
    approved_by = relationship("User", foreign_keys=[approved_by_id], lazy="joined")
