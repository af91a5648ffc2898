"""Department registry — the set of approving departments."""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clearance.errors import ConflictError, ForbiddenError, InvalidArgumentError
from clearance.models.department import Department
from clearance.services.identity import Admin, Caller

logger = logging.getLogger(__name__)


def list_departments(db: Session) -> list[Department]:
    """All departments, alphabetical."""
    return db.query(Department).order_by(Department.name).all()


def find_by_name(db: Session, name: str) -> Optional[Department]:
    return db.query(Department).filter(Department.name == name.strip()).first()


def create_department(db: Session, caller: Caller, name: str) -> Department:
    """Register a new department. Admin only; names are unique."""
    if not isinstance(caller, Admin):
        raise ForbiddenError("Only administrators may create departments")

    name = (name or "").strip()
    if not name:
        raise InvalidArgumentError("Department name is required")
    if find_by_name(db, name):
        raise ConflictError(f"Department '{name}' already exists")

    department = Department(name=name, created_by=caller.user_id)
    db.add(department)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race against a concurrent create with the same name
        db.rollback()
        raise ConflictError(f"Department '{name}' already exists")
    db.refresh(department)
    logger.info("Created department '%s' (%s) by admin %s", name, department.department_id, caller.user_id)
    return department
