"""User registration and profile lookup."""
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clearance.errors import ConflictError, InvalidArgumentError, NotFoundError
from clearance.models.user import User, UserRole
from clearance.schemas.user import UserRegister
from clearance.services import department_service
from clearance.services.security import create_access_token, get_password_hash

logger = logging.getLogger(__name__)


def register_user(db: Session, payload: UserRegister) -> tuple[User, str]:
    """Create a user and issue their first access token.

    Staff must name an existing department; any department given for other
    roles is ignored so that only staff ever carry one.
    """
    if db.query(User).filter(User.email == payload.email).first():
        raise ConflictError("User already exists with this email")

    department_id = None
    if payload.role == UserRole.staff:
        if not payload.department_name:
            raise InvalidArgumentError("Department name is required for staff role")
        department = department_service.find_by_name(db, payload.department_name)
        if not department:
            raise InvalidArgumentError(
                f"Department '{payload.department_name}' not found. "
                "Staff cannot be registered without a valid department."
            )
        department_id = department.department_id

    user = User(
        name=payload.name,
        email=payload.email,
        password_hash=get_password_hash(payload.password),
        role=payload.role,
        department_id=department_id,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("User already exists with this email")
    db.refresh(user)
    logger.info("Registered %s user %s (%s)", user.role.value, user.user_id, user.email)
    return user, create_access_token(user)


def get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user
