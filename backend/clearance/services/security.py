"""Password hashing, access tokens and the identity resolver."""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from clearance.config import settings
from clearance.errors import UnauthorizedError
from clearance.models.user import User
from clearance.services.identity import Caller, caller_from_user

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Issue a signed access token carrying the user's id, role and department."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    expire = datetime.now(timezone.utc) + expires_delta

    to_encode = {
        "sub": user.user_id,
        "role": user.role.value,
        "department_id": user.department_id,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def authenticate(db: Session, token: Optional[str]) -> Caller:
    """Resolve a bearer token into a caller identity.

    The user is reloaded so that role or department changes apply to tokens
    issued before the change.
    """
    if not token:
        raise UnauthorizedError("Not authorized, no token provided")

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise UnauthorizedError("Token has expired")
    except JWTError:
        raise UnauthorizedError("Token is not valid")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Token is not valid")

    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise UnauthorizedError("Not authorized, user not found")
    return caller_from_user(user)


def login(db: Session, email: str, password: str) -> tuple[User, str]:
    """Check credentials and return the user with a fresh token."""
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if not user or not verify_password(password, user.password_hash):
        logger.warning("Failed login attempt for %s", email)
        raise UnauthorizedError("Invalid credentials")
    logger.info("User %s logged in", user.user_id)
    return user, create_access_token(user)
