"""Shared FastAPI dependencies."""
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from clearance.database import get_db
from clearance.services.identity import Caller
from clearance.services.security import authenticate

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_caller(
    db: Session = Depends(get_db),
    token: Optional[str] = Depends(oauth2_scheme),
) -> Caller:
    """Resolve the bearer token into the caller identity passed to services."""
    return authenticate(db, token)
