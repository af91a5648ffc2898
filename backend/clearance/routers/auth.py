"""Registration, login and current-user routes."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from clearance.database import get_db
from clearance.deps import get_caller
from clearance.schemas.user import TokenOut, UserLogin, UserOut, UserRegister
from clearance.services import security, user_service
from clearance.services.identity import Caller

router = APIRouter()


@router.post("/register", response_model=TokenOut, status_code=status.HTTP_201_CREATED)
def register(payload: UserRegister, db: Session = Depends(get_db)):
    """Register a student, staff member or admin and return an access token."""
    user, token = user_service.register_user(db, payload)
    return TokenOut(access_token=token, user=UserOut.model_validate(user))


@router.post("/login", response_model=TokenOut)
def login(payload: UserLogin, db: Session = Depends(get_db)):
    """Exchange e-mail and password for an access token."""
    user, token = security.login(db, payload.email, payload.password)
    return TokenOut(access_token=token, user=UserOut.model_validate(user))


@router.get("/me", response_model=UserOut)
def me(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    """Profile of the authenticated caller."""
    return user_service.get_user(db, caller.user_id)
