"""Pydantic schemas for Users and authentication."""
from __future__ import annotations
import re
from typing import Optional
from pydantic import BaseModel, EmailStr, field_validator

from clearance.models.user import UserRole
from clearance.schemas.common import UTCDateTime


class UserRegister(BaseModel):
    name: str
    email: EmailStr
    password: str
    role: UserRole
    department_name: Optional[str] = None  # required for staff

    @field_validator("name")
    @classmethod
    def _name_length(cls, v: str) -> str:
        v = v.strip()
        if not 2 <= len(v) <= 50:
            raise ValueError("Name must be between 2 and 50 characters")
        return v

    @field_validator("email", mode="after")
    @classmethod
    def _email_lower(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def _password_strength(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters long")
        if not (re.search(r"[a-z]", v) and re.search(r"[A-Z]", v) and re.search(r"\d", v)):
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase letter, and one number"
            )
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserRef(BaseModel):
    """Compact user reference embedded in other resources."""
    user_id: str
    name: str
    email: str

    model_config = {"from_attributes": True}


class DepartmentBrief(BaseModel):
    department_id: str
    name: str

    model_config = {"from_attributes": True}


class UserOut(BaseModel):
    user_id: str
    name: str
    email: str
    role: UserRole
    department: Optional[DepartmentBrief] = None
    created_at: UTCDateTime

    model_config = {"from_attributes": True}


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut
