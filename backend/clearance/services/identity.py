"""Caller identities — a closed union resolved once per request.

Every service function receives one of these explicitly; nothing reads the
caller from ambient state.
"""
from dataclasses import dataclass
from typing import Union, assert_never

from clearance.errors import ForbiddenError
from clearance.models.user import User, UserRole


@dataclass(frozen=True)
class Student:
    user_id: str


@dataclass(frozen=True)
class Staff:
    user_id: str
    department_id: str


@dataclass(frozen=True)
class Admin:
    user_id: str


Caller = Union[Student, Staff, Admin]


def caller_from_user(user: User) -> Caller:
    """Build the caller identity for a persisted user."""
    match user.role:
        case UserRole.student:
            return Student(user_id=user.user_id)
        case UserRole.staff:
            if not user.department_id:
                raise ForbiddenError("Your user profile is not associated with a department.")
            return Staff(user_id=user.user_id, department_id=user.department_id)
        case UserRole.admin:
            return Admin(user_id=user.user_id)
        case _:
            assert_never(user.role)


def role_name(caller: Caller) -> str:
    match caller:
        case Student():
            return UserRole.student.value
        case Staff():
            return UserRole.staff.value
        case Admin():
            return UserRole.admin.value
        case _:
            assert_never(caller)
