"""Pydantic schemas for Departments."""
from pydantic import BaseModel

from clearance.schemas.common import UTCDateTime
from clearance.schemas.user import UserRef


class DepartmentCreate(BaseModel):
    name: str


class DepartmentOut(BaseModel):
    department_id: str
    name: str
    creator: UserRef
    created_at: UTCDateTime

    model_config = {"from_attributes": True}
