"""Pydantic schemas for clearance requests — the per-role read model."""
from __future__ import annotations
from typing import Optional
from pydantic import BaseModel

from clearance.models.clearance_request import EntryStatus, OverallStatus
from clearance.schemas.common import UTCDateTime
from clearance.schemas.user import DepartmentBrief, UserRef


class ApprovalEntryOut(BaseModel):
    department: DepartmentBrief
    status: EntryStatus
    comment: str = ""
    approved_by: Optional[UserRef] = None
    decided_at: Optional[UTCDateTime] = None

    model_config = {"from_attributes": True}


class ClearanceRequestOut(BaseModel):
    request_id: str
    student: UserRef
    entries: list[ApprovalEntryOut] = []
    overall_status: OverallStatus
    final_approval_at: Optional[UTCDateTime] = None
    version: int
    created_at: UTCDateTime
    updated_at: UTCDateTime

    model_config = {"from_attributes": True}


class DecisionIn(BaseModel):
    status: str  # approved, rejected
    comment: Optional[str] = None
