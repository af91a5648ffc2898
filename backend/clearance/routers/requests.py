"""Clearance request routes — thin wrappers over approval_service."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from clearance.database import get_db
from clearance.deps import get_caller
from clearance.schemas.clearance_request import ClearanceRequestOut, DecisionIn
from clearance.services import approval_service, certificate_service
from clearance.services.identity import Caller

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=ClearanceRequestOut, status_code=status.HTTP_201_CREATED)
def create_request(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    """Open a no-dues request covering every current department (students only)."""
    return approval_service.create_request(db, caller)


@router.get("/my", response_model=list[ClearanceRequestOut])
def list_my_requests(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    """The calling student's requests, newest first."""
    return approval_service.list_for_student(db, caller)


@router.get("/all", response_model=list[ClearanceRequestOut])
def list_all_requests(
    status_filter: Optional[str] = Query(None, alias="status"),
    student_name: Optional[str] = Query(None),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """All requests for administrators, optionally filtered by status or student name."""
    return approval_service.list_all(db, caller, overall_status=status_filter, student_name=student_name)


@router.get("/", response_model=list[ClearanceRequestOut])
def list_department_queue(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    """Requests involving the calling staff member's department, oldest first."""
    return approval_service.list_for_department(db, caller)


@router.get("/{request_id}", response_model=ClearanceRequestOut)
def get_request(request_id: str, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    """Fetch one request (owner, involved staff or admin)."""
    return approval_service.get_request(db, request_id, caller)


@router.put("/{request_id}/action", response_model=ClearanceRequestOut)
def decide(
    request_id: str,
    payload: DecisionIn,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """Approve or reject the caller's department entry on a request."""
    return approval_service.record_decision(db, request_id, caller, payload.status, payload.comment)


@router.get("/{request_id}/certificate")
def download_certificate(request_id: str, caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    """Download the no-dues certificate of an approved request."""
    certificate = certificate_service.issue_certificate(db, request_id, caller)
    logger.info("Serving %s (%d bytes)", certificate.filename, len(certificate.content))
    return Response(
        content=certificate.content,
        media_type=certificate.media_type,
        headers={"Content-Disposition": f'attachment; filename="{certificate.filename}"'},
    )
