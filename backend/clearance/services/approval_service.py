"""Approval state machine for clearance requests.

Responsibilities:
- Derive a request's overall status from its department entries
  (pure fold over entry statuses, independent of decision order)
- Create requests with one pending entry per existing department
- Record exactly one department decision per call, atomically with the
  recomputed overall status
- Role-scoped read projections

Overall status, first match wins:
    any entry rejected               -> rejected
    entries non-empty, all approved  -> approved   (final_approval_at stamped once)
    any entry left pending           -> in-progress
    otherwise                        -> pending
"""
import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from clearance.errors import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from clearance.models.clearance_request import (
    ApprovalEntry,
    ClearanceRequest,
    EntryStatus,
    OverallStatus,
)
from clearance.services import department_service, request_store
from clearance.services.identity import Admin, Caller, Staff, Student, role_name
from clearance.services.policy import Operation, can_access

logger = logging.getLogger(__name__)

DECISIONS = (EntryStatus.approved, EntryStatus.rejected)


def derive_overall_status(statuses: Iterable[EntryStatus]) -> OverallStatus:
    """Fold a collection of entry statuses into the request's overall status."""
    any_rejected = False
    any_decided = False
    all_approved = True
    count = 0
    for entry_status in statuses:
        count += 1
        if entry_status == EntryStatus.rejected:
            any_rejected = True
        if entry_status != EntryStatus.pending:
            any_decided = True
        if entry_status != EntryStatus.approved:
            all_approved = False

    if any_rejected:
        return OverallStatus.rejected
    if count and all_approved:
        return OverallStatus.approved
    if any_decided:
        return OverallStatus.in_progress
    return OverallStatus.pending


def apply_overall_status(request: ClearanceRequest, now: datetime) -> None:
    """Recompute ``overall_status`` from the entries and stamp timestamps."""
    request.overall_status = derive_overall_status(entry.status for entry in request.entries)
    if request.overall_status == OverallStatus.approved and request.final_approval_at is None:
        request.final_approval_at = now
    request.updated_at = now


def create_request(db: Session, caller: Caller) -> ClearanceRequest:
    """Open a clearance request for the calling student.

    The department set is snapshotted now; departments created later are not
    attached to this request.
    """
    if not can_access(caller, None, Operation.create):
        raise ForbiddenError(f"Only students may create clearance requests, not {role_name(caller)} users")

    if request_store.find_active_for_student(db, caller.user_id):
        logger.warning("Student %s tried to open a second active request", caller.user_id)
        raise ConflictError("You already have an active no-dues request.")

    departments = department_service.list_departments(db)
    if not departments:
        raise InvalidStateError("No departments found in the system. Cannot create a request.")

    now = datetime.now(timezone.utc)
    request = ClearanceRequest(
        student_id=caller.user_id,
        overall_status=OverallStatus.pending,
        created_at=now,
        updated_at=now,
        entries=[
            ApprovalEntry(department_id=dept.department_id, position=i, status=EntryStatus.pending, comment="")
            for i, dept in enumerate(departments)
        ],
    )
    request = request_store.insert(db, request)
    logger.info(
        "Clearance request %s created for student %s across %d departments",
        request.request_id, caller.user_id, len(departments),
    )
    return request


def record_decision(
    db: Session,
    request_id: str,
    caller: Caller,
    decision: str,
    comment: Optional[str] = None,
) -> ClearanceRequest:
    """Approve or reject the calling staff member's department entry."""
    if not isinstance(caller, Staff):
        raise ForbiddenError("Only department staff may approve or reject requests")

    try:
        new_status = EntryStatus(decision)
    except ValueError:
        new_status = None
    if new_status not in DECISIONS:
        raise InvalidArgumentError('Invalid status. Must be "approved" or "rejected".')
    comment = (comment or "").strip()
    if new_status == EntryStatus.rejected and not comment:
        raise InvalidArgumentError("Comment is required when rejecting a request.")

    request = request_store.load_for_update(db, request_id)
    if not request:
        raise NotFoundError("No-dues request not found")
    expected_version = request.version

    if request.is_terminal:
        raise ConflictError(
            f"Request is already finalized with status: {request.overall_status.value}. "
            "No further actions allowed."
        )

    if not can_access(caller, request, Operation.decide):
        raise ForbiddenError("Your department is not part of this no-dues request.")
    entry = request.entry_for(caller.department_id)

    if entry.status != EntryStatus.pending:
        raise ConflictError(
            f"Your department has already processed this request with status: {entry.status.value}."
        )

    now = datetime.now(timezone.utc)
    entry.status = new_status
    entry.comment = comment
    entry.approved_by_id = caller.user_id
    entry.decided_at = now
    apply_overall_status(request, now)

    request = request_store.save(db, request, expected_version)
    logger.info(
        "Department %s %s request %s (staff %s); overall status now %s",
        caller.department_id, new_status.value, request_id, caller.user_id, request.overall_status.value,
    )
    return request


def get_request(db: Session, request_id: str, caller: Caller) -> ClearanceRequest:
    request = request_store.load(db, request_id)
    if not request:
        raise NotFoundError("No-dues request not found")
    if not can_access(caller, request, Operation.read):
        raise ForbiddenError("Not authorized to view this request")
    return request


def list_for_student(db: Session, caller: Caller) -> list[ClearanceRequest]:
    """The calling student's own requests, newest first."""
    if not isinstance(caller, Student):
        raise ForbiddenError("Only students have personal clearance requests")
    return request_store.query(db, student_ids=[caller.user_id])


def list_for_department(db: Session, caller: Caller) -> list[ClearanceRequest]:
    """Every request involving the caller's department, oldest first."""
    if not isinstance(caller, Staff):
        raise ForbiddenError("Only department staff have a review queue")
    return request_store.query(db, department_id=caller.department_id, oldest_first=True)


def list_all(
    db: Session,
    caller: Caller,
    overall_status: Optional[str] = None,
    student_name: Optional[str] = None,
) -> list[ClearanceRequest]:
    """Admin view of all requests, newest first, optionally filtered."""
    if not isinstance(caller, Admin):
        raise ForbiddenError("Only administrators may list all requests")

    status_filter = None
    if overall_status:
        try:
            status_filter = OverallStatus(overall_status)
        except ValueError:
            raise InvalidArgumentError(f"Invalid status filter: {overall_status}")

    student_ids = None
    if student_name and student_name.strip():
        student_ids = request_store.student_ids_matching(db, student_name.strip())
        if not student_ids:
            return []

    return request_store.query(db, student_ids=student_ids, overall_status=status_filter)
