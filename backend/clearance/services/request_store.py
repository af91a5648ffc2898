"""Persistence for the ClearanceRequest aggregate.

The request row and its approval entries are always written in one
transaction. Saves are conditional on the version the caller loaded: the
mapper's ``version_id_col`` turns the request UPDATE into
``... WHERE version = :expected``, so a writer holding a stale copy gets
``ConflictError`` and none of its changes (entries included) are kept.
"""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from clearance.errors import ConflictError
from clearance.models.clearance_request import ACTIVE_STATUSES, ApprovalEntry, ClearanceRequest, OverallStatus
from clearance.models.user import User, UserRole

logger = logging.getLogger(__name__)


def load(db: Session, request_id: str) -> Optional[ClearanceRequest]:
    return db.query(ClearanceRequest).filter(ClearanceRequest.request_id == request_id).first()


def load_for_update(db: Session, request_id: str) -> Optional[ClearanceRequest]:
    """Load ``request_id`` for a decision.

    The row is locked until commit (``SELECT ... FOR UPDATE`` where the
    backend supports it) so decisions from different departments queue up
    instead of conflicting. Any copy already held by the session is
    overwritten with committed state.
    """
    return (
        db.query(ClearanceRequest)
        .filter(ClearanceRequest.request_id == request_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def find_active_for_student(db: Session, student_id: str) -> Optional[ClearanceRequest]:
    return (
        db.query(ClearanceRequest)
        .filter(
            ClearanceRequest.student_id == student_id,
            ClearanceRequest.overall_status.in_(list(ACTIVE_STATUSES)),
        )
        .first()
    )


def insert(db: Session, request: ClearanceRequest) -> ClearanceRequest:
    """Persist a brand-new request; the active-request index may refuse it."""
    db.add(request)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("You already have an active no-dues request.")
    db.refresh(request)
    return request


def save(db: Session, request: ClearanceRequest, expected_version: int) -> ClearanceRequest:
    """Commit pending changes to ``request`` if nobody else has saved it since it was loaded."""
    request_id = request.request_id
    if request.version != expected_version:
        db.rollback()
        raise ConflictError("Request was modified concurrently. Re-fetch and retry.")
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning("Stale write rejected for request %s at version %d", request_id, expected_version)
        raise ConflictError("Request was modified concurrently. Re-fetch and retry.")
    db.refresh(request)
    return request


def query(
    db: Session,
    student_ids: Optional[list[str]] = None,
    department_id: Optional[str] = None,
    overall_status: Optional[OverallStatus] = None,
    oldest_first: bool = False,
) -> list[ClearanceRequest]:
    """Filter requests; newest first unless ``oldest_first``."""
    q = db.query(ClearanceRequest)
    if student_ids is not None:
        q = q.filter(ClearanceRequest.student_id.in_(student_ids))
    if department_id is not None:
        q = q.filter(ClearanceRequest.entries.any(ApprovalEntry.department_id == department_id))
    if overall_status is not None:
        q = q.filter(ClearanceRequest.overall_status == overall_status)
    order = ClearanceRequest.created_at.asc() if oldest_first else ClearanceRequest.created_at.desc()
    return q.order_by(order).all()


def student_ids_matching(db: Session, name_fragment: str) -> list[str]:
    """Ids of students whose name contains ``name_fragment``, case-insensitively."""
    rows = (
        db.query(User.user_id)
        .filter(User.role == UserRole.student, User.name.icontains(name_fragment, autoescape=True))
        .all()
    )
    return [row.user_id for row in rows]
