"""No-dues certificate issuance.

A certificate is rendered from an immutable snapshot of an approved request.
Rendering is a pure function of the snapshot; issuing never mutates the
request.
"""
import logging
import re
import textwrap
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from clearance.config import settings
from clearance.errors import ForbiddenError, InvalidStateError, NotFoundError
from clearance.models.clearance_request import ClearanceRequest
from clearance.services import request_store
from clearance.services.identity import Caller
from clearance.services.policy import Operation, can_access, is_certificate_holder

logger = logging.getLogger(__name__)

PAGE_WIDTH = 78
PAGE_BREAK = "\f"
MEDIA_TYPE = "text/plain; charset=utf-8"

_COLUMNS = (("Department", 28), ("Status", 10), ("Approved By", 24), ("Date", 12))


@dataclass(frozen=True)
class ClearanceRow:
    department: str
    status: str
    approver: Optional[str]
    decided_at: Optional[datetime]
    comment: str


@dataclass(frozen=True)
class CertificateSnapshot:
    request_id: str
    student_name: str
    student_email: str
    submitted_at: datetime
    final_approval_at: Optional[datetime]
    rows: tuple[ClearanceRow, ...]
    institution: str
    generated_at: datetime


@dataclass(frozen=True)
class Certificate:
    filename: str
    media_type: str
    content: bytes


def snapshot_request(request: ClearanceRequest, generated_at: datetime) -> CertificateSnapshot:
    return CertificateSnapshot(
        request_id=request.request_id,
        student_name=request.student.name,
        student_email=request.student.email,
        submitted_at=request.created_at,
        final_approval_at=request.final_approval_at,
        rows=tuple(
            ClearanceRow(
                department=entry.department.name,
                status=entry.status.value,
                approver=entry.approved_by.name if entry.approved_by else None,
                decided_at=entry.decided_at,
                comment=entry.comment or "",
            )
            for entry in request.entries
        ),
        institution=settings.INSTITUTION_NAME,
        generated_at=generated_at,
    )


def _date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value else "N/A"


def _table_row(values: tuple[str, ...]) -> str:
    cells = []
    for value, (_, width) in zip(values, _COLUMNS):
        cells.append(textwrap.shorten(value, width=width - 1, placeholder="…").ljust(width))
    return "".join(cells).rstrip()


def _table_header() -> list[str]:
    return [_table_row(tuple(title for title, _ in _COLUMNS)), "-" * PAGE_WIDTH]


def _row_lines(row: ClearanceRow) -> list[str]:
    lines = [_table_row((row.department, row.status, row.approver or "N/A", _date(row.decided_at)))]
    if row.comment.strip():
        lines.extend(textwrap.wrap(f"Comment: {row.comment}", width=PAGE_WIDTH - 4,
                                   initial_indent="    ", subsequent_indent="    "))
    return lines


def render_certificate(snapshot: CertificateSnapshot, page_lines: Optional[int] = None) -> bytes:
    """Render a paginated, human-readable certificate as UTF-8 text.

    Pages are separated by form feeds; the department table header repeats at
    the top of every continuation page.
    """
    # Two lines per page are reserved for the page number
    body_lines = (page_lines or settings.CERTIFICATE_PAGE_LINES) - 2

    preamble = [
        "NO-DUES CERTIFICATE".center(PAGE_WIDTH).rstrip(),
        snapshot.institution.center(PAGE_WIDTH).rstrip(),
        "",
        "Student Details:",
        f"  Name: {snapshot.student_name}",
        f"  Email: {snapshot.student_email}",
        f"  Request ID: {snapshot.request_id}",
        f"  Date of Submission: {_date(snapshot.submitted_at)}",
    ]
    if snapshot.final_approval_at:
        preamble.append(f"  Date of Final Approval: {_date(snapshot.final_approval_at)}")
    preamble += ["", "Department Clearances:"]

    footer = [
        "",
        "This is a system-generated document and is valid without a physical",
        "signature if all departments have approved.",
        f"Generated on: {snapshot.generated_at.strftime('%Y-%m-%d %H:%M:%S %Z').strip()}",
    ]

    pages: list[list[str]] = []
    page = preamble + _table_header()
    for row in snapshot.rows:
        block = _row_lines(row)
        if len(page) + len(block) > body_lines and len(page) > len(_table_header()):
            pages.append(page)
            page = _table_header()
        page.extend(block)
    if len(page) + len(footer) > body_lines:
        pages.append(page)
        page = []
    page.extend(footer)
    pages.append(page)

    total = len(pages)
    rendered = []
    for number, lines in enumerate(pages, start=1):
        lines = lines + ["", f"Page {number} of {total}".rjust(PAGE_WIDTH)]
        rendered.append("\n".join(lines) + "\n")
    return PAGE_BREAK.join(rendered).encode("utf-8")


def certificate_filename(snapshot: CertificateSnapshot) -> str:
    sanitized = re.sub(r"[^a-z0-9]", "_", snapshot.student_name, flags=re.IGNORECASE).lower()
    return f"No_Dues_Certificate_{sanitized}_{snapshot.request_id}.txt"


def issue_certificate(db: Session, request_id: str, caller: Caller) -> Certificate:
    """Render the certificate for an approved request.

    Only the owning student and administrators may download it, and only
    once every department has approved.
    """
    request = request_store.load(db, request_id)
    if not request:
        raise NotFoundError("No-dues request not found")

    if not can_access(caller, request, Operation.download_certificate):
        if is_certificate_holder(caller, request):
            raise InvalidStateError(
                f"This no-dues request is {request.overall_status.value}. "
                "A certificate can only be generated for approved requests."
            )
        raise ForbiddenError(
            "Not authorized to download this certificate. Only the student who owns "
            "the request or an admin can download it."
        )

    snapshot = snapshot_request(request, generated_at=datetime.now(timezone.utc))
    certificate = Certificate(
        filename=certificate_filename(snapshot),
        media_type=MEDIA_TYPE,
        content=render_certificate(snapshot),
    )
    logger.info("Issued certificate for request %s to %s", request_id, caller.user_id)
    return certificate
