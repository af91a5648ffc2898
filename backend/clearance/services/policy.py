"""Authorization policy — who may read or act on a clearance request.

``can_access`` is a pure function of the caller, the request and the
operation. It never looks at storage and never enforces state-machine rules
such as "one decision per department" or "no decisions after finalization";
those belong to the approval service and apply to every role, admin included.

    operation             admin            owner            other student  staff (dept in)  staff (dept out)
    read                  yes              yes              no             yes              no
    create                no               yes              -              no               no
    decide                no               no               no             yes              no
    download_certificate  iff approved     iff approved     no             no               no
"""
import enum
from typing import Optional, assert_never

from clearance.models.clearance_request import ClearanceRequest, OverallStatus
from clearance.services.identity import Admin, Caller, Staff, Student


class Operation(str, enum.Enum):
    read = "read"
    create = "create"
    decide = "decide"
    download_certificate = "download_certificate"


def is_owner(caller: Caller, request: ClearanceRequest) -> bool:
    return isinstance(caller, Student) and request.student_id == caller.user_id


def is_party(caller: Caller, request: ClearanceRequest) -> bool:
    """True if the caller is staff of a department with an entry in the request."""
    return isinstance(caller, Staff) and request.entry_for(caller.department_id) is not None


def is_certificate_holder(caller: Caller, request: ClearanceRequest) -> bool:
    """Admins and the owning student may hold the certificate once it exists."""
    return isinstance(caller, Admin) or is_owner(caller, request)


def can_access(caller: Caller, request: Optional[ClearanceRequest], operation: Operation) -> bool:
    """Decide whether ``caller`` may perform ``operation`` on ``request``.

    ``request`` is None only for ``Operation.create``.
    """
    if operation == Operation.create:
        return isinstance(caller, Student)
    if request is None:
        return False

    approved = request.overall_status == OverallStatus.approved

    match caller:
        case Admin():
            match operation:
                case Operation.read:
                    return True
                case Operation.decide:
                    return False
                case Operation.download_certificate:
                    return approved
                case _:
                    assert_never(operation)
        case Student():
            owner = is_owner(caller, request)
            match operation:
                case Operation.read:
                    return owner
                case Operation.decide:
                    return False
                case Operation.download_certificate:
                    return owner and approved
                case _:
                    assert_never(operation)
        case Staff():
            party = is_party(caller, request)
            match operation:
                case Operation.read | Operation.decide:
                    return party
                case Operation.download_certificate:
                    return False
                case _:
                    assert_never(operation)
        case _:
            assert_never(caller)
