"""Department registry routes."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from clearance.database import get_db
from clearance.deps import get_caller
from clearance.schemas.department import DepartmentCreate, DepartmentOut
from clearance.services import department_service
from clearance.services.identity import Caller

router = APIRouter()


@router.post("/", response_model=DepartmentOut, status_code=status.HTTP_201_CREATED)
def create_department(
    payload: DepartmentCreate,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    """Add a new approving department (admin only)."""
    return department_service.create_department(db, caller, payload.name)


@router.get("/", response_model=list[DepartmentOut])
def list_departments(caller: Caller = Depends(get_caller), db: Session = Depends(get_db)):
    """List all departments alphabetically."""
    return department_service.list_departments(db)
