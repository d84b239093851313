from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, Response, status
from sqlalchemy.orm import Session

from database.connection import get_db
from models.core import Department, Employee, EmployeeStatus
from schemas.registry import EmployeeCreate, EmployeeDetail, EmployeeRead, EmployeeUpdate
from services.registry_service import RegistryService
from services.reporting_service import ReportingService
from utils.dependencies import get_registry_service, get_reporting_service
from utils.rate_limiter import MUTATION_LIMIT, limiter

router = APIRouter(prefix="/api/employees", tags=["Employees"])


@router.get("", response_model=List[EmployeeRead])
def list_employees(
    department: Optional[Department] = Query(None),
    status_filter: Optional[EmployeeStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, min_length=1, max_length=100),
    db: Session = Depends(get_db),
):
    query = db.query(Employee).filter(Employee.deleted.is_(False))
    if department:
        query = query.filter(Employee.department == department)
    if status_filter:
        query = query.filter(Employee.status == status_filter)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(Employee.name.ilike(pattern) | Employee.employee_code.ilike(pattern))
    return query.order_by(Employee.name).all()


@router.get("/{employee_id}", response_model=EmployeeDetail)
def get_employee(
    employee_id: int = Path(..., gt=0),
    reports: ReportingService = Depends(get_reporting_service),
):
    detail = reports.employee_detail(employee_id)
    return EmployeeDetail(data=EmployeeRead.model_validate(detail.pop("employee")), **detail)


@router.post("", response_model=EmployeeRead, status_code=status.HTTP_201_CREATED)
@limiter.limit(MUTATION_LIMIT)
def create_employee(
    request: Request,
    payload: EmployeeCreate,
    registry: RegistryService = Depends(get_registry_service),
):
    return registry.create_employee(payload)


@router.put("/{employee_id}", response_model=EmployeeRead)
@limiter.limit(MUTATION_LIMIT)
def update_employee(
    request: Request,
    payload: EmployeeUpdate,
    employee_id: int = Path(..., gt=0),
    registry: RegistryService = Depends(get_registry_service),
):
    return registry.update_employee(employee_id, payload)


@router.delete("/{employee_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(MUTATION_LIMIT)
def delete_employee(
    request: Request,
    employee_id: int = Path(..., gt=0),
    registry: RegistryService = Depends(get_registry_service),
):
    registry.delete_employee(employee_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
