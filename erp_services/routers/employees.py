import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.models.identity_models import EmployeeCreateRequest, EmployeeResponse
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, PageParams, ok, paginated
from erp_services.services.employee_service import EmployeeService
from erp_services.services.jwt_service import CurrentUser, get_current_user

router = APIRouter(prefix="/employees", tags=["Employees"])


def get_employee_service(session: AsyncSession = Depends(get_session)) -> EmployeeService:
    return EmployeeService(session)


@router.post("", response_model=ApiResponse[EmployeeResponse], status_code=201)
async def create_employee(
    request: EmployeeCreateRequest,
    user: CurrentUser = Depends(require_permission("write", "employee")),
    service: EmployeeService = Depends(get_employee_service),
):
    """Create an employee together with the login account it belongs to."""
    return ok(await service.create_employee(request), "Employee created successfully")


@router.get("", response_model=ApiResponse[List[EmployeeResponse]])
async def list_employees(
    page: PageParams = Depends(),
    user: CurrentUser = Depends(get_current_user),
    service: EmployeeService = Depends(get_employee_service),
):
    employees, total = await service.list_employees(page.offset, page.limit)
    return paginated(employees, page, total, "Employees retrieved successfully")


@router.get("/{employee_id}", response_model=ApiResponse[EmployeeResponse])
async def get_employee(
    employee_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: EmployeeService = Depends(get_employee_service),
):
    return ok(await service.get_employee(employee_id), "Employee retrieved successfully")
