import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.exceptions import ConflictError, NotFoundError
from erp_services.models.identity_models import Employee, EmployeeCreateRequest, EmployeeResponse, User
from erp_services.services.auth_service import get_user_by_email, hash_password

logger = logging.getLogger(__name__)


def employee_to_response(employee: Employee, email: Optional[str] = None) -> EmployeeResponse:
    return EmployeeResponse(
        id=employee.id,
        user_id=employee.user_id,
        email=email,
        full_name=employee.full_name,
        position=employee.position,
        hire_date=employee.hire_date,
        basic_salary=float(employee.basic_salary or 0),
        allowances=float(employee.allowances or 0),
        created_at=employee.created_at,
        updated_at=employee.updated_at,
    )


class EmployeeService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_employee(self, request: EmployeeCreateRequest) -> EmployeeResponse:
        """Create the login account and the employee record in one transaction."""
        if await get_user_by_email(self.session, request.user.email):
            raise ConflictError("User with this email already exists")

        user = User(
            id=uuid.uuid4(),
            email=request.user.email,
            password_hash=hash_password(request.user.password),
            roles=[role.value for role in request.user.roles],
            is_active=True,
        )
        data = request.employee
        employee = Employee(
            user_id=user.id,
            full_name=data.full_name,
            position=data.position,
            hire_date=data.hire_date,
            basic_salary=data.basic_salary,
            allowances=data.allowances,
        )
        self.session.add_all([user, employee])
        await self.session.commit()
        await self.session.refresh(employee)
        logger.info("Created employee %s for user %s", employee.full_name, user.email)
        return employee_to_response(employee, user.email)

    async def list_employees(self, offset: int = 0, limit: int = 10) -> Tuple[List[EmployeeResponse], int]:
        total = await self.session.scalar(select(func.count()).select_from(Employee))
        result = await self.session.execute(
            select(Employee, User.email)
            .outerjoin(User, Employee.user_id == User.id)
            .order_by(Employee.full_name)
            .offset(offset)
            .limit(limit)
        )
        return [employee_to_response(employee, email) for employee, email in result.all()], total or 0

    async def get_employee(self, employee_id: uuid.UUID) -> EmployeeResponse:
        result = await self.session.execute(
            select(Employee, User.email)
            .outerjoin(User, Employee.user_id == User.id)
            .where(Employee.id == employee_id)
        )
        row = result.first()
        if row is None:
            raise NotFoundError("Employee not found")
        return employee_to_response(row[0], row[1])
