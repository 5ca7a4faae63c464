import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.models.identity_models import UserResponse, UserUpdateRequest
from erp_services.policies import require_permission
from erp_services.responses import ApiResponse, PageParams, ok, paginated
from erp_services.services.jwt_service import CurrentUser, get_current_user
from erp_services.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


def get_user_service(session: AsyncSession = Depends(get_session)) -> UserService:
    return UserService(session)


@router.get("", response_model=ApiResponse[List[UserResponse]])
async def list_users(
    role: Optional[str] = Query(None, description="Only users holding this role"),
    is_active: Optional[bool] = Query(None),
    page: PageParams = Depends(),
    user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    users, total = await service.list_users(role, is_active, page.offset, page.limit)
    return paginated(users, page, total, "Users retrieved successfully")


@router.get("/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user(
    user_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    return ok(await service.get_user(user_id), "User retrieved successfully")


@router.put("/{user_id}", response_model=ApiResponse[UserResponse])
async def update_user(
    user_id: uuid.UUID,
    request: UserUpdateRequest,
    user: CurrentUser = Depends(require_permission("write", "user")),
    service: UserService = Depends(get_user_service),
):
    return ok(await service.update_user(user_id, request), "User updated successfully")


@router.delete("/{user_id}", response_model=ApiResponse)
async def delete_user(
    user_id: uuid.UUID,
    user: CurrentUser = Depends(require_permission("write", "user")),
    service: UserService = Depends(get_user_service),
):
    await service.delete_user(user_id)
    return ok(message="User deleted successfully")
