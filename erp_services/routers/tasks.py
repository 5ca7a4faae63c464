import uuid

from fastapi import APIRouter, Depends

from erp_services.models.project_models import TaskResponse, TaskUpdateRequest
from erp_services.responses import ApiResponse, ok
from erp_services.routers.projects import get_task_service
from erp_services.services.jwt_service import CurrentUser, get_current_user
from erp_services.services.task_service import TaskService

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.put("/{task_id}", response_model=ApiResponse[TaskResponse])
async def update_task(
    task_id: uuid.UUID,
    request: TaskUpdateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """The PM may change any field; the assignee only status and progress."""
    return ok(await service.update_task(task_id, request, user), "Task updated successfully")


@router.delete("/{task_id}", response_model=ApiResponse)
async def delete_task(
    task_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    await service.delete_task(task_id, user)
    return ok(message="Task deleted successfully")
