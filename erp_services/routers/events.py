import hmac
import logging
from datetime import date
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Header, Response
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.config import Settings
from erp_services.database import get_session
from erp_services.dependencies import get_clock, get_settings
from erp_services.exceptions import AuthenticationError
from erp_services.models.project_models import ProjectResponse, ProjectWonEvent
from erp_services.responses import ApiResponse, ok
from erp_services.services.notification_service import NotificationService, get_notification_service
from erp_services.services.project_event_service import ProjectEventService
from erp_services.services.service_clients import IdentityClient, get_identity_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["Events"])


def verify_event_token(
    x_event_token: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Events need the shared secret in X-Event-Token when one is configured."""
    secret = settings.event_shared_secret
    if not secret:
        return
    if not x_event_token or not hmac.compare_digest(x_event_token, secret):
        logger.warning("Rejected event with missing or invalid X-Event-Token")
        raise AuthenticationError("Invalid event token")


def get_event_service(
    session: AsyncSession = Depends(get_session),
    identity_client: IdentityClient = Depends(get_identity_client),
    notifications: NotificationService = Depends(get_notification_service),
    clock: Callable[[], date] = Depends(get_clock),
) -> ProjectEventService:
    return ProjectEventService(session, identity_client, notifications, clock)


@router.post("/project-won", response_model=ApiResponse[ProjectResponse], dependencies=[Depends(verify_event_token)])
async def project_won(
    event: ProjectWonEvent,
    response: Response,
    service: ProjectEventService = Depends(get_event_service),
):
    """Create the project for a won sales order, or refresh the existing one."""
    project, created = await service.handle_project_won(event)
    if created:
        response.status_code = 201
        return ok(project, "Project created from won sales order")
    return ok(project, "Project updated from won sales order")
