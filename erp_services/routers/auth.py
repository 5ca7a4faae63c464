from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import get_session
from erp_services.models.identity_models import LoginRequest, LoginResponse, RegisterRequest, UserResponse
from erp_services.responses import ApiResponse, ok
from erp_services.services.auth_service import AuthService
from erp_services.services.jwt_service import CurrentUser, JWTService, get_current_user, get_jwt_service

router = APIRouter(prefix="/auth", tags=["Authentication"])


def get_auth_service(
    session: AsyncSession = Depends(get_session),
    jwt_service: JWTService = Depends(get_jwt_service),
) -> AuthService:
    return AuthService(session, jwt_service)


@router.post("/register", response_model=ApiResponse[UserResponse], status_code=201)
async def register(request: RegisterRequest, service: AuthService = Depends(get_auth_service)):
    """Create a login account. Roles default to EMPLOYEE."""
    return ok(await service.register(request), "User registered successfully")


@router.post("/login", response_model=ApiResponse[LoginResponse])
async def login(request: LoginRequest, service: AuthService = Depends(get_auth_service)):
    """Exchange email and password for a bearer token."""
    return ok(await service.login(request), "Login successful")


@router.get("/me", response_model=ApiResponse[UserResponse])
async def get_current_user_info(
    user: CurrentUser = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    """Get current user information."""
    return ok(await service.me(user.id), "User retrieved successfully")
