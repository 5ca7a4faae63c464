import logging
import uuid
from typing import Optional

import bcrypt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.database import utcnow
from erp_services.exceptions import AuthenticationError, ConflictError, NotFoundError, PermissionDeniedError
from erp_services.models.identity_models import EmployeeSummary, LoginRequest, LoginResponse, RegisterRequest, User, UserResponse
from erp_services.services.jwt_service import JWTService

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def user_to_response(user: User) -> UserResponse:
    employee = user.employee
    return UserResponse(
        id=user.id,
        email=user.email,
        roles=list(user.roles or []),
        is_active=user.is_active,
        full_name=employee.full_name if employee else None,
        employee=EmployeeSummary.model_validate(employee) if employee else None,
        last_login=user.last_login,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


async def get_user_by_email(session: AsyncSession, email: str) -> Optional[User]:
    result = await session.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


class AuthService:
    """Registration, login and token issuance."""

    def __init__(self, session: AsyncSession, jwt_service: JWTService):
        self.session = session
        self.jwt_service = jwt_service

    async def register(self, request: RegisterRequest) -> UserResponse:
        if await get_user_by_email(self.session, request.email):
            raise ConflictError("User with this email already exists")

        user = User(
            email=request.email,
            password_hash=hash_password(request.password),
            roles=[role.value for role in request.roles],
            is_active=True,
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user, ["employee"])
        logger.info("Registered user %s with roles %s", user.email, user.roles)
        return user_to_response(user)

    async def login(self, request: LoginRequest) -> LoginResponse:
        user = await get_user_by_email(self.session, request.email)
        if user is None or not verify_password(request.password, user.password_hash):
            logger.warning("Failed login for %s", request.email)
            raise AuthenticationError("Invalid email or password")
        if not user.is_active:
            raise PermissionDeniedError("User account is inactive")

        user.last_login = utcnow()
        await self.session.commit()
        await self.session.refresh(user, ["employee"])

        token = self.jwt_service.create_user_token(str(user.id), user.email, user.roles or [])
        logger.info("User %s logged in", user.email)
        return LoginResponse(
            token=token,
            expires_in=self.jwt_service.access_token_expire_minutes * 60,
            user=user_to_response(user),
        )

    async def me(self, user_id: str) -> UserResponse:
        try:
            key = uuid.UUID(str(user_id))
        except ValueError:
            raise NotFoundError("User not found")
        user = await self.session.get(User, key)
        if user is None:
            raise NotFoundError("User not found")
        return user_to_response(user)
