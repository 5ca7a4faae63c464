import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from erp_services.exceptions import ConflictError, NotFoundError, ValidationFailedError
from erp_services.models.identity_models import User, UserResponse, UserUpdateRequest
from erp_services.policies import Role
from erp_services.services.auth_service import get_user_by_email, hash_password, user_to_response

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_obj(self, user_id: uuid.UUID) -> User:
        user = await self.session.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def list_users(
        self,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> Tuple[List[UserResponse], int]:
        """List users, optionally only those holding `role`."""
        if role is not None and role not in {r.value for r in Role}:
            raise ValidationFailedError(f"Invalid role: {role}")

        query = select(User).order_by(User.email)
        if is_active is not None:
            query = query.where(User.is_active == is_active)
        users = (await self.session.execute(query)).scalars().all()

        # Roles live in a JSON list, filtered here to stay portable across databases
        if role is not None:
            users = [user for user in users if role in (user.roles or [])]

        total = len(users)
        return [user_to_response(user) for user in users[offset:offset + limit]], total

    async def get_user(self, user_id: uuid.UUID) -> UserResponse:
        return user_to_response(await self._get_obj(user_id))

    async def update_user(self, user_id: uuid.UUID, request: UserUpdateRequest) -> UserResponse:
        user = await self._get_obj(user_id)
        update_data = request.model_dump(exclude_unset=True)

        if update_data.get("email") and update_data["email"] != user.email:
            if await get_user_by_email(self.session, update_data["email"]):
                raise ConflictError("User with this email already exists")
            user.email = update_data["email"]
        if update_data.get("roles") is not None:
            user.roles = [Role(role).value for role in update_data["roles"]]
        if update_data.get("is_active") is not None:
            user.is_active = update_data["is_active"]
        if update_data.get("password"):
            user.password_hash = hash_password(update_data["password"])

        await self.session.commit()
        await self.session.refresh(user)
        logger.info("Updated user %s", user.email)
        return user_to_response(user)

    async def delete_user(self, user_id: uuid.UUID) -> None:
        user = await self._get_obj(user_id)
        await self.session.delete(user)
        await self.session.commit()
        logger.info("Deleted user %s", user.email)
