from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from erp_services.config import Settings
from erp_services.exceptions import AuthenticationError

SERVICE_TOKEN_MINUTES = 5


class CurrentUser(BaseModel):
    """Identity carried by a verified bearer token."""
    id: str
    email: Optional[str] = None
    roles: List[str] = []

    def has_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)


class JWTService:
    """Service for handling JWT tokens."""

    def __init__(self, settings: Settings):
        self.secret_key = settings.jwt_secret_key
        self.algorithm = settings.jwt_algorithm
        self.access_token_expire_minutes = settings.access_token_expire_minutes

    def create_access_token(self, data: dict, expires_delta: Optional[timedelta] = None) -> str:
        """Create a new JWT access token."""
        to_encode = data.copy()
        if expires_delta:
            expire = datetime.now(timezone.utc) + expires_delta
        else:
            expire = datetime.now(timezone.utc) + timedelta(minutes=self.access_token_expire_minutes)

        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def create_user_token(self, user_id: str, email: Optional[str], roles: List[str]) -> str:
        return self.create_access_token({"sub": str(user_id), "email": email, "roles": list(roles)})

    def create_service_token(self, service_name: str) -> str:
        """Short-lived token used for calls between services."""
        return self.create_access_token(
            {"sub": f"service:{service_name}", "roles": ["SYSTEM_ADMIN"]},
            expires_delta=timedelta(minutes=SERVICE_TOKEN_MINUTES),
        )

    def verify_token(self, token: str) -> Optional[dict]:
        """Verify and decode a JWT token."""
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None


bearer_scheme = HTTPBearer(auto_error=False)


def get_jwt_service(request: Request) -> JWTService:
    return request.app.state.jwt_service


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    jwt_service: JWTService = Depends(get_jwt_service),
) -> CurrentUser:
    """Get current user from JWT token."""
    if credentials is None:
        raise AuthenticationError("Authorization header missing")

    payload = jwt_service.verify_token(credentials.credentials)
    if payload is None or not payload.get("sub"):
        raise AuthenticationError("Could not validate credentials")

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return CurrentUser(id=str(payload["sub"]), email=payload.get("email"), roles=roles)
