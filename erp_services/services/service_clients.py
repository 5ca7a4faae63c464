"""HTTP clients for calls between services."""
import logging
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

import httpx
from fastapi import Request

from erp_services.exceptions import UpstreamServiceError

logger = logging.getLogger(__name__)

# Answers treated as "no such record"
MISSING_STATUSES = (400, 404)


class ServiceClient:
    service_name = "upstream"

    def __init__(
        self,
        base_url: str,
        timeout: float,
        token_provider: Callable[[], str],
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token_provider = token_provider
        self.transport = transport

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        headers = {"Authorization": f"Bearer {self.token_provider()}"}
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(path, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.error("%s service request %s failed: %s", self.service_name, path, e)
            raise UpstreamServiceError(f"{self.service_name.capitalize()} service is unavailable")

        if response.status_code in MISSING_STATUSES:
            return None
        if response.status_code >= 400:
            logger.error("%s service answered %s for %s", self.service_name, response.status_code, path)
            raise UpstreamServiceError(
                f"{self.service_name.capitalize()} service returned status {response.status_code}"
            )
        return response.json()


class FinanceClient(ServiceClient):
    service_name = "finance"

    async def get_pricing_rule(self, category: str) -> Optional[Dict[str, Any]]:
        body = await self._get(f"/pricing-rules/category/{quote(category, safe='')}")
        return body.get("data") if body else None


class IdentityClient(ServiceClient):
    service_name = "identity"

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        body = await self._get(f"/users/{quote(str(user_id), safe='')}")
        return body.get("data") if body else None

    async def get_users_by_role(self, role: str) -> List[Dict[str, Any]]:
        body = await self._get("/users", params={"role": role, "is_active": "true", "limit": 100})
        return (body or {}).get("data") or []


def get_finance_client(request: Request) -> FinanceClient:
    settings = request.app.state.settings
    jwt_service = request.app.state.jwt_service
    return FinanceClient(
        settings.finance_service_url,
        settings.service_timeout_seconds,
        lambda: jwt_service.create_service_token("engineering"),
    )


def get_identity_client(request: Request) -> IdentityClient:
    settings = request.app.state.settings
    jwt_service = request.app.state.jwt_service
    return IdentityClient(
        settings.identity_service_url,
        settings.service_timeout_seconds,
        lambda: jwt_service.create_service_token("project"),
    )
