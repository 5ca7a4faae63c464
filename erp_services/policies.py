"""Role based access rules.

Every role check that does not depend on a particular record goes through
``POLICY_TABLE``. Record level rules (the assigned project manager, a task
assignee) live in the services that own those records.
"""
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Tuple

from fastapi import Depends

from erp_services.exceptions import PermissionDeniedError
from erp_services.services.jwt_service import CurrentUser, get_current_user


class Role(str, Enum):
    CEO = "CEO"
    FINANCE_ADMIN = "FINANCE_ADMIN"
    SALES = "SALES"
    SALES_MANAGER = "SALES_MANAGER"
    PROJECT_MANAGER = "PROJECT_MANAGER"
    PROJECT_ENGINEER = "PROJECT_ENGINEER"
    HR_ADMIN = "HR_ADMIN"
    EMPLOYEE = "EMPLOYEE"
    PROCUREMENT_ADMIN = "PROCUREMENT_ADMIN"
    ASSET_ADMIN = "ASSET_ADMIN"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"
    OPERATIONAL_MANAGER = "OPERATIONAL_MANAGER"


SUPERUSER_ROLES = frozenset({Role.CEO, Role.SYSTEM_ADMIN})


def _roles(*roles: Role) -> FrozenSet[Role]:
    return frozenset(roles)


# (action, resource) -> roles allowed in addition to SUPERUSER_ROLES
POLICY_TABLE: Dict[Tuple[str, str], FrozenSet[Role]] = {
    # finance
    ("write", "account"): _roles(Role.FINANCE_ADMIN),
    ("write", "journal"): _roles(Role.FINANCE_ADMIN),
    ("write", "finance_rule"): _roles(Role.FINANCE_ADMIN),
    ("write", "rate"): _roles(Role.FINANCE_ADMIN),
    ("write", "invoice"): _roles(Role.FINANCE_ADMIN),
    ("write", "payable"): _roles(Role.FINANCE_ADMIN, Role.PROCUREMENT_ADMIN),
    ("approve", "payable"): _roles(Role.FINANCE_ADMIN),
    ("pay", "payable"): _roles(Role.FINANCE_ADMIN),
    # procurement
    ("write", "vendor"): _roles(Role.PROCUREMENT_ADMIN),
    ("write", "vendor_pricelist"): _roles(Role.PROCUREMENT_ADMIN),
    # engineering
    ("write", "material"): _roles(Role.PROJECT_ENGINEER, Role.PROJECT_MANAGER, Role.PROCUREMENT_ADMIN),
    ("write", "service_catalog"): _roles(Role.PROJECT_ENGINEER, Role.PROJECT_MANAGER),
    ("calculate", "pricing"): _roles(
        Role.SALES, Role.SALES_MANAGER, Role.PROJECT_ENGINEER, Role.PROJECT_MANAGER, Role.FINANCE_ADMIN
    ),
    # project
    ("assign_pm", "project"): _roles(Role.OPERATIONAL_MANAGER),
    ("write", "milestone_template"): _roles(Role.OPERATIONAL_MANAGER, Role.PROJECT_MANAGER),
    # identity
    ("write", "user"): _roles(Role.HR_ADMIN),
    ("write", "employee"): _roles(Role.HR_ADMIN),
}


def is_allowed(roles: Iterable[str], action: str, resource: str) -> bool:
    role_set = set(roles)
    if role_set & {role.value for role in SUPERUSER_ROLES}:
        return True
    allowed = POLICY_TABLE.get((action, resource))
    if allowed is None:
        return False
    return bool(role_set & {role.value for role in allowed})


def require_permission(action: str, resource: str):
    """Dependency factory guarding an endpoint with ``POLICY_TABLE``."""

    async def dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not is_allowed(user.roles, action, resource):
            raise PermissionDeniedError(f"Forbidden: {action} on {resource} is not allowed for your role")
        return user

    return dependency
