"""
Role capability matrix and authorization checks.

Every capability lookup goes through ``PERMISSIONS``; role hierarchy values
exist only for "at least as privileged as" comparisons (e.g. who may change
whose role) and are never a substitute for an explicit capability.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from agency.core.metrics import record_permission_denied
from agency.models.enums import RoleEnum
from agency.tenancy.constants import OWNERSHIP_RESOURCE_TYPES, ROLE_HIERARCHY
from agency.tenancy.context import TenantContext
from agency.tenancy.errors import PermissionDenied

logger = logging.getLogger(__name__)

_ALL = frozenset({RoleEnum.OWNER, RoleEnum.ADMIN, RoleEnum.MEMBER})
_ELEVATED = frozenset({RoleEnum.OWNER, RoleEnum.ADMIN})
_OWNER = frozenset({RoleEnum.OWNER})


# Permission key ("resource:action") -> roles granted that capability.
PERMISSIONS: dict[str, frozenset[RoleEnum]] = {
    # Consultations
    "consultation:create": _ALL,
    "consultation:view_own": _ALL,
    "consultation:view_all": _ELEVATED,
    "consultation:edit_own": _ALL,
    "consultation:edit_all": _ELEVATED,
    "consultation:delete_own": _ALL,
    "consultation:delete_all": _ELEVATED,
    # Proposals
    "proposal:create": _ALL,
    "proposal:view_own": _ALL,
    "proposal:view_all": _ELEVATED,
    "proposal:edit_own": _ALL,
    "proposal:edit_all": _ELEVATED,
    "proposal:send": _ALL,
    "proposal:delete_own": _ALL,
    "proposal:delete_all": _ELEVATED,
    # Team management
    "member:view": _ALL,
    "member:invite": _ELEVATED,
    "member:remove": _ELEVATED,
    "member:change_role": _OWNER,
    # Agency settings
    "settings:view": _ELEVATED,
    "settings:edit": _ELEVATED,
    "branding:view": _ALL,
    "branding:edit": _ELEVATED,
    "form_options:view": _ALL,
    "form_options:edit": _ELEVATED,
    # Billing & subscription
    "billing:view": _OWNER,
    "billing:manage": _OWNER,
    "subscription:view": _ELEVATED,
    "subscription:manage": _OWNER,
    # Templates
    "template:view": _ALL,
    "template:create": _ELEVATED,
    "template:edit": _ELEVATED,
    "template:delete": _OWNER,
    # Data export & deletion
    "data:export": _OWNER,
    "agency:delete": _OWNER,
    # Analytics & activity
    "analytics:view": _ELEVATED,
    "analytics:export": _ELEVATED,
    "audit:view": _ELEVATED,
    # Agency profile
    "profile:view": _ELEVATED,
    "profile:edit": _ELEVATED,
    # Packages
    "packages:view": _ALL,
    "packages:create": _ELEVATED,
    "packages:edit": _ELEVATED,
    "packages:delete": _OWNER,
    # Add-ons
    "addons:view": _ALL,
    "addons:create": _ELEVATED,
    "addons:edit": _ELEVATED,
    "addons:delete": _OWNER,
    # Contract templates
    "contract_template:view": _ELEVATED,
    "contract_template:create": _ELEVATED,
    "contract_template:edit": _ELEVATED,
    "contract_template:delete": _OWNER,
    # Contracts
    "contract:create": _ALL,
    "contract:view_own": _ALL,
    "contract:view_all": _ELEVATED,
    "contract:edit_own": _ALL,
    "contract:edit_all": _ELEVATED,
    "contract:send": _ALL,
    "contract:delete_own": _ALL,
    "contract:delete_all": _ELEVATED,
    # Invoices (numbered documents, no per-user ownership)
    "invoice:view": _ALL,
    "invoice:create": _ELEVATED,
    "invoice:edit": _ELEVATED,
    "invoice:delete": _OWNER,
    # AI generation
    "ai:generate": _ALL,
}


def _normalize_role(role: RoleEnum | str | None) -> Optional[RoleEnum]:
    if role is None or isinstance(role, RoleEnum):
        return role
    try:
        return RoleEnum(role)
    except ValueError:
        return None


def _allowed_roles(permission: str) -> frozenset[RoleEnum]:
    try:
        return PERMISSIONS[permission]
    except KeyError as exc:
        raise ValueError(f"Unknown permission: {permission}") from exc


def authorize(role: RoleEnum | str | None, permission: str) -> bool:
    """Return True when ``role`` holds ``permission``."""
    allowed = _allowed_roles(permission)
    normalized = _normalize_role(role)
    return normalized is not None and normalized in allowed


def authorize_all(role: RoleEnum | str | None, permissions: Iterable[str]) -> bool:
    return all(authorize(role, permission) for permission in permissions)


def authorize_any(role: RoleEnum | str | None, permissions: Iterable[str]) -> bool:
    return any(authorize(role, permission) for permission in permissions)


def authorize_ownership(
    role: RoleEnum | str | None,
    permission_all: str,
    permission_own: str,
    resource_owner_id,
    actor_id,
) -> bool:
    """
    Two-tier check for ownership-qualified capabilities.

    ``_all`` allows unconditionally; ``_own`` allows only when the actor owns
    the resource; anything else denies.
    """
    if authorize(role, permission_all):
        return True
    if not authorize(role, permission_own):
        return False
    return resource_owner_id is not None and resource_owner_id == actor_id


def ownership_permissions(resource_type: str, action: str) -> tuple[str, str]:
    if resource_type not in OWNERSHIP_RESOURCE_TYPES:
        raise ValueError(f"{resource_type} does not support per-user ownership")
    return f"{resource_type}:{action}_all", f"{resource_type}:{action}_own"


def _can(action: str, role, resource_owner_id, actor_id, resource_type: str) -> bool:
    permission_all, permission_own = ownership_permissions(resource_type, action)
    return authorize_ownership(role, permission_all, permission_own, resource_owner_id, actor_id)


def can_access_resource(role, resource_owner_id, actor_id, resource_type: str) -> bool:
    return _can("view", role, resource_owner_id, actor_id, resource_type)


def can_modify_resource(role, resource_owner_id, actor_id, resource_type: str) -> bool:
    return _can("edit", role, resource_owner_id, actor_id, resource_type)


def can_delete_resource(role, resource_owner_id, actor_id, resource_type: str) -> bool:
    return _can("delete", role, resource_owner_id, actor_id, resource_type)


def permissions_for_role(role: RoleEnum | str) -> list[str]:
    return [permission for permission in PERMISSIONS if authorize(role, permission)]


def _deny(ctx: TenantContext, permission: str) -> PermissionDenied:
    record_permission_denied(permission)
    logger.info(
        "authz.denied",
        extra={
            "tenant_id": ctx.tenant_id,
            "user_id": ctx.actor_id,
            "permission": permission,
        },
    )
    return PermissionDenied(permission)


def require_permission(ctx: TenantContext, permission: str) -> TenantContext:
    """Raise PermissionDenied unless the context's role holds ``permission``."""
    if not authorize(ctx.role, permission):
        raise _deny(ctx, permission)
    return ctx


def require_all_permissions(ctx: TenantContext, permissions: Iterable[str]) -> TenantContext:
    missing = [permission for permission in permissions if not authorize(ctx.role, permission)]
    if missing:
        raise _deny(ctx, ", ".join(missing))
    return ctx


def require_any_permission(ctx: TenantContext, permissions: Iterable[str]) -> TenantContext:
    required = list(permissions)
    if not authorize_any(ctx.role, required):
        raise _deny(ctx, " | ".join(required))
    return ctx


def require_ownership(
    ctx: TenantContext,
    resource_type: str,
    action: str,
    resource_owner_id,
) -> TenantContext:
    permission_all, permission_own = ownership_permissions(resource_type, action)
    if not authorize_ownership(ctx.role, permission_all, permission_own, resource_owner_id, ctx.actor_id):
        raise _deny(ctx, permission_own)
    return ctx


# Role hierarchy helpers


def is_role_higher(role_a: RoleEnum | str, role_b: RoleEnum | str) -> bool:
    return ROLE_HIERARCHY[_normalize_role(role_a)] > ROLE_HIERARCHY[_normalize_role(role_b)]


def is_role_at_least(role_a: RoleEnum | str, role_b: RoleEnum | str) -> bool:
    return ROLE_HIERARCHY[_normalize_role(role_a)] >= ROLE_HIERARCHY[_normalize_role(role_b)]


def highest_role(roles: Iterable[RoleEnum | str]) -> RoleEnum:
    highest = RoleEnum.MEMBER
    for role in roles:
        if is_role_higher(role, highest):
            highest = _normalize_role(role)
    return highest


# Permission matrix display (admin settings UI)

_MATRIX_CATEGORIES: list[tuple[str, str]] = [
    ("Consultations", "consultation"),
    ("Proposals", "proposal"),
    ("Contracts", "contract"),
    ("Invoices", "invoice"),
    ("Team Management", "member"),
    ("Settings", "settings"),
    ("Branding", "branding"),
    ("Form Options", "form_options"),
    ("Billing", "billing"),
    ("Subscription", "subscription"),
    ("Templates", "template"),
    ("Contract Templates", "contract_template"),
    ("Packages", "packages"),
    ("Add-ons", "addons"),
    ("Agency Profile", "profile"),
    ("Analytics", "analytics"),
    ("Activity", "audit"),
    ("Data & Compliance", "data"),
    ("Agency", "agency"),
    ("AI", "ai"),
]


def _label_for(permission: str) -> str:
    resource, action = permission.split(":", 1)
    verb, _, scope = action.partition("_")
    if scope in {"own", "all"}:
        return f"{verb.capitalize()} {scope} {resource.replace('_', ' ')}s"
    return f"{action.replace('_', ' ').capitalize()} {resource.replace('_', ' ')}"


def get_permission_matrix() -> list[dict]:
    """
    Structured permission matrix grouped by category for display.
    """
    matrix = []
    for category, resource in _MATRIX_CATEGORIES:
        rows = [
            {
                "key": permission,
                "label": _label_for(permission),
                **{role.value: role in allowed for role in RoleEnum},
            }
            for permission, allowed in PERMISSIONS.items()
            if permission.split(":", 1)[0] == resource
        ]
        if rows:
            matrix.append({"category": category, "permissions": rows})
    return matrix
