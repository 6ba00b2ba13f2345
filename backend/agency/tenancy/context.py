"""
Request-scoped tenant context produced by the resolver.
"""

from dataclasses import dataclass
from typing import Optional, Union

from agency.models.enums import RoleEnum


@dataclass(frozen=True)
class TenantContext:
    """
    The (tenant, actor, role) triple governing one request's authorization.
    Never persisted; built once per request and not mutated afterwards.
    """

    tenant_id: int
    actor_id: int
    role: RoleEnum
    is_impersonated: bool = False

    @property
    def is_member_role(self) -> bool:
        return self.role == RoleEnum.MEMBER


@dataclass(frozen=True)
class ResolutionHints:
    """
    Optional inputs from the transport layer.

    ``tenant_hint`` is the tenant previously selected by the client (id or
    slug). ``impersonated_tenant_id`` is only honoured when
    ``is_platform_admin`` was established by an independent check.
    """

    tenant_hint: Optional[Union[int, str]] = None
    impersonated_tenant_id: Optional[Union[int, str]] = None
    is_platform_admin: bool = False
