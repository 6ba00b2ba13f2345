"""
Tenant context resolution.

Resolution order, first valid match wins:

1. platform-admin impersonation of a live tenant (role forced to owner)
2. the tenant hint carried by the client (session/header)
3. the actor's stored default tenant
4. the actor's highest-ranked active membership

Hints that fail verification are discarded rather than treated as errors.
The resolver is read-only, so calling it twice in one request is safe.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence, Tuple, Union

from agency.models.enums import RoleEnum
from agency.tenancy.constants import ROLE_RANK
from agency.tenancy.context import ResolutionHints, TenantContext
from agency.tenancy.errors import NoTenantAccess

logger = logging.getLogger(__name__)

TenantHint = Union[int, str]


class MembershipRepository(Protocol):
    """Read-only lookups the resolver needs from storage."""

    def find_live_tenant_id(self, tenant_hint: TenantHint) -> Optional[int]:
        """Tenant id for an id-or-slug hint, or None if absent or deleted."""

    def get_active_role(self, user_id: int, tenant_id: int) -> Optional[RoleEnum]:
        """Role of an active membership in a live tenant, else None."""

    def get_default_tenant_id(self, user_id: int) -> Optional[int]:
        ...

    def list_active_memberships(self, user_id: int) -> Sequence[Tuple[int, RoleEnum]]:
        """(tenant_id, role) pairs in membership creation order."""


class TenantContextResolver:
    def __init__(self, repository: MembershipRepository):
        self.repository = repository

    def resolve(self, actor_id: int, hints: Optional[ResolutionHints] = None) -> TenantContext:
        hints = hints or ResolutionHints()

        ctx = self._from_impersonation(actor_id, hints)
        if ctx is not None:
            return ctx

        ctx = self._from_hint(actor_id, hints.tenant_hint, source="hint")
        if ctx is not None:
            return ctx

        default_tenant_id = self.repository.get_default_tenant_id(actor_id)
        ctx = self._from_hint(actor_id, default_tenant_id, source="default")
        if ctx is not None:
            return ctx

        ctx = self._from_highest_membership(actor_id)
        if ctx is not None:
            return ctx

        logger.info("tenancy.no_access", extra={"user_id": actor_id})
        raise NoTenantAccess()

    def switch_tenant(self, actor_id: int, tenant_hint: TenantHint) -> TenantContext:
        """
        Validate an explicit tenant switch. Unlike passive hints, an invalid
        target is an error here.
        """
        ctx = self._from_hint(actor_id, tenant_hint, source="switch")
        if ctx is None:
            raise NoTenantAccess("You do not have access to this agency")
        return ctx

    def _from_impersonation(self, actor_id: int, hints: ResolutionHints) -> Optional[TenantContext]:
        if hints.impersonated_tenant_id is None:
            return None
        if not hints.is_platform_admin:
            logger.warning(
                "tenancy.impersonation_rejected",
                extra={"user_id": actor_id, "target": str(hints.impersonated_tenant_id)},
            )
            return None
        tenant_id = self.repository.find_live_tenant_id(hints.impersonated_tenant_id)
        if tenant_id is None:
            return None
        logger.info(
            "tenancy.resolved",
            extra={"user_id": actor_id, "tenant_id": tenant_id, "source": "impersonation"},
        )
        return TenantContext(
            tenant_id=tenant_id,
            actor_id=actor_id,
            role=RoleEnum.OWNER,
            is_impersonated=True,
        )

    def _from_hint(
        self,
        actor_id: int,
        tenant_hint: Optional[TenantHint],
        *,
        source: str,
    ) -> Optional[TenantContext]:
        if tenant_hint is None or (isinstance(tenant_hint, str) and not tenant_hint.strip()):
            return None
        tenant_id = self.repository.find_live_tenant_id(tenant_hint)
        if tenant_id is None:
            logger.debug("tenancy.hint_discarded", extra={"user_id": actor_id, "source": source})
            return None
        role = self.repository.get_active_role(actor_id, tenant_id)
        if role is None:
            logger.debug(
                "tenancy.hint_discarded",
                extra={"user_id": actor_id, "tenant_id": tenant_id, "source": source},
            )
            return None
        logger.debug(
            "tenancy.resolved",
            extra={"user_id": actor_id, "tenant_id": tenant_id, "source": source},
        )
        return TenantContext(tenant_id=tenant_id, actor_id=actor_id, role=RoleEnum(role))

    def _from_highest_membership(self, actor_id: int) -> Optional[TenantContext]:
        memberships = list(self.repository.list_active_memberships(actor_id))
        if not memberships:
            return None
        # sorted() is stable, so equal ranks keep membership creation order.
        tenant_id, role = sorted(
            memberships,
            key=lambda item: ROLE_RANK.get(RoleEnum(item[1]), len(ROLE_RANK)),
        )[0]
        logger.debug(
            "tenancy.resolved",
            extra={"user_id": actor_id, "tenant_id": tenant_id, "source": "membership"},
        )
        return TenantContext(tenant_id=tenant_id, actor_id=actor_id, role=RoleEnum(role))
