# Activity logs record who did what inside an agency. Writes are
# best-effort: the recorder opens its own session so a failed insert
# can never roll back (or be rolled back by) the business transaction
# that triggered it.

import logging
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional

from sqlalchemy.orm import Session

from agency.core.config import settings
from agency.core.db import SessionLocal
from agency.core.metrics import record_audit_failure
from agency.core.request_meta import RequestMeta, resolve_request_meta
from agency.models.activity_logs import ActivityLog
from agency.tenancy.context import TenantContext
from agency.tenancy.permissions import require_permission
from agency.tenancy.scoping import scoped_query

logger = logging.getLogger(__name__)


class AuditAction(str, Enum):
    AGENCY_CREATED = "agency.created"
    AGENCY_UPDATED = "agency.updated"
    AGENCY_BRANDING_UPDATED = "agency.branding_updated"
    AGENCY_DELETED = "agency.deleted"
    AGENCY_DELETION_SCHEDULED = "agency.deletion_scheduled"
    AGENCY_DELETION_CANCELLED = "agency.deletion_cancelled"

    MEMBER_INVITED = "member.invited"
    MEMBER_ACCEPTED = "member.accepted"
    MEMBER_REMOVED = "member.removed"
    MEMBER_ROLE_CHANGED = "member.role_changed"

    CONSULTATION_CREATED = "consultation.created"
    CONSULTATION_UPDATED = "consultation.updated"
    CONSULTATION_DELETED = "consultation.deleted"
    CONSULTATION_COMPLETED = "consultation.completed"

    PROPOSAL_CREATED = "proposal.created"
    PROPOSAL_SENT = "proposal.sent"
    PROPOSAL_VIEWED = "proposal.viewed"
    PROPOSAL_ACCEPTED = "proposal.accepted"
    PROPOSAL_DECLINED = "proposal.declined"
    PROPOSAL_UPDATED = "proposal.updated"
    PROPOSAL_DELETED = "proposal.deleted"

    CONTRACT_CREATED = "contract.created"
    CONTRACT_SENT = "contract.sent"
    CONTRACT_UPDATED = "contract.updated"
    CONTRACT_DELETED = "contract.deleted"
    INVOICE_CREATED = "invoice.created"
    INVOICE_UPDATED = "invoice.updated"
    AI_GENERATED = "ai.generated"

    SETTINGS_UPDATED = "settings.updated"
    FORM_OPTIONS_UPDATED = "form_options.updated"
    TEMPLATE_CREATED = "template.created"
    TEMPLATE_UPDATED = "template.updated"
    TEMPLATE_DELETED = "template.deleted"

    LOGIN = "security.login"
    LOGOUT = "security.logout"
    PASSWORD_CHANGED = "security.password_changed"
    API_KEY_GENERATED = "security.api_key_generated"

    DATA_EXPORTED = "data.exported"


class EntityType(str, Enum):
    AGENCY = "agency"
    MEMBER = "member"
    CONSULTATION = "consultation"
    PROPOSAL = "proposal"
    CONTRACT = "contract"
    INVOICE = "invoice"
    TEMPLATE = "template"
    FORM_OPTION = "form_option"
    USER = "user"


def _value(item) -> Optional[str]:
    if item is None:
        return None
    if isinstance(item, Enum):
        return str(item.value)
    return str(item)


def _build_entry(
    tenant_id: int,
    actor_id: Optional[int],
    action,
    entity_type,
    entity_id,
    old_values: Optional[Mapping[str, Any]],
    new_values: Optional[Mapping[str, Any]],
    *,
    is_impersonated: bool,
    meta: Optional[RequestMeta],
    metadata: Optional[Mapping[str, Any]],
) -> ActivityLog:
    payload = dict(metadata or {})
    if meta is not None and meta.path:
        payload.setdefault("path", meta.path)
    return ActivityLog(
        tenant_id=tenant_id,
        actor_id=actor_id,
        action=_value(action),
        entity_type=_value(entity_type),
        entity_id=_value(entity_id),
        old_values=dict(old_values) if old_values is not None else None,
        new_values=dict(new_values) if new_values is not None else None,
        metadata_json=payload,
        is_impersonated=is_impersonated,
        request_id=meta.request_id if meta else None,
        client_ip=meta.client_ip if meta else None,
        user_agent=meta.user_agent if meta else None,
    )


class AuditRecorder:
    """
    Append activity entries without ever failing the caller.

    ``session_factory`` returns a fresh Session; every write opens and closes
    its own. Failures are logged and counted, then dropped.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal, *, enabled: Optional[bool] = None):
        self.session_factory = session_factory
        self.enabled = settings.AUDIT_ENABLED if enabled is None else enabled

    def record(
        self,
        ctx: TenantContext,
        action,
        entity_type,
        entity_id=None,
        old_values: Optional[Mapping[str, Any]] = None,
        new_values: Optional[Mapping[str, Any]] = None,
        *,
        request=None,
        request_meta=None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> None:
        def build() -> list[ActivityLog]:
            return [
                _build_entry(
                    ctx.tenant_id,
                    ctx.actor_id,
                    action,
                    entity_type,
                    entity_id,
                    old_values,
                    new_values,
                    is_impersonated=ctx.is_impersonated,
                    meta=resolve_request_meta(request=request, request_meta=request_meta),
                    metadata=metadata,
                )
            ]

        self._write(build, action=_value(action), tenant_id=ctx.tenant_id)

    def record_many(
        self,
        ctx: TenantContext,
        entries: Iterable[Mapping[str, Any]],
        *,
        request=None,
        request_meta=None,
    ) -> None:
        """
        Write several entries in one transaction. Each mapping carries
        ``action`` and ``entity_type`` plus the optional ``entity_id``,
        ``old_values``, ``new_values``, and ``metadata`` keys.
        """

        def build() -> list[ActivityLog]:
            meta = resolve_request_meta(request=request, request_meta=request_meta)
            return [
                _build_entry(
                    ctx.tenant_id,
                    ctx.actor_id,
                    entry["action"],
                    entry["entity_type"],
                    entry.get("entity_id"),
                    entry.get("old_values"),
                    entry.get("new_values"),
                    is_impersonated=ctx.is_impersonated,
                    meta=meta,
                    metadata=entry.get("metadata"),
                )
                for entry in entries
            ]

        self._write(build, action="batch", tenant_id=ctx.tenant_id)

    def record_system(
        self,
        tenant_id: int,
        action,
        entity_type,
        entity_id=None,
        old_values: Optional[Mapping[str, Any]] = None,
        new_values: Optional[Mapping[str, Any]] = None,
        *,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Entries without an actor, e.g. scheduled jobs."""

        def build() -> list[ActivityLog]:
            return [
                _build_entry(
                    tenant_id,
                    None,
                    action,
                    entity_type,
                    entity_id,
                    old_values,
                    new_values,
                    is_impersonated=False,
                    meta=None,
                    metadata=metadata,
                )
            ]

        self._write(build, action=_value(action), tenant_id=tenant_id)

    def _write(
        self,
        build: Callable[[], list[ActivityLog]],
        *,
        action: Optional[str],
        tenant_id: Optional[int],
    ) -> None:
        if not self.enabled:
            return
        # Building the rows sits inside the guard too: malformed values
        # count as a failed write, never as an error for the caller.
        try:
            rows = build()
            if not rows:
                return
            # Closing the session rolls back anything left uncommitted.
            with self.session_factory() as session:
                session.add_all(rows)
                session.commit()
        except Exception:
            logger.exception("audit.write_failed", extra={"tenant_id": tenant_id, "action": action})
            record_audit_failure(action)
            return
        logger.debug("audit.logged", extra={"tenant_id": tenant_id, "action": action, "count": len(rows)})


def list_activity(
    db: Session,
    ctx: TenantContext,
    *,
    limit: int = 50,
    offset: int = 0,
    entity_type: Optional[str] = None,
    entity_id=None,
) -> list[ActivityLog]:
    require_permission(ctx, "audit:view")
    query = scoped_query(db, ActivityLog, ctx)
    if entity_type is not None:
        query = query.filter(ActivityLog.entity_type == _value(entity_type))
    if entity_id is not None:
        query = query.filter(ActivityLog.entity_id == _value(entity_id))
    return (
        query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
