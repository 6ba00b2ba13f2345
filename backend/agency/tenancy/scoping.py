"""
Helpers to ensure database access stays tenant-scoped.

Every helper takes a TenantContext rather than a bare tenant id, so the
tenant predicate cannot be forgotten at the call site.
"""

from functools import wraps
import inspect

from sqlalchemy.orm import Query, Session

from agency.tenancy.context import TenantContext
from agency.tenancy.errors import NoTenantAccess, NotFound, PermissionDenied
from agency.tenancy.permissions import authorize, ownership_permissions


def _ensure_model_has_tenant_id(model) -> None:
    if not hasattr(model, "tenant_id"):
        name = getattr(model, "__name__", str(model))
        raise ValueError(f"{name} does not define tenant_id and cannot be tenant-scoped.")


def _owner_column(model, owner_attr: str | None):
    attr = owner_attr or getattr(model, "__owner_attr__", None)
    if not attr or not hasattr(model, attr):
        name = getattr(model, "__name__", str(model))
        raise ValueError(f"{name} does not define an owner column.")
    return getattr(model, attr)


def _ensure_ctx(ctx) -> TenantContext:
    if not isinstance(ctx, TenantContext) or ctx.tenant_id is None:
        raise NoTenantAccess("Tenant context required")
    return ctx


def scoped_query(db: Session, model, ctx: TenantContext) -> Query:
    """
    Return a query constrained to the context's tenant.

    Example:
        scoped_query(db, Consultation, ctx).all()
    """
    _ensure_model_has_tenant_id(model)
    ctx = _ensure_ctx(ctx)
    return db.query(model).filter(model.tenant_id == ctx.tenant_id)


def actor_scoped_query(db: Session, model, ctx: TenantContext, owner_attr: str | None = None) -> Query:
    """
    Tenant-scoped query that member-role actors only see their own rows from.
    Used for actor-private resources such as drafts.
    """
    query = scoped_query(db, model, ctx)
    if ctx.is_member_role:
        query = query.filter(_owner_column(model, owner_attr) == ctx.actor_id)
    return query


def ownership_scoped_query(
    db: Session,
    model,
    ctx: TenantContext,
    resource_type: str,
    action: str = "view",
) -> Query:
    """
    Apply the ownership-qualified permission pair for ``resource_type``.

    ``<type>:<action>_all`` scopes to the tenant, ``<type>:<action>_own``
    additionally narrows to rows the actor created, and holding neither
    raises PermissionDenied.
    """
    permission_all, permission_own = ownership_permissions(resource_type, action)
    query = scoped_query(db, model, ctx)
    if authorize(ctx.role, permission_all):
        return query
    if authorize(ctx.role, permission_own):
        return query.filter(_owner_column(model, None) == ctx.actor_id)
    raise PermissionDenied(permission_own)


def _first_or_404(query: Query, model, object_id):
    resource = query.filter(model.id == object_id).first()
    if resource is None:
        raise NotFound("Resource not found")
    return resource


def get_scoped_or_404(db: Session, model, ctx: TenantContext, object_id):
    """
    Fetch by id + tenant_id or raise NotFound. A row owned by another tenant
    is reported exactly like a missing row.
    """
    return _first_or_404(scoped_query(db, model, ctx), model, object_id)


def get_actor_scoped_or_404(db: Session, model, ctx: TenantContext, object_id, owner_attr: str | None = None):
    return _first_or_404(actor_scoped_query(db, model, ctx, owner_attr), model, object_id)


def get_accessible_or_404(
    db: Session,
    model,
    ctx: TenantContext,
    object_id,
    resource_type: str,
    action: str = "view",
):
    """
    Fetch a row the context may ``action`` on. Rows outside the actor's reach
    (other tenant, or another user's row under ``_own``) raise NotFound.
    """
    query = ownership_scoped_query(db, model, ctx, resource_type, action)
    return _first_or_404(query, model, object_id)


def assert_belongs_to_tenant(resource, ctx: TenantContext, *, not_found_ok: bool = False):
    """
    Guard that a loaded resource matches the context's tenant.
    """
    if resource is None:
        if not_found_ok:
            return None
        raise NotFound("Resource not found")

    if getattr(resource, "tenant_id", None) != ctx.tenant_id:
        raise NotFound("Resource not found")
    return resource


def tenant_scoped(handler):
    """
    Decorator that ensures a TenantContext is passed as ``ctx``.

    Example:
        @tenant_scoped
        def handler(db, *, ctx: TenantContext, ...):
            ...
    """

    def _check(kwargs):
        _ensure_ctx(kwargs.get("ctx"))

    if inspect.iscoroutinefunction(handler):
        @wraps(handler)
        async def async_wrapper(*args, **kwargs):
            _check(kwargs)
            return await handler(*args, **kwargs)

        return async_wrapper

    @wraps(handler)
    def sync_wrapper(*args, **kwargs):
        _check(kwargs)
        return handler(*args, **kwargs)

    return sync_wrapper
