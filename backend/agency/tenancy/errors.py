"""
Custom exceptions for tenant resolution, authorization, and counters.

Messages are safe to surface to callers: they never carry SQL, stack
details, or the role that would have been required.
"""


class TenancyError(Exception):
    """Base class for tenancy failures mapped to HTTP responses."""

    status_code = 500
    code = "tenancy_error"
    default_message = "Tenancy error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class NoTenantAccess(TenancyError):
    """Raised when the actor has no usable membership in any tenant."""

    status_code = 403
    code = "no_tenant_access"
    default_message = "No tenant access. Create or join an agency to continue."


class PermissionDenied(TenancyError):
    """Raised when the caller's role lacks the required capability."""

    status_code = 403
    code = "permission_denied"
    default_message = "Permission denied"

    def __init__(self, permission: str | None = None):
        self.permission = permission
        super().__init__(f"Permission denied: {permission}" if permission else None)


class NotFound(TenancyError):
    """
    Raised when a resource is absent or belongs to another tenant.
    The two cases are deliberately indistinguishable.
    """

    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class TenantProfileMissing(TenancyError):
    """Raised when a tenant has no counter row. This is a provisioning bug."""

    status_code = 500
    code = "tenant_profile_missing"
    default_message = "Tenant profile missing"

    def __init__(self, tenant_id=None):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant profile missing for tenant {tenant_id}")
