"Tenancy utilities: context resolution, RBAC, and scoping helpers."

from .context import ResolutionHints, TenantContext  # noqa: F401
from .errors import NoTenantAccess, NotFound, PermissionDenied, TenancyError, TenantProfileMissing  # noqa: F401
from .middleware import RequestContextMiddleware  # noqa: F401
