from .users import User
from .tenants import Tenant
from .tenant_profiles import TenantProfile
from .memberships import Membership
from .activity_logs import ActivityLog
from .consultations import Consultation, ConsultationDraft
from .proposals import Proposal
from .contracts import Contract
from .invoices import Invoice

__all__ = [
    "ActivityLog",
    "Consultation",
    "ConsultationDraft",
    "Contract",
    "Invoice",
    "Membership",
    "Proposal",
    "Tenant",
    "TenantProfile",
    "User",
]
