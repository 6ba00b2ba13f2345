from .users import create_user, get_user, get_user_by_email, set_default_tenant
from .audit import AuditAction, AuditRecorder, EntityType, list_activity
from .memberships import (
    SqlMembershipRepository,
    accept_invitation,
    add_membership,
    change_member_role,
    invite_member,
    list_memberships,
    remove_member,
)
from .tenants import (
    cancel_deletion,
    create_tenant,
    finalize_due_deletions,
    get_tenant_by_id,
    get_tenant_by_slug,
    list_tenants_for_user,
    schedule_deletion,
)
from .consultations import (
    create_consultation,
    delete_consultation,
    get_consultation,
    list_consultations,
    update_consultation,
)
from .proposals import create_proposal, get_proposal, list_proposals, set_proposal_status
from .contracts import create_contract, get_contract, list_contracts, send_contract
from .invoices import create_invoice, get_invoice, list_invoices, set_invoice_status
from .ai_usage import get_ai_usage, record_ai_generation
