"""
Constants for tenancy concerns.
"""

from agency.models.enums import RoleEnum

# Lower rank wins when choosing among an actor's memberships.
ROLE_RANK = {
    RoleEnum.OWNER: 0,
    RoleEnum.ADMIN: 1,
    RoleEnum.MEMBER: 2,
}

# Generic "at least as privileged as" comparisons only; capability
# checks always go through the permission matrix.
ROLE_HIERARCHY = {
    RoleEnum.OWNER: 100,
    RoleEnum.ADMIN: 50,
    RoleEnum.MEMBER: 10,
}

# Resource types whose rows are owned by the user who created them.
OWNERSHIP_RESOURCE_TYPES = ("consultation", "proposal", "contract")
