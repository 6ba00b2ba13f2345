from enum import Enum

# Stored as strings with DB check constraints (native enums disabled for easier evolution).


class RoleEnum(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class MembershipStatusEnum(str, Enum):
    ACTIVE = "active"
    INVITED = "invited"
    SUSPENDED = "suspended"


class TenantStatusEnum(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class SubscriptionTierEnum(str, Enum):
    FREE = "free"
    STARTER = "starter"
    GROWTH = "growth"
    ENTERPRISE = "enterprise"


class DocumentStatusEnum(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    PAID = "paid"
    CANCELLED = "cancelled"


class ConsultationStatusEnum(str, Enum):
    DRAFT = "draft"
    COMPLETED = "completed"
    ARCHIVED = "archived"
    CONVERTED = "converted"
