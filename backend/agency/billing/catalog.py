from typing import Optional

from agency.models.enums import SubscriptionTierEnum

# -1 marks an unlimited allowance.
UNLIMITED = -1

TIER_DEFINITIONS = {
    SubscriptionTierEnum.FREE: {
        "name": "Free",
        "price_monthly": 0,
        "limits": {
            "members": 1,
            "consultations_per_month": 10,
            "ai_generation": 5,
        },
    },
    SubscriptionTierEnum.STARTER: {
        "name": "Starter",
        "price_monthly": 29,
        "limits": {
            "members": 3,
            "consultations_per_month": 50,
            "ai_generation": 25,
        },
    },
    SubscriptionTierEnum.GROWTH: {
        "name": "Growth",
        "price_monthly": 79,
        "limits": {
            "members": 10,
            "consultations_per_month": 200,
            "ai_generation": 100,
        },
    },
    SubscriptionTierEnum.ENTERPRISE: {
        "name": "Enterprise",
        "price_monthly": 199,
        "limits": {
            "members": UNLIMITED,
            "consultations_per_month": UNLIMITED,
            "ai_generation": UNLIMITED,
        },
    },
}

_UPGRADE_LADDER = {
    SubscriptionTierEnum.FREE: SubscriptionTierEnum.STARTER,
    SubscriptionTierEnum.STARTER: SubscriptionTierEnum.GROWTH,
    SubscriptionTierEnum.GROWTH: SubscriptionTierEnum.ENTERPRISE,
}


def normalize_tier(value: SubscriptionTierEnum | str | None) -> SubscriptionTierEnum:
    if isinstance(value, SubscriptionTierEnum):
        return value
    if not value:
        return SubscriptionTierEnum.FREE
    try:
        return SubscriptionTierEnum(value.strip().lower())
    except ValueError:
        return SubscriptionTierEnum.FREE


def get_tier_limit(tier: SubscriptionTierEnum | str | None, limit_key: str) -> int:
    limits = TIER_DEFINITIONS[normalize_tier(tier)]["limits"]
    if limit_key not in limits:
        raise ValueError(f"Unknown limit: {limit_key}")
    return int(limits[limit_key])


def is_unlimited(limit: int) -> bool:
    return limit == UNLIMITED


def suggest_upgrade_tier(tier: SubscriptionTierEnum | str | None) -> Optional[str]:
    upgrade = _UPGRADE_LADDER.get(normalize_tier(tier))
    return upgrade.value if upgrade else None
