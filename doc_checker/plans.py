"""
Subscription plan limits.

Plan changes (billing) are out of scope; the limits here seed a user's
`usage_limit` when an account is created or moved to another plan.
"""

from dataclasses import dataclass
from typing import Dict

from .schemas import SubscriptionTier

UNLIMITED = -1


@dataclass(frozen=True)
class PlanLimits:
    analyses_per_month: int


PLAN_LIMITS: Dict[SubscriptionTier, PlanLimits] = {
    SubscriptionTier.FREE: PlanLimits(analyses_per_month=5),
    SubscriptionTier.PRO: PlanLimits(analyses_per_month=100),
    SubscriptionTier.ENTERPRISE: PlanLimits(analyses_per_month=UNLIMITED),
}


def get_plan_limits(tier) -> PlanLimits:
    """Limits for a tier; unknown tiers get the free plan"""
    try:
        return PLAN_LIMITS[SubscriptionTier(tier)]
    except ValueError:
        return PLAN_LIMITS[SubscriptionTier.FREE]
