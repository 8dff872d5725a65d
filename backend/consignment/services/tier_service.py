# Overview: Subscription tier gate for paid features.

"""
Tier authorization

A feature declares the minimum SubscriptionTier it needs. Access is granted
when the organization's subscription is in good standing (TRIAL or ACTIVE)
and its tier is at least the required one. The evaluation is stateless; the
route decorator records denials in the security audit trail.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..enums import SUBSCRIPTION_IN_GOOD_STANDING, SubscriptionTier
from ..models import Organization
from ..validation import AuthorizationError


@dataclass(frozen=True)
class TierDecision:
    allowed: bool
    status_code: int = 200
    reason: str | None = None
    current_tier: SubscriptionTier | None = None
    required_tier: SubscriptionTier | None = None
    upgrade_required: bool = False

    def raise_for_denial(self) -> None:
        if self.allowed:
            return
        raise AuthorizationError(
            self.reason,
            status_code=self.status_code,
            upgrade_required=self.upgrade_required,
            details={
                "current_tier": self.current_tier.value if self.current_tier else None,
                "required_tier": self.required_tier.value if self.required_tier else None,
            },
        )


def evaluate_tier_access(organization: Organization | None, required_tier) -> TierDecision:
    """
    Decide whether an organization may use a feature gated at required_tier.

    - no organization: deny with 401
    - subscription not TRIAL/ACTIVE: deny with 402, upgrade required
    - tier below required_tier: deny with 402, upgrade required
    """
    required = SubscriptionTier(required_tier)

    if organization is None:
        return TierDecision(
            allowed=False,
            status_code=401,
            reason="Organization could not be resolved",
            required_tier=required,
        )

    current = organization.tier
    status = organization.status

    if status not in SUBSCRIPTION_IN_GOOD_STANDING:
        return TierDecision(
            allowed=False,
            status_code=402,
            reason=f"Subscription is {status.value}; an active subscription is required",
            current_tier=current,
            required_tier=required,
            upgrade_required=True,
        )

    if current < required:
        return TierDecision(
            allowed=False,
            status_code=402,
            reason=f"This feature requires the {required.value} tier",
            current_tier=current,
            required_tier=required,
            upgrade_required=True,
        )

    return TierDecision(allowed=True, current_tier=current, required_tier=required)

