# Overview: Shared business vocabulary; values are persisted as upper-case strings.

"""
Enumerations shared by models, services and routes.

Every enum is a str subclass so members compare equal to their stored column
values (Item.status == ItemStatus.SOLD works against a loaded row) and
serialize to JSON without conversion.
"""

from __future__ import annotations

from enum import Enum


class SubscriptionStatus(str, Enum):
    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"
    SUSPENDED = "SUSPENDED"


# Statuses under which gated features remain usable
SUBSCRIPTION_IN_GOOD_STANDING = frozenset({SubscriptionStatus.TRIAL, SubscriptionStatus.ACTIVE})


class SubscriptionTier(str, Enum):
    """
    Subscription tiers in ascending order: BASIC < PRO < ENTERPRISE.

    Ordering is by declaration position, so comparisons never depend on the
    string values.
    """
    BASIC = "BASIC"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    def _check(self, other):
        if isinstance(other, str) and not isinstance(other, SubscriptionTier):
            try:
                other = SubscriptionTier(other)
            except ValueError:
                return NotImplemented
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return other.rank

    def __lt__(self, other):
        other_rank = self._check(other)
        return other_rank if other_rank is NotImplemented else self.rank < other_rank

    def __le__(self, other):
        other_rank = self._check(other)
        return other_rank if other_rank is NotImplemented else self.rank <= other_rank

    def __gt__(self, other):
        other_rank = self._check(other)
        return other_rank if other_rank is NotImplemented else self.rank > other_rank

    def __ge__(self, other):
        other_rank = self._check(other)
        return other_rank if other_rank is NotImplemented else self.rank >= other_rank


_TIER_ORDER = tuple(SubscriptionTier)


class ConsignorStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    DEACTIVATED = "DEACTIVATED"
    REJECTED = "REJECTED"


class ItemStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    SOLD = "SOLD"
    REMOVED = "REMOVED"


class ItemCondition(str, Enum):
    NEW = "NEW"              # Brand new, tags attached
    LIKE_NEW = "LIKE_NEW"    # Barely used
    GOOD = "GOOD"            # Normal wear
    FAIR = "FAIR"            # Visible wear, still functional
    POOR = "POOR"            # Significant wear


class TransactionStatus(str, Enum):
    COMPLETED = "COMPLETED"
    VOIDED = "VOIDED"


class PaymentMethod(str, Enum):
    """How the shopper paid for a sale."""
    CASH = "CASH"
    CARD = "CARD"
    ONLINE = "ONLINE"
    OTHER = "OTHER"


class PayoutStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PAID = "PAID"


# Allowed payout status moves; PAID is terminal
PAYOUT_TRANSITIONS = {
    PayoutStatus.PENDING: frozenset({PayoutStatus.PROCESSING, PayoutStatus.PAID}),
    PayoutStatus.PROCESSING: frozenset({PayoutStatus.PENDING, PayoutStatus.PAID}),
    PayoutStatus.PAID: frozenset(),
}


class PayoutMethod(str, Enum):
    """How the shop paid the consignor."""
    CASH = "CASH"
    CHECK = "CHECK"
    VENMO = "VENMO"
    PAYPAL = "PAYPAL"
    ZELLE = "ZELLE"
    BANK_TRANSFER = "BANK_TRANSFER"
    OTHER = "OTHER"


class StatementStatus(str, Enum):
    GENERATED = "GENERATED"
    SENT = "SENT"
    VIEWED = "VIEWED"


class UserRole(str, Enum):
    OWNER = "OWNER"
    CLERK = "CLERK"
    CONSIGNOR = "CONSIGNOR"
    CUSTOMER = "CUSTOMER"


# Roles allowed into the back office
STAFF_ROLES = (UserRole.OWNER, UserRole.CLERK)
