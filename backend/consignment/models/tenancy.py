from __future__ import annotations

from ..extensions import db
from ..enums import SubscriptionStatus, SubscriptionTier
from ..money import bps_to_percentage
from consignment.time_utils import to_utc_z

class Organization(db.Model):
    """
    Multi-tenant root: every consignment shop is an Organization.

    All consignors, items, transactions, payouts and statements belong to
    exactly one organization and are deleted with it. No data may cross
    organization boundaries.

    Subscription status and tier gate access to paid features (see
    services/tier_service.py).
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(100), nullable=False, unique=True, index=True)

    subscription_status = db.Column(db.String(16), nullable=False, default=SubscriptionStatus.TRIAL.value, index=True)
    subscription_tier = db.Column(db.String(16), nullable=False, default=SubscriptionTier.BASIC.value)
    subscription_started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    trial_ends_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Consignor share used when a consignor has no explicit rate (basis points)
    default_split_bps = db.Column(db.Integer, nullable=False, default=6000)

    # Integration flags only; sync protocols live outside this service
    quickbooks_connected = db.Column(db.Boolean, nullable=False, default=False)
    stripe_connected = db.Column(db.Boolean, nullable=False, default=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    users = db.relationship("User", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)
    consignors = db.relationship("Consignor", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)
    items = db.relationship("Item", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)
    transactions = db.relationship("Transaction", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)
    payouts = db.relationship("Payout", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)
    statements = db.relationship("Statement", back_populates="organization", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self) -> str:
        return f"<Organization id={self.id} slug={self.slug!r}>"

    @property
    def tier(self) -> SubscriptionTier:
        return SubscriptionTier(self.subscription_tier)

    @property
    def status(self) -> SubscriptionStatus:
        return SubscriptionStatus(self.subscription_status)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "subscription_status": self.subscription_status,
            "subscription_tier": self.subscription_tier,
            "subscription_started_at": to_utc_z(self.subscription_started_at),
            "trial_ends_at": to_utc_z(self.trial_ends_at),
            "default_split_bps": self.default_split_bps,
            "default_split_percentage": str(bps_to_percentage(self.default_split_bps)),
            "quickbooks_connected": self.quickbooks_connected,
            "stripe_connected": self.stripe_connected,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
