# Overview: Organization (tenant) profile and subscription management.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..enums import SubscriptionStatus, SubscriptionTier
from ..models import Organization
from ..money import percentage_to_bps
from ..validation import ModelValidationPolicy, NotFoundError, ValidationError, coerce_enum, validate_payload
from consignment.time_utils import utcnow


PROFILE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "default_split_percentage", "quickbooks_connected", "stripe_connected"},
)


def get_organization(org_id: int) -> Organization:
    org = db.session.get(Organization, org_id)
    if not org:
        raise NotFoundError("Organization not found")
    return org


def list_organizations(*, include_inactive: bool = True) -> list[Organization]:
    query = db.session.query(Organization)
    if not include_inactive:
        query = query.filter(Organization.is_active.is_(True))
    return query.order_by(Organization.id.asc()).all()


def update_organization(org_id: int, payload: dict) -> Organization:
    """
    Update the shop profile: name, default split and integration flags.
    default_split_percentage applies to consignors created afterwards.
    """
    org = get_organization(org_id)
    patch = validate_payload(model=Organization, payload=payload, policy=PROFILE_POLICY, partial=True)

    if "default_split_percentage" in patch:
        org.default_split_bps = percentage_to_bps(patch.pop("default_split_percentage"), "default_split_percentage")

    for key, value in patch.items():
        setattr(org, key, value)

    db.session.commit()
    return org


def update_subscription(org_id: int, *, status=None, tier=None) -> Organization:
    """
    Change subscription status and/or tier. Moving into ACTIVE stamps
    subscription_started_at when it was never set.
    """
    if status is None and tier is None:
        raise ValidationError("status or tier is required")

    org = get_organization(org_id)

    if status is not None:
        new_status = coerce_enum(SubscriptionStatus, status, "status")
        if new_status == SubscriptionStatus.ACTIVE.value and org.subscription_started_at is None:
            org.subscription_started_at = utcnow()
        org.subscription_status = new_status

    if tier is not None:
        org.subscription_tier = coerce_enum(SubscriptionTier, tier, "tier")

    db.session.commit()
    current_app.logger.info(
        "Organization %s subscription now %s/%s", org.id, org.subscription_status, org.subscription_tier
    )
    return org
