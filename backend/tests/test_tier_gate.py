"""
Tier authorization tests.

Verifies:
- Organizations below the required tier get 402 with upgrade_required
- PAST_DUE / CANCELLED / SUSPENDED subscriptions are denied regardless of tier
- A missing organization is a 401
- Higher tiers satisfy lower requirements
- Gated routes answer 402 and audit the denial
"""

import pytest

from consignment.enums import SubscriptionStatus, SubscriptionTier
from consignment.models import Organization, SecurityEvent
from consignment.services.tier_service import evaluate_tier_access
from consignment.validation import AuthorizationError


def _org(tier, status=SubscriptionStatus.ACTIVE):
    return Organization(name="Shop", slug="shop", subscription_tier=tier.value, subscription_status=status.value)


class TestEvaluateTierAccess:

    def test_basic_denied_pro_feature(self):
        decision = evaluate_tier_access(_org(SubscriptionTier.BASIC), SubscriptionTier.PRO)
        assert decision.allowed is False
        assert decision.status_code == 402
        assert decision.upgrade_required is True
        assert decision.current_tier == SubscriptionTier.BASIC
        assert decision.required_tier == SubscriptionTier.PRO
        assert "PRO" in decision.reason

    def test_pro_allowed_pro_feature(self):
        decision = evaluate_tier_access(_org(SubscriptionTier.PRO), SubscriptionTier.PRO)
        assert decision.allowed is True
        assert decision.status_code == 200

    def test_enterprise_satisfies_pro(self):
        decision = evaluate_tier_access(_org(SubscriptionTier.ENTERPRISE), "PRO")
        assert decision.allowed is True

    def test_trial_counts_as_good_standing(self):
        decision = evaluate_tier_access(
            _org(SubscriptionTier.PRO, SubscriptionStatus.TRIAL), SubscriptionTier.PRO
        )
        assert decision.allowed is True

    @pytest.mark.parametrize("status", [
        SubscriptionStatus.PAST_DUE,
        SubscriptionStatus.CANCELLED,
        SubscriptionStatus.SUSPENDED,
    ])
    def test_bad_standing_denied_even_on_enterprise(self, status):
        decision = evaluate_tier_access(_org(SubscriptionTier.ENTERPRISE, status), SubscriptionTier.BASIC)
        assert decision.allowed is False
        assert decision.status_code == 402
        assert decision.upgrade_required is True

    def test_missing_organization_is_401(self):
        decision = evaluate_tier_access(None, SubscriptionTier.BASIC)
        assert decision.allowed is False
        assert decision.status_code == 401
        assert decision.upgrade_required is False

    def test_raise_for_denial_carries_tiers(self):
        decision = evaluate_tier_access(_org(SubscriptionTier.BASIC), SubscriptionTier.PRO)
        with pytest.raises(AuthorizationError) as exc:
            decision.raise_for_denial()
        body = exc.value.to_dict()
        assert exc.value.status_code == 402
        assert body["code"] == "payment_required"
        assert body["current_tier"] == "BASIC"
        assert body["required_tier"] == "PRO"
        assert body["upgrade_required"] is True

    def test_allowed_decision_does_not_raise(self):
        evaluate_tier_access(_org(SubscriptionTier.PRO), SubscriptionTier.PRO).raise_for_denial()


def test_tier_ordering():
    assert SubscriptionTier.BASIC < SubscriptionTier.PRO < SubscriptionTier.ENTERPRISE
    assert SubscriptionTier.ENTERPRISE >= "PRO"
    assert not SubscriptionTier.BASIC >= SubscriptionTier.PRO


class TestGatedRoutes:

    def test_basic_org_gets_402_on_reports(self, client, db_session, org_b, owner_b_headers):
        resp = client.get("/api/reports/sales", headers=owner_b_headers)
        assert resp.status_code == 402
        assert resp.json["code"] == "payment_required"
        assert resp.json["current_tier"] == "BASIC"
        assert resp.json["required_tier"] == "PRO"
        assert resp.json["upgrade_required"] is True

        events = db_session.query(SecurityEvent).filter_by(org_id=org_b.id, event_type="TIER_DENIED").all()
        assert len(events) == 1
        assert events[0].success is False

    def test_pro_org_passes_gate(self, client, db_session, owner_headers):
        resp = client.get("/api/reports/sales", headers=owner_headers)
        assert resp.status_code == 200
        assert resp.json["transaction_count"] == 0

    def test_past_due_org_loses_access(self, client, db_session, org_a, owner_headers):
        org_a.subscription_status = SubscriptionStatus.PAST_DUE.value
        db_session.commit()

        resp = client.get("/api/reports/sales", headers=owner_headers)
        assert resp.status_code == 402
        assert resp.json["upgrade_required"] is True

    def test_gate_requires_authentication(self, client, db_session):
        resp = client.get("/api/reports/sales")
        assert resp.status_code == 401
