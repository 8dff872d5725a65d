"""
Reporting tests: sales metrics, payout summary, consignor performance and
inventory aging, plus the PRO gate on the report endpoints.
"""

from datetime import date, datetime

import pytest

from consignment.enums import ConsignorStatus
from consignment.models import Item
from consignment.services import payout_service, reporting_service, transaction_service
from consignment.validation import ValidationError
from conftest import make_consignor, make_sale


NOV = (date(2025, 11, 1), date(2025, 11, 30))


def _listed_item(db_session, consignor, sku, price_cents, listed):
    item = Item(
        org_id=consignor.org_id,
        consignor_id=consignor.id,
        sku=sku,
        title=f"Item {sku}",
        price_cents=price_cents,
        created_at=listed,
    )
    db_session.add(item)
    db_session.commit()
    return item


def _sell(db_session, consignor, sku, price_cents, listed, sold):
    item = _listed_item(db_session, consignor, sku, price_cents, listed)
    return transaction_service.create_transaction(
        consignor.org_id, item_id=item.id, payment_method="CARD", sale_date=sold,
    )


def _paid(org_id, consignor_id, txn_ids, paid_on):
    payout = payout_service.build_payout(org_id, consignor_id, *NOV, txn_ids)
    payout = payout_service.update_payout(org_id, payout.id, {"status": "PAID"})
    payout.payout_date = paid_on
    return payout


class TestSalesMetrics:

    def test_totals_and_breakdown(self, db_session, org_a, consignor_a):
        make_sale(db_session, consignor_a, "SC-R1", price_cents=10000)
        make_sale(db_session, consignor_a, "SC-R2", price_cents=2500)
        voided = make_sale(db_session, consignor_a, "SC-R3", price_cents=9900)
        transaction_service.void_transaction(org_a.id, voided.id)

        report = reporting_service.sales_metrics(org_a.id, *NOV)

        assert report["transaction_count"] == 2
        assert report["total_sales_cents"] == 12500
        assert report["total_consignor_cents"] == 7500
        assert report["total_shop_cents"] == 5000
        assert report["average_sale_cents"] == 6250
        assert report["payment_methods"] == [{"payment_method": "CASH", "count": 2, "total_cents": 12500}]
        assert report["top_consignors"][0]["consignor_name"] == "Jane Doe"

    def test_reversed_range_rejected(self, db_session, org_a):
        with pytest.raises(ValidationError):
            reporting_service.sales_metrics(org_a.id, NOV[1], NOV[0])


class TestPayoutSummary:

    def test_paid_and_pending_per_consignor(self, db_session, org_a, consignor_a):
        paid_sale = make_sale(db_session, consignor_a, "SC-R4", price_cents=10000)
        in_pending_payout = make_sale(db_session, consignor_a, "SC-R5", price_cents=2500)
        make_sale(db_session, consignor_a, "SC-R6", price_cents=5000)
        amy = make_consignor(db_session, org_a, "CON-00002", first_name="Amy")
        make_sale(db_session, amy, "SC-R7", price_cents=4000)

        _paid(org_a.id, consignor_a.id, [paid_sale.id], paid_on=date(2025, 11, 20))
        payout_service.build_payout(org_a.id, consignor_a.id, *NOV, [in_pending_payout.id])
        db_session.commit()

        report = reporting_service.payout_summary(org_a.id, *NOV)

        assert report["total_paid_cents"] == 6000
        assert report["payout_count"] == 1
        assert report["average_payout_cents"] == 6000
        assert report["total_pending_cents"] == 4500 + 2400
        assert report["consignors_with_pending"] == 2
        assert report["chart"] == [{"date": "2025-11-20", "amount_cents": 6000}]

        first, second = report["consignors"]
        assert first["consignor_id"] == consignor_a.id
        assert first["total_sales_cents"] == 17500
        assert first["consignor_cents"] == 10500
        assert first["paid_cents"] == 6000
        assert first["pending_cents"] == 4500
        assert first["last_payout_date"] == "2025-11-20"
        assert second["consignor_id"] == amy.id
        assert second["pending_cents"] == 2400
        assert second["last_payout_date"] is None

    def test_consignor_filter(self, db_session, org_a, consignor_a):
        make_sale(db_session, consignor_a, "SC-R8")
        amy = make_consignor(db_session, org_a, "CON-00002", first_name="Amy")

        report = reporting_service.payout_summary(org_a.id, *NOV, consignor_id=amy.id)
        assert report["consignors"] == []
        assert report["total_pending_cents"] == 0


class TestConsignorPerformance:

    def test_sell_through_and_days_to_sell(self, db_session, org_a, consignor_a):
        _sell(db_session, consignor_a, "SC-C1", 10000, datetime(2025, 11, 1), datetime(2025, 11, 11))
        _sell(db_session, consignor_a, "SC-C2", 2000, datetime(2025, 11, 1), datetime(2025, 11, 5))
        _listed_item(db_session, consignor_a, "SC-C3", 1500, datetime(2025, 11, 1))
        _listed_item(db_session, consignor_a, "SC-C4", 1500, datetime(2025, 11, 1))
        amy = make_consignor(db_session, org_a, "CON-00002", first_name="Amy", last_name="Lee")
        _sell(db_session, amy, "SC-C5", 4000, datetime(2025, 10, 31), datetime(2025, 11, 2))
        make_consignor(db_session, org_a, "CON-00003", first_name="Old", status=ConsignorStatus.DEACTIVATED.value)

        report = reporting_service.consignor_performance(org_a.id, *NOV)

        assert report["consignor_count"] == 2
        assert report["total_sales_cents"] == 16000
        assert report["average_sales_cents"] == 8000
        assert report["top_consignor_name"] == "Jane Doe"
        assert report["top_consignor_sales_cents"] == 12000

        jane, lee = report["consignors"]
        assert jane["items_consigned"] == 4
        assert jane["items_sold"] == 2
        assert jane["items_available"] == 2
        assert jane["sell_through_percentage"] == "50.00"
        assert jane["avg_days_to_sell"] == 7.0
        assert jane["pending_payout_cents"] == 7200
        assert lee["consignor_id"] == amy.id
        assert lee["sell_through_percentage"] == "100.00"
        assert lee["avg_days_to_sell"] == 2.0

    def test_include_inactive(self, db_session, org_a, consignor_a):
        make_consignor(db_session, org_a, "CON-00002", first_name="Old", status=ConsignorStatus.INACTIVE.value)

        assert reporting_service.consignor_performance(org_a.id)["consignor_count"] == 1
        assert reporting_service.consignor_performance(org_a.id, include_inactive=True)["consignor_count"] == 2


class TestInventoryAging:

    @pytest.fixture
    def aged_items(self, db_session, consignor_a):
        return {
            "fresh": _listed_item(db_session, consignor_a, "SC-A1", 1000, datetime(2026, 2, 20)),
            "two_months": _listed_item(db_session, consignor_a, "SC-A2", 2000, datetime(2025, 12, 31)),
            "pricey": _listed_item(db_session, consignor_a, "SC-A3", 8000, datetime(2025, 11, 1)),
            "stale": _listed_item(db_session, consignor_a, "SC-A4", 3000, datetime(2025, 8, 2)),
        }

    def test_buckets_and_actions(self, db_session, org_a, consignor_a, aged_items):
        _sell(db_session, consignor_a, "SC-A5", 500, datetime(2025, 1, 1), datetime(2025, 2, 1))

        report = reporting_service.inventory_aging(org_a.id, as_of=date(2026, 3, 1))

        assert report["total_available"] == 4
        assert report["over_30_days"] == 3
        assert report["over_60_days"] == 3
        assert report["over_90_days"] == 2
        assert report["average_age_days"] == 100.0
        assert [(b["bucket"], b["count"], b["value_cents"]) for b in report["buckets"]] == [
            ("0-30", 1, 1000),
            ("31-60", 1, 2000),
            ("61-90", 0, 0),
            ("90+", 2, 11000),
        ]
        assert [(i["sku"], i["days_listed"], i["suggested_action"]) for i in report["items"]] == [
            ("SC-A4", 211, "DONATE"),
            ("SC-A3", 120, "REDUCE_PRICE"),
            ("SC-A2", 60, "MONITOR"),
            ("SC-A1", 9, "MONITOR"),
        ]

    def test_min_days_filters_items_not_total(self, db_session, org_a, aged_items):
        report = reporting_service.inventory_aging(org_a.id, as_of=date(2026, 3, 1), min_days=100)
        assert report["total_available"] == 4
        assert [i["sku"] for i in report["items"]] == ["SC-A4", "SC-A3"]

    def test_negative_min_days(self, db_session, org_a):
        with pytest.raises(ValidationError):
            reporting_service.inventory_aging(org_a.id, min_days=-1)

    @pytest.mark.parametrize("days,price_cents,action", [
        (181, 100, "DONATE"),
        (121, 100000, "RETURN_TO_CONSIGNOR"),
        (91, 5001, "REDUCE_PRICE"),
        (91, 5000, "RETURN_TO_CONSIGNOR"),
        (90, 100000, "MONITOR"),
    ])
    def test_suggested_action(self, days, price_cents, action):
        assert reporting_service.suggested_action(days, price_cents) == action


class TestReportRoutes:

    @pytest.mark.parametrize("path", [
        "/api/reports/payouts",
        "/api/reports/consignors",
        "/api/reports/inventory-aging",
    ])
    def test_pro_org_gets_report(self, client, db_session, owner_headers, path):
        resp = client.get(path, headers=owner_headers)
        assert resp.status_code == 200

    @pytest.mark.parametrize("path", [
        "/api/reports/payouts",
        "/api/reports/consignors",
        "/api/reports/inventory-aging",
    ])
    def test_basic_org_gets_402(self, client, db_session, owner_b_headers, path):
        resp = client.get(path, headers=owner_b_headers)
        assert resp.status_code == 402
        assert resp.json["upgrade_required"] is True

    def test_payout_report_query_parameters(self, client, db_session, owner_headers, consignor_a):
        make_sale(db_session, consignor_a, "SC-R9")
        resp = client.get(
            "/api/reports/payouts?start_date=2025-11-01&end_date=2025-11-30",
            headers=owner_headers,
        )
        assert resp.status_code == 200
        assert resp.json["total_pending_cents"] == 6000

    def test_bad_min_days_is_400(self, client, db_session, owner_headers):
        resp = client.get("/api/reports/inventory-aging?min_days=-5", headers=owner_headers)
        assert resp.status_code == 400
