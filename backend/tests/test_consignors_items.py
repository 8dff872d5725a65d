"""
Consignor and item service tests: numbering, status actions, removal rules,
SKU uniqueness and the item lifecycle.
"""

from datetime import date

import pytest

from consignment.enums import ConsignorStatus, ItemStatus
from consignment.models import Consignor, Item
from consignment.services import consignor_service, item_service, payout_service
from consignment.validation import ConflictError, NotFoundError, ValidationError
from conftest import make_item, make_sale


class TestConsignors:

    def test_numbers_are_sequential_per_org(self, db_session, org_a, org_b):
        first = consignor_service.create_consignor(org_a.id, {"first_name": "Ann", "last_name": "Ray"})
        second = consignor_service.create_consignor(org_a.id, {"first_name": "Ben", "last_name": "Ray"})
        other = consignor_service.create_consignor(org_b.id, {"first_name": "Cal", "last_name": "Ray"})

        assert first.consignor_number == "CON-00001"
        assert second.consignor_number == "CON-00002"
        assert other.consignor_number == "CON-00001"

    def test_split_defaults_to_organization(self, db_session, org_b):
        consignor = consignor_service.create_consignor(org_b.id, {"first_name": "Ann", "last_name": "Ray"})
        assert consignor.default_split_bps == 5000
        assert consignor.status == ConsignorStatus.ACTIVE.value

    def test_explicit_split_percentage(self, db_session, org_a):
        consignor = consignor_service.create_consignor(
            org_a.id, {"first_name": "Ann", "last_name": "Ray", "split_percentage": "55.5"}
        )
        assert consignor.default_split_bps == 5550

    @pytest.mark.parametrize("payload", [
        {"first_name": "Ann"},
        {"first_name": "Ann", "last_name": "Ray", "split_percentage": "120"},
        {"first_name": "Ann", "last_name": "Ray", "consignor_number": "CON-99999"},
        {"first_name": "Ann", "last_name": "Ray", "preferred_payout_method": "GOLD"},
    ])
    def test_invalid_payloads(self, db_session, org_a, payload):
        with pytest.raises(ValidationError):
            consignor_service.create_consignor(org_a.id, payload)

    def test_duplicate_email_conflicts(self, db_session, org_a, org_b):
        consignor_service.create_consignor(org_a.id, {"first_name": "A", "last_name": "B", "email": "a@b.test"})
        with pytest.raises(ConflictError):
            consignor_service.create_consignor(org_a.id, {"first_name": "C", "last_name": "D", "email": "A@B.test"})
        # Same email at another shop is fine
        consignor_service.create_consignor(org_b.id, {"first_name": "C", "last_name": "D", "email": "a@b.test"})

    def test_status_actions(self, db_session, org_a, consignor_a):
        deactivated = consignor_service.change_consignor_status(org_a.id, consignor_a.id, "deactivate", "Moved away")
        assert deactivated.status == ConsignorStatus.DEACTIVATED.value
        assert deactivated.status_changed_reason == "Moved away"

        with pytest.raises(ConflictError):
            consignor_service.change_consignor_status(org_a.id, consignor_a.id, "approve")
        with pytest.raises(ValidationError):
            consignor_service.change_consignor_status(org_a.id, consignor_a.id, "promote")

        reactivated = consignor_service.change_consignor_status(org_a.id, consignor_a.id, "reactivate")
        assert reactivated.status == ConsignorStatus.ACTIVE.value

    def test_summary_reports_pending_balance(self, db_session, org_a, consignor_a):
        make_sale(db_session, consignor_a, "SC-B1", price_cents=10000)
        make_item(db_session, consignor_a, "SC-B2")

        summary = consignor_service.consignor_summary(org_a.id, consignor_a.id)
        assert summary["pending_balance_cents"] == 6000
        assert summary["unpaid_transaction_count"] == 1
        assert summary["total_paid_out_cents"] == 0
        assert summary["item_counts"] == {"SOLD": 1, "AVAILABLE": 1}

    def test_summary_counts_only_paid_payouts(self, db_session, org_a, consignor_a):
        first = make_sale(db_session, consignor_a, "SC-B3", price_cents=10000)
        second = make_sale(db_session, consignor_a, "SC-B4", price_cents=5000)
        nov = (date(2025, 11, 1), date(2025, 11, 30))
        paid = payout_service.build_payout(org_a.id, consignor_a.id, *nov, [first.id])
        payout_service.update_payout(org_a.id, paid.id, {"status": "PAID"})
        payout_service.build_payout(org_a.id, consignor_a.id, *nov, [second.id])

        summary = consignor_service.consignor_summary(org_a.id, consignor_a.id)
        assert summary["total_paid_out_cents"] == 6000
        assert summary["pending_balance_cents"] == 0

    def test_search(self, db_session, org_a, consignor_a):
        consignor_service.create_consignor(org_a.id, {"first_name": "Zed", "last_name": "Quill"})
        rows, total = consignor_service.list_consignors(org_a.id, search="quil")
        assert total == 1
        assert rows[0].first_name == "Zed"


class TestConsignorRemoval:

    def test_unpaid_sales_block_removal(self, db_session, org_a, consignor_a):
        txn = make_sale(db_session, consignor_a, "SC-R1")
        with pytest.raises(ConflictError) as exc:
            consignor_service.delete_consignor(org_a.id, consignor_a.id)
        assert exc.value.ids == [txn.id]

    def test_history_deactivates_instead(self, db_session, org_a, consignor_a):
        txn = make_sale(db_session, consignor_a, "SC-R2")
        payout_service.build_payout(org_a.id, consignor_a.id, date(2025, 11, 1), date(2025, 11, 30), [txn.id])

        result = consignor_service.delete_consignor(org_a.id, consignor_a.id)
        assert result["deleted"] is False
        assert db_session.get(Consignor, consignor_a.id).status == ConsignorStatus.DEACTIVATED.value

    def test_no_history_deletes_with_items(self, db_session, org_a, consignor_a, item_a):
        result = consignor_service.delete_consignor(org_a.id, consignor_a.id)
        assert result["deleted"] is True
        assert result["consignor"]["consignor_number"] == "CON-00001"
        assert db_session.get(Consignor, consignor_a.id) is None
        assert db_session.query(Item).count() == 0

    def test_other_org_cannot_remove(self, db_session, org_b, consignor_a):
        with pytest.raises(NotFoundError):
            consignor_service.delete_consignor(org_b.id, consignor_a.id)


class TestItems:

    def test_create_normalizes_sku(self, db_session, org_a, consignor_a):
        item = item_service.create_item(org_a.id, {
            "consignor_id": consignor_a.id,
            "sku": "sc-1001",
            "title": "Wool coat",
            "price_cents": 4500,
            "condition": "like new",
            "split_percentage": "70",
        })
        assert item.sku == "SC-1001"
        assert item.condition == "LIKE_NEW"
        assert item.override_split_bps == 7000
        assert item.status == ItemStatus.AVAILABLE.value
        assert item_service.get_item_by_sku(org_a.id, "sc-1001").id == item.id

    def test_duplicate_sku_conflicts_within_org_only(self, db_session, org_a, org_b, consignor_a, consignor_b):
        payload = {"sku": "DUP-1", "title": "Lamp", "price_cents": 1000}
        item_service.create_item(org_a.id, {**payload, "consignor_id": consignor_a.id})
        with pytest.raises(ConflictError):
            item_service.create_item(org_a.id, {**payload, "consignor_id": consignor_a.id})
        item_service.create_item(org_b.id, {**payload, "consignor_id": consignor_b.id})

    @pytest.mark.parametrize("price", [0, -100, 100_000_000, "12.50"])
    def test_price_bounds(self, db_session, org_a, consignor_a, price):
        with pytest.raises(ValidationError):
            item_service.create_item(org_a.id, {
                "consignor_id": consignor_a.id, "sku": "P-1", "title": "Lamp", "price_cents": price,
            })

    def test_closed_consignor_cannot_take_in(self, db_session, org_a, consignor_a):
        consignor_a.status = ConsignorStatus.DEACTIVATED.value
        db_session.commit()
        with pytest.raises(ValidationError):
            item_service.create_item(org_a.id, {
                "consignor_id": consignor_a.id, "sku": "P-2", "title": "Lamp", "price_cents": 1000,
            })

    def test_sold_item_is_frozen(self, db_session, org_a, consignor_a):
        txn = make_sale(db_session, consignor_a, "SC-F1")
        with pytest.raises(ConflictError):
            item_service.update_item(org_a.id, txn.item_id, {"price_cents": 1})
        with pytest.raises(ConflictError):
            item_service.remove_item(org_a.id, txn.item_id)

    def test_remove_available_item(self, db_session, org_a, item_a):
        item = item_service.remove_item(org_a.id, item_a.id, "Damaged")
        assert item.status == ItemStatus.REMOVED.value
        assert item.removed_reason == "Damaged"

        rows, total = item_service.list_items(org_a.id, status="available")
        assert total == 0
