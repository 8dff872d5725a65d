"""
Sale recording tests: split freezing, item state and voiding.
"""

from datetime import date, datetime

import pytest

from consignment.enums import ConsignorStatus, ItemStatus, TransactionStatus
from consignment.models import Item, Transaction
from consignment.services import consignor_service, payout_service, transaction_service
from consignment.validation import ConflictError, NotFoundError, ValidationError
from conftest import make_item, make_sale


class TestCreateTransaction:

    def test_records_split_and_marks_item_sold(self, db_session, org_a, consignor_a, item_a):
        txn = transaction_service.create_transaction(org_a.id, item_id=item_a.id, payment_method="card")

        assert txn.status == TransactionStatus.COMPLETED.value
        assert txn.payment_method == "CARD"
        assert txn.sale_price_cents == 10000
        assert txn.consignor_split_bps == 6000
        assert txn.consignor_amount_cents == 6000
        assert txn.shop_amount_cents == 4000
        assert txn.payout_id is None

        item = db_session.get(Item, item_a.id)
        assert item.status == ItemStatus.SOLD.value
        assert item.sold_at is not None

    def test_item_override_split_is_used(self, db_session, org_a, consignor_a):
        item = make_item(db_session, consignor_a, "SC-OVR", price_cents=3333, override_split_bps=3333)
        txn = transaction_service.create_transaction(org_a.id, item_id=item.id, payment_method="CASH")
        assert txn.consignor_split_bps == 3333
        assert txn.consignor_amount_cents == 1111
        assert txn.shop_amount_cents == 2222

    def test_explicit_sale_price_and_date(self, db_session, org_a, item_a):
        txn = transaction_service.create_transaction(
            org_a.id,
            item_id=item_a.id,
            payment_method="CASH",
            sale_price_cents=8000,
            sales_tax_cents=640,
            sale_date="2025-11-03T10:00:00Z",
        )
        assert txn.sale_price_cents == 8000
        assert txn.sales_tax_cents == 640
        assert txn.consignor_amount_cents == 4800
        assert txn.sale_date.replace(tzinfo=None) == datetime(2025, 11, 3, 10, 0)

    def test_sold_item_cannot_be_sold_again(self, db_session, org_a, item_a):
        transaction_service.create_transaction(org_a.id, item_id=item_a.id, payment_method="CASH")
        with pytest.raises(ConflictError) as exc:
            transaction_service.create_transaction(org_a.id, item_id=item_a.id, payment_method="CASH")
        assert exc.value.ids == [item_a.id]
        assert db_session.query(Transaction).count() == 1

    def test_inactive_consignor_cannot_sell(self, db_session, org_a, consignor_a, item_a):
        consignor_a.status = ConsignorStatus.DEACTIVATED.value
        db_session.commit()

        with pytest.raises(ValidationError):
            transaction_service.create_transaction(org_a.id, item_id=item_a.id, payment_method="CASH")
        assert db_session.get(Item, item_a.id).status == ItemStatus.AVAILABLE.value

    def test_item_of_other_org_not_found(self, db_session, org_a, item_b):
        with pytest.raises(NotFoundError):
            transaction_service.create_transaction(org_a.id, item_id=item_b.id, payment_method="CASH")

    @pytest.mark.parametrize("kwargs", [
        {"payment_method": "BARTER"},
        {"payment_method": "CASH", "sale_price_cents": 0},
        {"payment_method": "CASH", "sale_price_cents": 12.5},
        {"payment_method": "CASH", "sales_tax_cents": -1},
    ])
    def test_invalid_input(self, db_session, org_a, item_a, kwargs):
        with pytest.raises(ValidationError):
            transaction_service.create_transaction(org_a.id, item_id=item_a.id, **kwargs)

    def test_later_rate_change_does_not_touch_recorded_sale(self, db_session, org_a, consignor_a):
        txn = make_sale(db_session, consignor_a, "SC-RATE")
        consignor_service.update_consignor(org_a.id, consignor_a.id, {"split_percentage": "70"})

        txn = db_session.get(Transaction, txn.id)
        assert txn.consignor_split_bps == 6000
        assert txn.consignor_amount_cents == 6000


class TestVoidTransaction:

    def test_void_returns_item_to_floor(self, db_session, org_a, owner_a, consignor_a):
        txn = make_sale(db_session, consignor_a, "SC-V1")
        voided = transaction_service.void_transaction(org_a.id, txn.id, reason="Customer return", user_id=owner_a.id)

        assert voided.status == TransactionStatus.VOIDED.value
        assert voided.void_reason == "Customer return"
        assert voided.voided_by_user_id == owner_a.id
        assert db_session.get(Item, txn.item_id).status == ItemStatus.AVAILABLE.value

    def test_void_twice_conflicts(self, db_session, org_a, consignor_a):
        txn = make_sale(db_session, consignor_a, "SC-V2")
        transaction_service.void_transaction(org_a.id, txn.id)
        with pytest.raises(ConflictError):
            transaction_service.void_transaction(org_a.id, txn.id)

    def test_paid_out_sale_cannot_be_voided(self, db_session, org_a, consignor_a):
        txn = make_sale(db_session, consignor_a, "SC-V3")
        payout_service.build_payout(org_a.id, consignor_a.id, date(2025, 11, 1), date(2025, 11, 30), [txn.id])

        with pytest.raises(ConflictError) as exc:
            transaction_service.void_transaction(org_a.id, txn.id)
        assert exc.value.ids == [txn.id]

    def test_voided_sale_cannot_be_edited(self, db_session, org_a, consignor_a):
        txn = make_sale(db_session, consignor_a, "SC-V4")
        transaction_service.void_transaction(org_a.id, txn.id)
        with pytest.raises(ConflictError):
            transaction_service.update_transaction(org_a.id, txn.id, {"notes": "late edit"})

    def test_amounts_are_not_editable(self, db_session, org_a, consignor_a):
        txn = make_sale(db_session, consignor_a, "SC-V5")
        with pytest.raises(ValidationError):
            transaction_service.update_transaction(org_a.id, txn.id, {"consignor_amount_cents": 1})


class TestListTransactions:

    def test_filters_by_period_and_paid_state(self, db_session, org_a, consignor_a):
        early = make_sale(db_session, consignor_a, "SC-L1", sale_date=datetime(2025, 10, 31, 23, 59))
        first = make_sale(db_session, consignor_a, "SC-L2", sale_date=datetime(2025, 11, 1, 0, 0))
        last = make_sale(db_session, consignor_a, "SC-L3", sale_date=datetime(2025, 11, 30, 23, 59))

        rows, total = transaction_service.list_transactions(
            org_a.id, start_date=date(2025, 11, 1), end_date=date(2025, 11, 30)
        )
        assert total == 2
        assert {t.id for t in rows} == {first.id, last.id}

        payout_service.build_payout(org_a.id, consignor_a.id, date(2025, 10, 1), date(2025, 10, 31), [early.id])
        unpaid, _ = transaction_service.list_transactions(org_a.id, paid=False)
        assert {t.id for t in unpaid} == {first.id, last.id}

    def test_reversed_range_rejected(self, db_session, org_a):
        with pytest.raises(ValidationError):
            transaction_service.list_transactions(org_a.id, start_date=date(2025, 12, 1), end_date=date(2025, 11, 1))
