"""
Payout aggregation tests.

Verifies:
- A payout sums the consignor share of exactly the requested sales
- A sale can be paid out at most once
- Batches are validated as a whole: one bad id rejects the request with
  nothing linked
- Status transitions and deletion rules
"""

from datetime import date, datetime

import pytest

from consignment.enums import PayoutStatus
from consignment.models import Payout, PayoutLine, Transaction
from consignment.services import payout_service, transaction_service
from consignment.validation import ConflictError, NotFoundError, ValidationError
from conftest import make_consignor, make_sale


NOV_START = date(2025, 11, 1)
NOV_END = date(2025, 11, 30)


@pytest.fixture
def november_sales(db_session, consignor_a):
    return [
        make_sale(db_session, consignor_a, "SC-P1", price_cents=10000, sale_date=datetime(2025, 11, 2, 12)),
        make_sale(db_session, consignor_a, "SC-P2", price_cents=2500, sale_date=datetime(2025, 11, 10, 12)),
        make_sale(db_session, consignor_a, "SC-P3", price_cents=3333, sale_date=datetime(2025, 11, 30, 23, 59)),
    ]


class TestBuildPayout:

    def test_sums_consignor_amounts(self, db_session, org_a, owner_a, consignor_a, november_sales):
        ids = [t.id for t in november_sales]
        payout = payout_service.build_payout(
            org_a.id, consignor_a.id, NOV_START, NOV_END, ids,
            payment_method="check", payment_reference="#1042", user_id=owner_a.id,
        )

        assert payout.amount_cents == 6000 + 1500 + 2000
        assert payout.transaction_count == 3
        assert payout.status == PayoutStatus.PENDING.value
        assert payout.payment_method == "CHECK"
        assert payout.payout_number.startswith("PO")
        assert len(payout.payout_number) == len("PO20251101001")

        for txn in november_sales:
            assert db_session.get(Transaction, txn.id).payout_id == payout.id
        assert db_session.query(PayoutLine).filter_by(payout_id=payout.id).count() == 3

    def test_numbers_increment_per_day(self, db_session, org_a, consignor_a, november_sales):
        first = payout_service.build_payout(org_a.id, consignor_a.id, NOV_START, NOV_END, [november_sales[0].id])
        second = payout_service.build_payout(org_a.id, consignor_a.id, NOV_START, NOV_END, [november_sales[1].id])
        assert first.payout_number[:10] == second.payout_number[:10]
        assert int(second.payout_number[-3:]) == int(first.payout_number[-3:]) + 1

    def test_sale_cannot_be_paid_twice(self, db_session, org_a, consignor_a, november_sales):
        payout_service.build_payout(org_a.id, consignor_a.id, NOV_START, NOV_END, [november_sales[0].id])

        with pytest.raises(ConflictError) as exc:
            payout_service.build_payout(
                org_a.id, consignor_a.id, NOV_START, NOV_END,
                [november_sales[0].id, november_sales[1].id],
            )
        assert exc.value.ids == [november_sales[0].id]
        assert db_session.query(Payout).count() == 1
        assert db_session.get(Transaction, november_sales[1].id).payout_id is None

    def test_unique_line_constraint_catches_racing_payout(
        self, db_session, org_a, consignor_a, november_sales, monkeypatch
    ):
        """A request that passed its checks before a rival committed still loses at commit."""
        taken_id = november_sales[0].id
        payout_service.build_payout(org_a.id, consignor_a.id, NOV_START, NOV_END, [taken_id])

        # Stale read: the batch check still sees the sale as free
        monkeypatch.setattr(
            payout_service, "_validate_batch",
            lambda *args, **kwargs: [db_session.get(Transaction, taken_id)],
        )

        with pytest.raises(ConflictError) as exc:
            payout_service.build_payout(org_a.id, consignor_a.id, NOV_START, NOV_END, [taken_id])
        assert exc.value.ids == [taken_id]
        assert db_session.query(Payout).count() == 1
        assert db_session.query(PayoutLine).filter_by(transaction_id=taken_id).count() == 1

    def test_other_consignor_rejected_atomically(self, db_session, org_a, consignor_a, november_sales):
        other = make_consignor(db_session, org_a, "CON-00002", first_name="Amy")
        foreign = make_sale(db_session, other, "SC-P9", sale_date=datetime(2025, 11, 5, 9))

        with pytest.raises(ValidationError) as exc:
            payout_service.build_payout(
                org_a.id, consignor_a.id, NOV_START, NOV_END,
                [november_sales[0].id, foreign.id],
            )
        assert exc.value.ids == [foreign.id]
        db_session.rollback()
        assert db_session.query(Payout).count() == 0
        assert db_session.query(Transaction).filter(Transaction.payout_id.isnot(None)).count() == 0

    def test_out_of_period_rejected(self, db_session, org_a, consignor_a, november_sales):
        october = make_sale(db_session, consignor_a, "SC-P8", sale_date=datetime(2025, 10, 31, 23, 59))
        with pytest.raises(ValidationError) as exc:
            payout_service.build_payout(
                org_a.id, consignor_a.id, NOV_START, NOV_END,
                [november_sales[0].id, october.id],
            )
        assert exc.value.ids == [october.id]

    def test_period_end_day_is_inclusive(self, db_session, org_a, consignor_a, november_sales):
        payout = payout_service.build_payout(org_a.id, consignor_a.id, NOV_END, NOV_END, [november_sales[2].id])
        assert payout.amount_cents == 2000

    def test_unknown_ids_not_found(self, db_session, org_a, consignor_a, november_sales):
        with pytest.raises(NotFoundError) as exc:
            payout_service.build_payout(
                org_a.id, consignor_a.id, NOV_START, NOV_END, [november_sales[0].id, 99999]
            )
        assert exc.value.ids == [99999]

    def test_other_org_transactions_not_found(self, db_session, org_a, org_b, consignor_a, consignor_b):
        foreign = make_sale(db_session, consignor_b, "TR-P1", sale_date=datetime(2025, 11, 5, 9))
        with pytest.raises(NotFoundError):
            payout_service.build_payout(org_a.id, consignor_a.id, NOV_START, NOV_END, [foreign.id])

    def test_voided_sale_rejected(self, db_session, org_a, consignor_a, november_sales):
        transaction_service.void_transaction(org_a.id, november_sales[0].id)
        with pytest.raises(ValidationError) as exc:
            payout_service.build_payout(org_a.id, consignor_a.id, NOV_START, NOV_END, [november_sales[0].id])
        assert exc.value.ids == [november_sales[0].id]

    @pytest.mark.parametrize("ids", [[], "1,2"])
    def test_bad_id_lists(self, db_session, org_a, consignor_a, ids):
        with pytest.raises(ValidationError):
            payout_service.build_payout(org_a.id, consignor_a.id, NOV_START, NOV_END, ids)

    def test_duplicate_ids_rejected(self, db_session, org_a, consignor_a, november_sales):
        tid = november_sales[0].id
        with pytest.raises(ValidationError) as exc:
            payout_service.build_payout(org_a.id, consignor_a.id, NOV_START, NOV_END, [tid, tid])
        assert exc.value.ids == [tid]

    def test_reversed_period_rejected(self, db_session, org_a, consignor_a, november_sales):
        with pytest.raises(ValidationError):
            payout_service.build_payout(org_a.id, consignor_a.id, NOV_END, NOV_START, [november_sales[0].id])


class TestPreviewAndPending:

    def test_preview_lists_unpaid_sales(self, db_session, org_a, consignor_a, november_sales):
        payout_service.build_payout(org_a.id, consignor_a.id, NOV_START, NOV_END, [november_sales[0].id])
        draft = payout_service.preview_payout(org_a.id, consignor_a.id, NOV_START, NOV_END)

        assert draft["transaction_ids"] == [november_sales[1].id, november_sales[2].id]
        assert draft["amount_cents"] == 3500
        assert db_session.query(Payout).count() == 1

    def test_pending_grouped_by_consignor(self, db_session, org_a, consignor_a, november_sales):
        other = make_consignor(db_session, org_a, "CON-00002", first_name="Amy", last_name="Lee")
        make_sale(db_session, other, "SC-P7", price_cents=50000, sale_date=datetime(2025, 11, 5, 9))

        pending = payout_service.pending_payouts(org_a.id)
        assert [p["consignor_id"] for p in pending] == [other.id, consignor_a.id]
        assert pending[0]["pending_amount_cents"] == 30000
        assert pending[1]["pending_amount_cents"] == 9500
        assert pending[1]["transaction_count"] == 3

        filtered = payout_service.pending_payouts(org_a.id, minimum_amount_cents=10000)
        assert [p["consignor_id"] for p in filtered] == [other.id]

    def test_pending_sold_before_is_inclusive(self, db_session, org_a, consignor_a, november_sales):
        pending = payout_service.pending_payouts(org_a.id, sold_before=date(2025, 11, 10))
        assert pending[0]["transaction_count"] == 2


class TestPayoutLifecycle:

    def _payout(self, org_a, consignor_a, november_sales):
        return payout_service.build_payout(
            org_a.id, consignor_a.id, NOV_START, NOV_END, [t.id for t in november_sales]
        )

    def test_mark_paid_stamps_dates(self, db_session, org_a, consignor_a, november_sales):
        payout = self._payout(org_a, consignor_a, november_sales)
        payout = payout_service.update_payout(org_a.id, payout.id, {"status": "PROCESSING"})
        assert payout.status == PayoutStatus.PROCESSING.value

        payout = payout_service.update_payout(org_a.id, payout.id, {"status": "paid"})
        assert payout.status == PayoutStatus.PAID.value
        assert payout.paid_at is not None

    def test_paid_payout_is_final(self, db_session, org_a, consignor_a, november_sales):
        payout = self._payout(org_a, consignor_a, november_sales)
        payout_service.update_payout(org_a.id, payout.id, {"status": "PAID"})

        with pytest.raises(ConflictError):
            payout_service.update_payout(org_a.id, payout.id, {"notes": "edit"})
        with pytest.raises(ConflictError):
            payout_service.delete_payout(org_a.id, payout.id)

    def test_delete_releases_transactions(self, db_session, org_a, consignor_a, november_sales):
        payout = self._payout(org_a, consignor_a, november_sales)
        payout_service.delete_payout(org_a.id, payout.id)

        assert db_session.query(Payout).count() == 0
        assert db_session.query(PayoutLine).count() == 0
        assert db_session.query(Transaction).filter(Transaction.payout_id.isnot(None)).count() == 0

        again = self._payout(org_a, consignor_a, november_sales)
        assert again.transaction_count == 3

    def test_invalid_status_value(self, db_session, org_a, consignor_a, november_sales):
        payout = self._payout(org_a, consignor_a, november_sales)
        with pytest.raises(ValidationError):
            payout_service.update_payout(org_a.id, payout.id, {"status": "LOST"})

    def test_export_csv(self, db_session, org_a, consignor_a, november_sales):
        payout = self._payout(org_a, consignor_a, november_sales)
        filename, content = payout_service.export_payout_csv(org_a.id, payout.id)

        assert filename == f"payout-{payout.payout_number}.csv"
        assert f"Payout Number,{payout.payout_number}" in content
        assert "Item SC-P1,2025-11-02,100.00,60.00,40.00" in content
        assert "Total Consignor Amount,95.00" in content

    def test_payouts_are_tenant_scoped(self, db_session, org_a, org_b, consignor_a, november_sales):
        payout = self._payout(org_a, consignor_a, november_sales)
        with pytest.raises(NotFoundError):
            payout_service.get_payout(org_b.id, payout.id)
