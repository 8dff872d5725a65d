# Overview: Payout aggregation: batching a consignor's unpaid sales into one payment.

"""
Payout service

build_payout() links a set of transactions to a new Payout. The whole batch
is validated before anything is written, so a request either links every
transaction or none of them.

A transaction can belong to at most one payout. The application checks this
under SELECT ... FOR UPDATE; PayoutLine.transaction_id is UNIQUE so the
database also refuses a second link when two requests race. The losing
request gets a ConflictError listing the transactions that were taken.

Payout status: PENDING -> PROCESSING -> PAID, or PENDING -> PAID directly.
Marking a payout PAID stamps paid_at and payout_date; PAID payouts are
final (no edits, no deletion).
"""

from __future__ import annotations

import csv
import io
from collections import Counter

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..enums import PAYOUT_TRANSITIONS, PayoutMethod, PayoutStatus, TransactionStatus
from ..models import Consignor, Item, Payout, PayoutLine, Transaction
from ..money import format_cents
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_enum,
    coerce_int_list,
    require_period,
    validate_payload,
)
from .concurrency import lock_for_update
from .consignor_service import get_consignor
from .transaction_service import find_unpaid_transactions
from consignment.time_utils import period_bounds, utcnow


UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"status", "payment_method", "payment_reference", "notes"},
    enum_fields={"status": PayoutStatus, "payment_method": PayoutMethod},
)

# Payout number collisions between concurrent requests are retried this many times
_NUMBER_ATTEMPTS = 3


def _next_payout_number(org_id: int, today) -> str:
    prefix = f"PO{today:%Y%m%d}"
    last = db.session.query(func.max(Payout.payout_number)).filter(
        Payout.org_id == org_id,
        Payout.payout_number.like(f"{prefix}%"),
    ).scalar()
    seq = int(last[len(prefix):]) + 1 if last else 1
    return f"{prefix}{seq:03d}"


def _validate_batch(org_id: int, consignor_id: int, period_start, period_end, ids: list[int]) -> list[Transaction]:
    """
    Lock and validate every requested transaction. Raises on the first
    category of problem found, listing all offending ids of that category.
    """
    rows = lock_for_update(
        db.session.query(Transaction).filter(
            Transaction.org_id == org_id,
            Transaction.id.in_(ids),
        )
    ).all()
    by_id = {t.id: t for t in rows}

    missing = [i for i in ids if i not in by_id]
    if missing:
        raise NotFoundError("Transactions not found", ids=missing)

    start_at, end_before = period_bounds(period_start, period_end)

    wrong_consignor = [t.id for t in rows if t.consignor_id != consignor_id]
    if wrong_consignor:
        raise ValidationError("Transactions belong to a different consignor", ids=wrong_consignor)

    in_period = {
        tid for (tid,) in db.session.query(Transaction.id).filter(
            Transaction.id.in_(ids),
            Transaction.sale_date >= start_at,
            Transaction.sale_date < end_before,
        )
    }
    out_of_period = [t.id for t in rows if t.id not in in_period]
    if out_of_period:
        raise ValidationError("Transactions fall outside the payout period", ids=out_of_period)

    voided = [t.id for t in rows if t.status != TransactionStatus.COMPLETED.value]
    if voided:
        raise ValidationError("Voided transactions cannot be paid out", ids=voided)

    linked = {t.id for t in rows if t.payout_id is not None}
    linked.update(
        tid for (tid,) in db.session.query(PayoutLine.transaction_id).filter(PayoutLine.transaction_id.in_(ids))
    )
    if linked:
        raise ConflictError("Transactions are already part of a payout", ids=linked)

    return [by_id[i] for i in ids]


def build_payout(
    org_id: int,
    consignor_id: int,
    period_start,
    period_end,
    transaction_ids,
    *,
    payment_method=None,
    payment_reference: str | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> Payout:
    """
    Create a PENDING payout for a consignor covering transaction_ids.

    Raises:
        NotFoundError: consignor or any transaction id unknown in the org
        ValidationError: empty/duplicate ids, bad period, transactions of
            another consignor, outside the period, or voided
        ConflictError: any transaction already linked to a payout
    """
    ids = coerce_int_list(transaction_ids, "transaction_ids")
    if not ids:
        raise ValidationError("transaction_ids must not be empty", field="transaction_ids")
    duplicates = [i for i, n in Counter(ids).items() if n > 1]
    if duplicates:
        raise ValidationError("transaction_ids contains duplicates", ids=duplicates, field="transaction_ids")
    require_period(period_start, period_end)
    method = coerce_enum(PayoutMethod, payment_method, "payment_method") if payment_method else None

    consignor = get_consignor(org_id, consignor_id)

    for attempt in range(_NUMBER_ATTEMPTS):
        transactions = _validate_batch(org_id, consignor.id, period_start, period_end, ids)

        today = utcnow().date()
        payout = Payout(
            org_id=org_id,
            consignor_id=consignor.id,
            payout_number=_next_payout_number(org_id, today),
            payout_date=today,
            amount_cents=sum(t.consignor_amount_cents for t in transactions),
            transaction_count=len(transactions),
            status=PayoutStatus.PENDING.value,
            payment_method=method,
            payment_reference=(payment_reference or "").strip() or None,
            period_start=period_start,
            period_end=period_end,
            notes=(notes or "").strip() or None,
            created_by_user_id=user_id,
        )
        db.session.add(payout)
        db.session.flush()

        for txn in transactions:
            payout.lines.append(PayoutLine(transaction_id=txn.id, consignor_amount_cents=txn.consignor_amount_cents))
            txn.payout_id = payout.id

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            taken = {tid for (tid,) in db.session.query(PayoutLine.transaction_id).filter(PayoutLine.transaction_id.in_(ids))}
            if taken:
                raise ConflictError("Transactions are already part of a payout", ids=taken)
            if attempt >= _NUMBER_ATTEMPTS - 1:
                raise ConflictError("Could not allocate a payout number; retry the request")
            continue

        current_app.logger.info(
            "Payout %s created for consignor %s: %s transactions, %s cents",
            payout.payout_number, consignor.id, payout.transaction_count, payout.amount_cents,
        )
        return payout


def preview_payout(org_id: int, consignor_id: int, period_start, period_end) -> dict:
    """Read-only draft of what a payout over the period would contain."""
    consignor = get_consignor(org_id, consignor_id)
    transactions = find_unpaid_transactions(org_id, consignor.id, period_start, period_end)
    return {
        "consignor": consignor.to_dict(),
        "period_start": period_start.isoformat(),
        "period_end": period_end.isoformat(),
        "transaction_ids": [t.id for t in transactions],
        "transactions": [t.to_dict() for t in transactions],
        "transaction_count": len(transactions),
        "amount_cents": sum(t.consignor_amount_cents for t in transactions),
    }


def pending_payouts(
    org_id: int,
    *,
    consignor_id: int | None = None,
    sold_before=None,
    minimum_amount_cents: int | None = None,
) -> list[dict]:
    """
    Unpaid completed sales grouped by consignor, largest balance first.
    sold_before is an inclusive last sale day.
    """
    query = db.session.query(
        Transaction.consignor_id,
        func.sum(Transaction.consignor_amount_cents),
        func.count(Transaction.id),
        func.min(Transaction.sale_date),
        func.max(Transaction.sale_date),
    ).filter(
        Transaction.org_id == org_id,
        Transaction.status == TransactionStatus.COMPLETED.value,
        Transaction.payout_id.is_(None),
    )
    if consignor_id is not None:
        query = query.filter(Transaction.consignor_id == consignor_id)
    if sold_before is not None:
        _, end_before = period_bounds(sold_before, sold_before)
        query = query.filter(Transaction.sale_date < end_before)

    groups = query.group_by(Transaction.consignor_id).all()
    consignors = {
        c.id: c for c in db.session.query(Consignor).filter(Consignor.id.in_([g[0] for g in groups]))
    } if groups else {}

    results = []
    for cid, amount, count, earliest, latest in groups:
        amount = int(amount or 0)
        if minimum_amount_cents is not None and amount < minimum_amount_cents:
            continue
        consignor = consignors.get(cid)
        results.append({
            "consignor_id": cid,
            "consignor_name": consignor.get_display_name() if consignor else None,
            "consignor_email": consignor.email if consignor else None,
            "pending_amount_cents": amount,
            "transaction_count": int(count),
            "earliest_sale": earliest.isoformat() if earliest else None,
            "latest_sale": latest.isoformat() if latest else None,
        })

    results.sort(key=lambda r: (-r["pending_amount_cents"], r["consignor_id"]))
    return results


def get_payout(org_id: int, payout_id: int) -> Payout:
    payout = db.session.query(Payout).filter_by(id=payout_id, org_id=org_id).first()
    if not payout:
        raise NotFoundError("Payout not found", ids=[payout_id])
    return payout


def payout_detail(org_id: int, payout_id: int) -> dict:
    """Payout with its consignor and the sales it pays."""
    payout = get_payout(org_id, payout_id)
    data = payout.to_dict()
    data["consignor"] = payout.consignor.to_dict()
    data["transactions"] = [
        {**t.to_dict(), "item_title": t.item.title if t.item else None}
        for t in sorted(payout.transactions, key=lambda t: (t.sale_date, t.id))
    ]
    return data


def list_payouts(
    org_id: int,
    *,
    consignor_id: int | None = None,
    status: str | None = None,
    start_date=None,
    end_date=None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Payout], int]:
    query = db.session.query(Payout).filter(Payout.org_id == org_id)
    if consignor_id is not None:
        query = query.filter(Payout.consignor_id == consignor_id)
    if status:
        query = query.filter(Payout.status == coerce_enum(PayoutStatus, status, "status"))
    if start_date:
        query = query.filter(Payout.payout_date >= start_date)
    if end_date:
        query = query.filter(Payout.payout_date <= end_date)

    total = query.count()
    rows = query.order_by(Payout.payout_date.desc(), Payout.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def update_payout(org_id: int, payout_id: int, payload: dict) -> Payout:
    """
    Change status, payment method/reference or notes.

    Status moves follow PAYOUT_TRANSITIONS; PAID payouts cannot be edited.
    """
    patch = validate_payload(model=Payout, payload=payload, policy=UPDATE_POLICY, partial=True)
    payout = get_payout(org_id, payout_id)

    if payout.status == PayoutStatus.PAID.value:
        raise ConflictError("Paid payouts cannot be modified", ids=[payout.id])

    new_status = patch.pop("status", None)
    if new_status is not None and new_status != payout.status:
        current = PayoutStatus(payout.status)
        target = PayoutStatus(new_status)
        if target not in PAYOUT_TRANSITIONS[current]:
            raise ConflictError(f"Cannot move payout from {current.value} to {target.value}", ids=[payout.id])
        payout.status = target.value
        if target == PayoutStatus.PAID:
            now = utcnow()
            payout.paid_at = now
            payout.payout_date = now.date()

    for key, value in patch.items():
        setattr(payout, key, value)

    db.session.commit()
    current_app.logger.info("Payout %s updated (status %s)", payout.payout_number, payout.status)
    return payout


def delete_payout(org_id: int, payout_id: int) -> None:
    """Delete an unpaid payout and release its transactions."""
    payout = get_payout(org_id, payout_id)
    if payout.status == PayoutStatus.PAID.value:
        raise ConflictError("Paid payouts cannot be deleted", ids=[payout.id])

    released = [t.id for t in payout.transactions]
    for txn in payout.transactions:
        txn.payout_id = None

    db.session.delete(payout)
    db.session.commit()
    current_app.logger.info("Payout %s deleted; released transactions %s", payout.payout_number, released)


def export_payout_csv(org_id: int, payout_id: int) -> tuple[str, str]:
    """Render a payout as CSV. Returns (filename, csv_text)."""
    payout = get_payout(org_id, payout_id)
    transactions = sorted(payout.transactions, key=lambda t: (t.sale_date, t.id))
    item_titles = dict(
        db.session.query(Item.id, Item.title).filter(Item.id.in_([t.item_id for t in transactions]))
    ) if transactions else {}

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Payout Information"])
    writer.writerow(["Payout Number", payout.payout_number])
    writer.writerow(["Consignor", payout.consignor.get_display_name()])
    writer.writerow(["Payout Date", payout.payout_date.isoformat()])
    writer.writerow(["Status", payout.status])
    writer.writerow(["Total Amount", format_cents(payout.amount_cents)])
    writer.writerow(["Payment Method", payout.payment_method or ""])
    writer.writerow(["Period", f"{payout.period_start.isoformat()} to {payout.period_end.isoformat()}"])
    writer.writerow([])
    writer.writerow(["Transactions"])
    writer.writerow(["Item", "Sale Date", "Sale Price", "Consignor Amount", "Shop Amount"])
    for t in transactions:
        writer.writerow([
            item_titles.get(t.item_id, ""),
            t.sale_date.date().isoformat(),
            format_cents(t.sale_price_cents),
            format_cents(t.consignor_amount_cents),
            format_cents(t.shop_amount_cents),
        ])
    writer.writerow([])
    writer.writerow(["Total Transactions", len(transactions)])
    writer.writerow(["Total Consignor Amount", format_cents(sum(t.consignor_amount_cents for t in transactions))])

    return f"payout-{payout.payout_number}.csv", buffer.getvalue()
