# Overview: Recording, editing and voiding sales of consigned items.

"""
Transaction (sale) service

Creating a transaction:
- the item must belong to the organization and be AVAILABLE
- its consignor must be ACTIVE
- the effective split (item override, else consignor default) is frozen on
  the transaction and the consignor/shop amounts computed from it
- the item becomes SOLD in the same database transaction

Voiding returns the item to AVAILABLE and is refused once the sale is part
of a payout.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..enums import ConsignorStatus, ItemStatus, PaymentMethod, TransactionStatus
from ..models import Consignor, Item, Transaction
from ..money import MAX_PRICE_CENTS
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_datetime,
    coerce_enum,
    coerce_int,
    require_period,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry
from .split_service import effective_split_bps, split_cents
from consignment.time_utils import period_bounds, utcnow


UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"payment_method", "notes"},
    enum_fields={"payment_method": PaymentMethod},
)


def get_transaction(org_id: int, transaction_id: int) -> Transaction:
    txn = db.session.query(Transaction).filter_by(id=transaction_id, org_id=org_id).first()
    if not txn:
        raise NotFoundError("Transaction not found", ids=[transaction_id])
    return txn


def create_transaction(
    org_id: int,
    *,
    item_id,
    payment_method,
    sale_price_cents=None,
    sales_tax_cents=0,
    sale_date=None,
    notes: str | None = None,
    user_id: int | None = None,
) -> Transaction:
    """
    Record the sale of one item. sale_price_cents defaults to the item's
    tag price.

    Raises NotFoundError (unknown item), ConflictError (item not AVAILABLE)
    or ValidationError (bad input, consignor not ACTIVE).
    """
    item_id = coerce_int(item_id, "item_id")
    method = coerce_enum(PaymentMethod, payment_method, "payment_method")
    tax_cents = coerce_int(sales_tax_cents if sales_tax_cents is not None else 0, "sales_tax_cents")
    if tax_cents < 0:
        raise ValidationError("sales_tax_cents must be >= 0", field="sales_tax_cents")
    sold_at = coerce_datetime(sale_date, "sale_date") if sale_date else utcnow()

    def _op() -> Transaction:
        item = lock_for_update(
            db.session.query(Item).filter_by(id=item_id, org_id=org_id)
        ).first()
        if not item:
            raise NotFoundError("Item not found", ids=[item_id])
        if item.status != ItemStatus.AVAILABLE.value:
            raise ConflictError(f"Item is not available for sale (status {item.status})", ids=[item.id])

        consignor = db.session.query(Consignor).filter_by(id=item.consignor_id, org_id=org_id).first()
        if not consignor or consignor.status != ConsignorStatus.ACTIVE.value:
            raise ValidationError("Consignor not found or inactive", field="item_id")

        price_cents = item.price_cents if sale_price_cents is None else coerce_int(sale_price_cents, "sale_price_cents")
        if price_cents <= 0:
            raise ValidationError("sale_price_cents must be > 0", field="sale_price_cents")
        if price_cents > MAX_PRICE_CENTS:
            raise ValidationError(f"sale_price_cents cannot exceed {MAX_PRICE_CENTS}", field="sale_price_cents")

        split_bps = effective_split_bps(item, consignor)
        consignor_cents, shop_cents = split_cents(price_cents, split_bps)

        txn = Transaction(
            org_id=org_id,
            item_id=item.id,
            consignor_id=consignor.id,
            sale_date=sold_at,
            sale_price_cents=price_cents,
            sales_tax_cents=tax_cents,
            payment_method=method,
            consignor_split_bps=split_bps,
            consignor_amount_cents=consignor_cents,
            shop_amount_cents=shop_cents,
            status=TransactionStatus.COMPLETED.value,
            notes=(notes or "").strip() or None,
            processed_by_user_id=user_id,
        )
        item.status = ItemStatus.SOLD.value
        item.sold_at = sold_at

        db.session.add(txn)
        db.session.commit()
        return txn

    txn = run_with_retry(_op)
    current_app.logger.info(
        "Transaction %s recorded: item %s sold for %s cents (consignor %s / shop %s)",
        txn.id, txn.item_id, txn.sale_price_cents, txn.consignor_amount_cents, txn.shop_amount_cents,
    )
    return txn


def list_transactions(
    org_id: int,
    *,
    consignor_id: int | None = None,
    start_date=None,
    end_date=None,
    status: str | None = None,
    paid: bool | None = None,
    payment_method: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Transaction], int]:
    """
    Filtered, newest-first listing. start_date/end_date are inclusive days;
    paid=True keeps sales already in a payout, paid=False the unpaid ones.
    """
    query = db.session.query(Transaction).filter(Transaction.org_id == org_id)

    if consignor_id is not None:
        query = query.filter(Transaction.consignor_id == consignor_id)
    if status:
        query = query.filter(Transaction.status == coerce_enum(TransactionStatus, status, "status"))
    if payment_method:
        query = query.filter(Transaction.payment_method == coerce_enum(PaymentMethod, payment_method, "payment_method"))
    if paid is True:
        query = query.filter(Transaction.payout_id.isnot(None))
    elif paid is False:
        query = query.filter(Transaction.payout_id.is_(None))

    if start_date and end_date:
        require_period(start_date, end_date)
    if start_date:
        start_at, _ = period_bounds(start_date, start_date)
        query = query.filter(Transaction.sale_date >= start_at)
    if end_date:
        _, end_before = period_bounds(end_date, end_date)
        query = query.filter(Transaction.sale_date < end_before)

    total = query.count()
    rows = query.order_by(Transaction.sale_date.desc(), Transaction.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def update_transaction(org_id: int, transaction_id: int, payload: dict) -> Transaction:
    """Only payment_method and notes are editable; amounts never change."""
    patch = validate_payload(model=Transaction, payload=payload, policy=UPDATE_POLICY, partial=True)
    txn = get_transaction(org_id, transaction_id)
    if txn.status == TransactionStatus.VOIDED.value:
        raise ConflictError("Voided transactions cannot be modified", ids=[txn.id])

    for key, value in patch.items():
        setattr(txn, key, value)

    db.session.commit()
    return txn


def void_transaction(org_id: int, transaction_id: int, *, reason: str | None = None, user_id: int | None = None) -> Transaction:
    """
    Void a sale and put its item back on the floor.

    Raises ConflictError when the sale is already voided or belongs to a payout.
    """
    def _op() -> Transaction:
        txn = lock_for_update(
            db.session.query(Transaction).filter_by(id=transaction_id, org_id=org_id)
        ).first()
        if not txn:
            raise NotFoundError("Transaction not found", ids=[transaction_id])
        if txn.status == TransactionStatus.VOIDED.value:
            raise ConflictError("Transaction is already voided", ids=[txn.id])
        if txn.payout_id is not None:
            raise ConflictError("Transaction is part of a payout and cannot be voided", ids=[txn.id])

        now = utcnow()
        txn.status = TransactionStatus.VOIDED.value
        txn.voided_at = now
        txn.voided_by_user_id = user_id
        txn.void_reason = (reason or "").strip() or None

        item = txn.item
        if item is not None and item.status == ItemStatus.SOLD.value:
            item.status = ItemStatus.AVAILABLE.value
            item.sold_at = None

        db.session.commit()
        return txn

    txn = run_with_retry(_op)
    current_app.logger.info("Transaction %s voided; item %s available again", txn.id, txn.item_id)
    return txn


def find_unpaid_transactions(org_id: int, consignor_id: int, period_start, period_end) -> list[Transaction]:
    """Completed sales of a consignor in the inclusive period that no payout covers yet."""
    require_period(period_start, period_end)
    start_at, end_before = period_bounds(period_start, period_end)
    return db.session.query(Transaction).filter(
        Transaction.org_id == org_id,
        Transaction.consignor_id == consignor_id,
        Transaction.status == TransactionStatus.COMPLETED.value,
        Transaction.payout_id.is_(None),
        Transaction.sale_date >= start_at,
        Transaction.sale_date < end_before,
    ).order_by(Transaction.sale_date.asc(), Transaction.id.asc()).all()
