# Overview: Sales, payout, consignor and inventory reporting for an organization.

from __future__ import annotations

import csv
import io
from decimal import Decimal

from sqlalchemy import case, func

from ..extensions import db
from ..enums import ConsignorStatus, ItemStatus, PayoutStatus, TransactionStatus
from ..models import Consignor, Item, Payout, Transaction
from ..money import CENT, HUNDRED, format_cents
from ..validation import ValidationError, require_period
from consignment.time_utils import period_bounds, to_iso_date, to_utc_naive, to_utc_z, utcnow


def _completed_sales(org_id: int, start_date=None, end_date=None, consignor_id: int | None = None):
    if start_date and end_date:
        require_period(start_date, end_date)
    query = db.session.query(Transaction).filter(
        Transaction.org_id == org_id,
        Transaction.status == TransactionStatus.COMPLETED.value,
    )
    if start_date:
        start_at, _ = period_bounds(start_date, start_date)
        query = query.filter(Transaction.sale_date >= start_at)
    if end_date:
        _, end_before = period_bounds(end_date, end_date)
        query = query.filter(Transaction.sale_date < end_before)
    if consignor_id is not None:
        query = query.filter(Transaction.consignor_id == consignor_id)
    return query


def _display_names(consignor_ids) -> dict[int, str]:
    if not consignor_ids:
        return {}
    return {
        c.id: c.get_display_name()
        for c in db.session.query(Consignor).filter(Consignor.id.in_(consignor_ids))
    }


def sales_metrics(org_id: int, start_date=None, end_date=None, *, consignor_id: int | None = None) -> dict:
    """
    Totals of completed sales in an inclusive date range: sales, tax,
    consignor and shop shares, count and average, plus the top consignors
    and a payment method breakdown.
    """
    base = _completed_sales(org_id, start_date, end_date, consignor_id)

    total_sales, total_tax, total_consignor, total_shop, count = base.with_entities(
        func.coalesce(func.sum(Transaction.sale_price_cents), 0),
        func.coalesce(func.sum(Transaction.sales_tax_cents), 0),
        func.coalesce(func.sum(Transaction.consignor_amount_cents), 0),
        func.coalesce(func.sum(Transaction.shop_amount_cents), 0),
        func.count(Transaction.id),
    ).one()

    top_rows = base.with_entities(
        Transaction.consignor_id,
        func.count(Transaction.id),
        func.sum(Transaction.sale_price_cents),
        func.sum(Transaction.consignor_amount_cents),
    ).group_by(Transaction.consignor_id).order_by(func.sum(Transaction.sale_price_cents).desc()).limit(10).all()

    names = _display_names([r[0] for r in top_rows])

    method_rows = base.with_entities(
        Transaction.payment_method,
        func.count(Transaction.id),
        func.sum(Transaction.sale_price_cents),
    ).group_by(Transaction.payment_method).order_by(func.sum(Transaction.sale_price_cents).desc()).all()

    count = int(count)
    return {
        "period_start": to_iso_date(start_date),
        "period_end": to_iso_date(end_date),
        "total_sales_cents": int(total_sales),
        "total_tax_cents": int(total_tax),
        "total_consignor_cents": int(total_consignor),
        "total_shop_cents": int(total_shop),
        "transaction_count": count,
        "average_sale_cents": int(total_sales) // count if count else 0,
        "top_consignors": [
            {
                "consignor_id": cid,
                "consignor_name": names.get(cid),
                "transaction_count": int(n),
                "total_sales_cents": int(sales),
                "total_consignor_cents": int(earned),
            }
            for cid, n, sales, earned in top_rows
        ],
        "payment_methods": [
            {"payment_method": method, "count": int(n), "total_cents": int(total)}
            for method, n, total in method_rows
        ],
    }


def export_sales_csv(org_id: int, start_date=None, end_date=None, *, consignor_id: int | None = None) -> str:
    """Completed sales in the range as CSV text, oldest first."""
    rows = _completed_sales(org_id, start_date, end_date, consignor_id) \
        .order_by(Transaction.sale_date.asc(), Transaction.id.asc()).all()

    item_ids = {t.item_id for t in rows}
    consignor_ids = {t.consignor_id for t in rows}
    items = {
        i.id: i for i in db.session.query(Item).filter(Item.id.in_(item_ids))
    } if item_ids else {}
    consignors = {
        c.id: c for c in db.session.query(Consignor).filter(Consignor.id.in_(consignor_ids))
    } if consignor_ids else {}

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow([
        "Transaction ID", "Sale Date", "SKU", "Item", "Consignor", "Payment Method",
        "Sale Price", "Sales Tax", "Split %", "Consignor Amount", "Shop Amount", "Payout ID",
    ])
    for t in rows:
        item = items.get(t.item_id)
        consignor = consignors.get(t.consignor_id)
        writer.writerow([
            t.id,
            to_utc_z(t.sale_date),
            item.sku if item else "",
            item.title if item else "",
            consignor.get_display_name() if consignor else "",
            t.payment_method,
            format_cents(t.sale_price_cents),
            format_cents(t.sales_tax_cents),
            format_cents(t.consignor_split_bps),
            format_cents(t.consignor_amount_cents),
            format_cents(t.shop_amount_cents),
            t.payout_id or "",
        ])
    return buffer.getvalue()


def payout_summary(org_id: int, start_date=None, end_date=None, *, consignor_id: int | None = None) -> dict:
    """
    What has been paid out and what is still owed, per consignor.

    A sale is paid once its payout is PAID. Sales with no payout, or in a
    PENDING or PROCESSING payout, are still pending. Paid totals and the
    daily chart cover PAID payouts whose payout_date is in the range.
    """
    paid_share = case(
        (Payout.status == PayoutStatus.PAID.value, Transaction.consignor_amount_cents),
        else_=0,
    )
    line_rows = _completed_sales(org_id, start_date, end_date, consignor_id) \
        .outerjoin(Payout, Transaction.payout_id == Payout.id) \
        .with_entities(
            Transaction.consignor_id,
            func.sum(Transaction.sale_price_cents),
            func.sum(Transaction.consignor_amount_cents),
            func.coalesce(func.sum(paid_share), 0),
        ).group_by(Transaction.consignor_id).all()

    payouts = db.session.query(Payout).filter(
        Payout.org_id == org_id,
        Payout.status == PayoutStatus.PAID.value,
    )
    if start_date:
        payouts = payouts.filter(Payout.payout_date >= start_date)
    if end_date:
        payouts = payouts.filter(Payout.payout_date <= end_date)
    if consignor_id is not None:
        payouts = payouts.filter(Payout.consignor_id == consignor_id)

    total_paid, payout_count = payouts.with_entities(
        func.coalesce(func.sum(Payout.amount_cents), 0),
        func.count(Payout.id),
    ).one()
    chart_rows = payouts.with_entities(Payout.payout_date, func.sum(Payout.amount_cents)) \
        .group_by(Payout.payout_date).order_by(Payout.payout_date.asc()).all()
    last_paid = dict(
        payouts.with_entities(Payout.consignor_id, func.max(Payout.payout_date))
        .group_by(Payout.consignor_id).all()
    )

    names = _display_names([r[0] for r in line_rows])
    lines = []
    for cid, sales, earned, paid in line_rows:
        last = last_paid.get(cid)
        lines.append({
            "consignor_id": cid,
            "consignor_name": names.get(cid),
            "total_sales_cents": int(sales),
            "consignor_cents": int(earned),
            "paid_cents": int(paid),
            "pending_cents": int(earned) - int(paid),
            "last_payout_date": last.isoformat() if last else None,
        })
    lines.sort(key=lambda line: (-line["pending_cents"], line["consignor_id"]))

    payout_count = int(payout_count)
    return {
        "period_start": to_iso_date(start_date),
        "period_end": to_iso_date(end_date),
        "total_paid_cents": int(total_paid),
        "total_pending_cents": sum(line["pending_cents"] for line in lines),
        "consignors_with_pending": sum(1 for line in lines if line["pending_cents"] > 0),
        "payout_count": payout_count,
        "average_payout_cents": int(total_paid) // payout_count if payout_count else 0,
        "chart": [{"date": d.isoformat(), "amount_cents": int(amount)} for d, amount in chart_rows],
        "consignors": lines,
    }


def consignor_performance(org_id: int, start_date=None, end_date=None, *, include_inactive: bool = False) -> dict:
    """
    Per-consignor sell-through for completed sales in the range.

    sell_through_percentage is items sold in the range over all items the
    consignor has brought in. Days to sell run from item intake to the sale.
    """
    consignors_q = db.session.query(Consignor).filter(Consignor.org_id == org_id)
    if not include_inactive:
        consignors_q = consignors_q.filter(Consignor.status == ConsignorStatus.ACTIVE.value)
    consignors = consignors_q.order_by(Consignor.id.asc()).all()

    consigned: dict[int, int] = {}
    available: dict[int, int] = {}
    item_rows = db.session.query(Item.consignor_id, Item.status, func.count(Item.id)) \
        .filter(Item.org_id == org_id).group_by(Item.consignor_id, Item.status).all()
    for cid, status, n in item_rows:
        consigned[cid] = consigned.get(cid, 0) + int(n)
        if status == ItemStatus.AVAILABLE.value:
            available[cid] = int(n)

    sold: dict[int, list] = {}
    sale_rows = _completed_sales(org_id, start_date, end_date) \
        .join(Item, Item.id == Transaction.item_id) \
        .with_entities(
            Transaction.consignor_id,
            Transaction.sale_price_cents,
            Transaction.consignor_amount_cents,
            Transaction.payout_id,
            Transaction.sale_date,
            Item.created_at,
        ).all()
    for row in sale_rows:
        sold.setdefault(row[0], []).append(row)

    lines = []
    for consignor in consignors:
        sales = sold.get(consignor.id, [])
        brought_in = consigned.get(consignor.id, 0)
        days = [
            (to_utc_naive(sale_date) - to_utc_naive(listed)).total_seconds() / 86400
            for _, _, _, _, sale_date, listed in sales
            if listed is not None
        ]
        sell_through = (Decimal(len(sales)) / Decimal(brought_in) * HUNDRED).quantize(CENT) \
            if brought_in else Decimal("0.00")
        lines.append({
            "consignor_id": consignor.id,
            "consignor_name": consignor.get_display_name(),
            "items_consigned": brought_in,
            "items_sold": len(sales),
            "items_available": available.get(consignor.id, 0),
            "total_sales_cents": sum(s[1] for s in sales),
            "sell_through_percentage": str(sell_through),
            "avg_days_to_sell": round(sum(days) / len(days), 1) if days else 0,
            "pending_payout_cents": sum(s[2] for s in sales if s[3] is None),
        })
    lines.sort(key=lambda line: (-line["total_sales_cents"], line["consignor_id"]))

    total_sales = sum(line["total_sales_cents"] for line in lines)
    top = lines[0] if lines else None
    return {
        "period_start": to_iso_date(start_date),
        "period_end": to_iso_date(end_date),
        "consignor_count": len(lines),
        "total_sales_cents": total_sales,
        "average_sales_cents": total_sales // len(lines) if lines else 0,
        "top_consignor_name": top["consignor_name"] if top else None,
        "top_consignor_sales_cents": top["total_sales_cents"] if top else 0,
        "consignors": lines,
    }


AGING_BUCKETS = (("0-30", 0, 30), ("31-60", 31, 60), ("61-90", 61, 90), ("90+", 91, None))


def suggested_action(days_listed: int, price_cents: int) -> str:
    if days_listed > 180:
        return "DONATE"
    if days_listed > 120:
        return "RETURN_TO_CONSIGNOR"
    if days_listed > 90:
        return "REDUCE_PRICE" if price_cents > 5000 else "RETURN_TO_CONSIGNOR"
    return "MONITOR"


def inventory_aging(org_id: int, *, as_of=None, min_days: int = 0, consignor_id: int | None = None) -> dict:
    """
    Age of AVAILABLE items counted in whole days from intake to as_of
    (today by default). Items younger than min_days are left out of the
    buckets and the item list but still count toward total_available.
    """
    if min_days < 0:
        raise ValidationError("min_days must not be negative", field="min_days")
    as_of = as_of or utcnow().date()

    query = db.session.query(Item).filter(
        Item.org_id == org_id,
        Item.status == ItemStatus.AVAILABLE.value,
    )
    if consignor_id is not None:
        query = query.filter(Item.consignor_id == consignor_id)
    items = query.all()

    aged = []
    for item in items:
        days_listed = (as_of - to_utc_naive(item.created_at).date()).days
        if days_listed >= min_days:
            aged.append((days_listed, item))
    aged.sort(key=lambda pair: (-pair[0], pair[1].id))

    names = _display_names(sorted({item.consignor_id for _, item in aged}))
    buckets = []
    for label, low, high in AGING_BUCKETS:
        members = [item for days, item in aged if days >= low and (high is None or days <= high)]
        buckets.append({
            "bucket": label,
            "count": len(members),
            "value_cents": sum(item.price_cents for item in members),
        })

    return {
        "as_of": as_of.isoformat(),
        "total_available": len(items),
        "over_30_days": sum(1 for days, _ in aged if days >= 30),
        "over_60_days": sum(1 for days, _ in aged if days >= 60),
        "over_90_days": sum(1 for days, _ in aged if days >= 90),
        "average_age_days": round(sum(days for days, _ in aged) / len(aged), 1) if aged else 0,
        "buckets": buckets,
        "items": [
            {
                "item_id": item.id,
                "sku": item.sku,
                "title": item.title,
                "category": item.category,
                "consignor_name": names.get(item.consignor_id),
                "price_cents": item.price_cents,
                "listed_date": to_utc_naive(item.created_at).date().isoformat(),
                "days_listed": days,
                "suggested_action": suggested_action(days, item.price_cents),
            }
            for days, item in aged
        ],
    }
