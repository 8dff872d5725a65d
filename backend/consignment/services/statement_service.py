# Overview: Periodic consignor statements: balances, totals and itemized lines.

"""
Statement service

For a consignor and an inclusive date period:

    opening_balance = earnings on COMPLETED sales before period_start
                      minus PAID payouts dated before period_start
    total_sales     = sum of sale_price over COMPLETED sales in the period
    total_earnings  = sum of consignor_amount over the same sales
    total_payouts   = sum of amount over PAID payouts dated in the period
    closing_balance = opening_balance + total_earnings - total_payouts

There is one statement per consignor and period. Generating a period again
recomputes every figure from the current rows and rewrites the existing
statement in place.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..enums import ConsignorStatus, PayoutStatus, StatementStatus, TransactionStatus
from ..models import Consignor, Item, Payout, Statement, Transaction
from ..validation import NotFoundError, ValidationError, require_period
from .concurrency import commit_or_conflict
from .consignor_service import get_consignor
from consignment.time_utils import month_period, period_bounds, utcnow


def statement_number(consignor_id: int, period_start) -> str:
    return f"STMT-{period_start.year}-{period_start.month:02d}-CON{consignor_id:05d}"


def _opening_balance(org_id: int, consignor_id: int, period_start) -> int:
    # Balance owed at period start, read from sales and payouts
    start_at, _ = period_bounds(period_start, period_start)
    earned = db.session.query(
        func.coalesce(func.sum(Transaction.consignor_amount_cents), 0)
    ).filter(
        Transaction.org_id == org_id,
        Transaction.consignor_id == consignor_id,
        Transaction.status == TransactionStatus.COMPLETED.value,
        Transaction.sale_date < start_at,
    ).scalar()
    paid = db.session.query(
        func.coalesce(func.sum(Payout.amount_cents), 0)
    ).filter(
        Payout.org_id == org_id,
        Payout.consignor_id == consignor_id,
        Payout.status == PayoutStatus.PAID.value,
        Payout.payout_date < period_start,
    ).scalar()
    return int(earned) - int(paid)


def _sales_in_period(org_id: int, consignor_id: int, period_start, period_end):
    start_at, end_before = period_bounds(period_start, period_end)
    return db.session.query(Transaction).filter(
        Transaction.org_id == org_id,
        Transaction.consignor_id == consignor_id,
        Transaction.status == TransactionStatus.COMPLETED.value,
        Transaction.sale_date >= start_at,
        Transaction.sale_date < end_before,
    )


def _paid_payouts_in_period(org_id: int, consignor_id: int, period_start, period_end):
    return db.session.query(Payout).filter(
        Payout.org_id == org_id,
        Payout.consignor_id == consignor_id,
        Payout.status == PayoutStatus.PAID.value,
        Payout.payout_date >= period_start,
        Payout.payout_date <= period_end,
    )


def generate_statement(org_id: int, consignor_id: int, period_start, period_end) -> Statement:
    """
    Create or refresh the statement for a consignor and period.

    Raises NotFoundError for an unknown consignor and ValidationError when
    period_end is before period_start.
    """
    require_period(period_start, period_end)
    consignor = get_consignor(org_id, consignor_id)

    total_sales, total_earnings, items_sold = _sales_in_period(
        org_id, consignor.id, period_start, period_end
    ).with_entities(
        func.coalesce(func.sum(Transaction.sale_price_cents), 0),
        func.coalesce(func.sum(Transaction.consignor_amount_cents), 0),
        func.count(Transaction.id),
    ).one()

    total_payouts, payout_count = _paid_payouts_in_period(
        org_id, consignor.id, period_start, period_end
    ).with_entities(
        func.coalesce(func.sum(Payout.amount_cents), 0),
        func.count(Payout.id),
    ).one()

    opening = _opening_balance(org_id, consignor.id, period_start)

    statement = db.session.query(Statement).filter_by(
        consignor_id=consignor.id,
        period_start=period_start,
        period_end=period_end,
    ).first()
    regenerated = statement is not None
    if statement is None:
        statement = Statement(
            org_id=org_id,
            consignor_id=consignor.id,
            period_start=period_start,
            period_end=period_end,
        )
        db.session.add(statement)

    statement.statement_number = statement_number(consignor.id, period_start)
    statement.opening_balance_cents = opening
    statement.total_sales_cents = int(total_sales)
    statement.total_earnings_cents = int(total_earnings)
    statement.total_payouts_cents = int(total_payouts)
    statement.closing_balance_cents = opening + int(total_earnings) - int(total_payouts)
    statement.items_sold = int(items_sold)
    statement.payout_count = int(payout_count)
    statement.status = StatementStatus.GENERATED.value
    statement.viewed_at = None
    statement.generated_at = utcnow()

    commit_or_conflict("Statement for this period is being generated concurrently; retry")

    current_app.logger.info(
        "%s statement %s for consignor %s",
        "Regenerated" if regenerated else "Generated", statement.statement_number, consignor.id,
    )
    return statement


def generate_statements_for_month(org_id: int, year: int, month: int) -> dict:
    """
    Generate statements for every ACTIVE consignor for a calendar month.

    A failure for one consignor is logged and reported; the others are
    still generated.
    """
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12", field="month")
    period_start, period_end = month_period(year, month)

    consignor_ids = [
        cid for (cid,) in db.session.query(Consignor.id).filter(
            Consignor.org_id == org_id,
            Consignor.status == ConsignorStatus.ACTIVE.value,
        ).order_by(Consignor.id.asc())
    ]

    generated: list[Statement] = []
    failures: list[dict] = []
    for consignor_id in consignor_ids:
        try:
            generated.append(generate_statement(org_id, consignor_id, period_start, period_end))
        except Exception as exc:
            db.session.rollback()
            current_app.logger.exception(
                "Failed to generate statement for consignor %s for %s-%02d", consignor_id, year, month
            )
            failures.append({"consignor_id": consignor_id, "error": str(exc)})

    current_app.logger.info(
        "Statement generation for org %s %s-%02d: %s generated, %s failed",
        org_id, year, month, len(generated), len(failures),
    )
    return {
        "period_start": period_start.isoformat(),
        "period_end": period_end.isoformat(),
        "consignor_count": len(consignor_ids),
        "generated": [s.to_dict() for s in generated],
        "failures": failures,
    }


def get_statement(org_id: int, statement_id: int) -> Statement:
    statement = db.session.query(Statement).filter_by(id=statement_id, org_id=org_id).first()
    if not statement:
        raise NotFoundError("Statement not found", ids=[statement_id])
    return statement


def statement_detail(org_id: int, statement_id: int) -> dict:
    """Statement plus itemized sale and payout lines, read from the source rows."""
    statement = get_statement(org_id, statement_id)

    sales = _sales_in_period(org_id, statement.consignor_id, statement.period_start, statement.period_end) \
        .order_by(Transaction.sale_date.asc(), Transaction.id.asc()).all()
    titles = dict(
        db.session.query(Item.id, Item.title).filter(Item.id.in_([t.item_id for t in sales]))
    ) if sales else {}

    payouts = _paid_payouts_in_period(org_id, statement.consignor_id, statement.period_start, statement.period_end) \
        .order_by(Payout.payout_date.asc(), Payout.id.asc()).all()

    data = statement.to_dict()
    data["consignor"] = statement.consignor.to_dict()
    data["sales"] = [
        {
            "transaction_id": t.id,
            "date": t.sale_date.date().isoformat(),
            "item_title": titles.get(t.item_id),
            "sale_price_cents": t.sale_price_cents,
            "split_bps": t.consignor_split_bps,
            "earnings_cents": t.consignor_amount_cents,
        }
        for t in sales
    ]
    data["payouts"] = [
        {
            "payout_id": p.id,
            "payout_number": p.payout_number,
            "date": p.payout_date.isoformat(),
            "payment_method": p.payment_method,
            "amount_cents": p.amount_cents,
        }
        for p in payouts
    ]
    return data


def list_statements(
    org_id: int,
    *,
    consignor_id: int | None = None,
    year: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Statement], int]:
    query = db.session.query(Statement).filter(Statement.org_id == org_id)
    if consignor_id is not None:
        query = query.filter(Statement.consignor_id == consignor_id)
    if year is not None:
        start, _ = month_period(year, 1)
        _, end = month_period(year, 12)
        query = query.filter(Statement.period_start >= start, Statement.period_start <= end)

    total = query.count()
    rows = query.order_by(Statement.period_start.desc(), Statement.consignor_id.asc()) \
        .offset(offset).limit(limit).all()
    return rows, total


def regenerate_statement(org_id: int, statement_id: int) -> Statement:
    statement = get_statement(org_id, statement_id)
    return generate_statement(org_id, statement.consignor_id, statement.period_start, statement.period_end)


def mark_statement_viewed(org_id: int, statement_id: int) -> Statement:
    """First view stamps viewed_at; later views leave it alone."""
    statement = get_statement(org_id, statement_id)
    if statement.viewed_at is None:
        statement.viewed_at = utcnow()
        statement.status = StatementStatus.VIEWED.value
        db.session.commit()
    return statement
