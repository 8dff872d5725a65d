# Overview: Read-only consignor portal: a linked consignor's own items, sales, payouts and statements.

"""
Portal service

A user with the CONSIGNOR role sees the consignor record whose user_id
points at them, and nothing else. Records of other consignors behave as if
they did not exist (NotFoundError), the same as foreign-tenant ids.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Consignor
from ..validation import NotFoundError
from . import consignor_service, item_service, payout_service, statement_service, transaction_service


def consignor_for_user(org_id: int, user_id: int) -> Consignor:
    consignor = db.session.query(Consignor).filter_by(org_id=org_id, user_id=user_id).first()
    if not consignor:
        raise NotFoundError("No consignor account is linked to this login")
    return consignor


def dashboard(org_id: int, user_id: int) -> dict:
    consignor = consignor_for_user(org_id, user_id)
    return consignor_service.consignor_summary(org_id, consignor.id)


def list_items(org_id: int, user_id: int, **filters):
    consignor = consignor_for_user(org_id, user_id)
    return item_service.list_items(org_id, consignor_id=consignor.id, **filters)


def item_detail(org_id: int, user_id: int, item_id: int):
    consignor = consignor_for_user(org_id, user_id)
    item = item_service.get_item(org_id, item_id)
    if item.consignor_id != consignor.id:
        raise NotFoundError("Item not found", ids=[item_id])
    return item


def list_sales(org_id: int, user_id: int, **filters):
    consignor = consignor_for_user(org_id, user_id)
    return transaction_service.list_transactions(org_id, consignor_id=consignor.id, **filters)


def list_payouts(org_id: int, user_id: int, **filters):
    consignor = consignor_for_user(org_id, user_id)
    return payout_service.list_payouts(org_id, consignor_id=consignor.id, **filters)


def payout_detail(org_id: int, user_id: int, payout_id: int) -> dict:
    consignor = consignor_for_user(org_id, user_id)
    if payout_service.get_payout(org_id, payout_id).consignor_id != consignor.id:
        raise NotFoundError("Payout not found", ids=[payout_id])
    return payout_service.payout_detail(org_id, payout_id)


def list_statements(org_id: int, user_id: int, **filters):
    consignor = consignor_for_user(org_id, user_id)
    return statement_service.list_statements(org_id, consignor_id=consignor.id, **filters)


def statement_detail(org_id: int, user_id: int, statement_id: int) -> dict:
    """The consignor opening a statement records the first view."""
    consignor = consignor_for_user(org_id, user_id)
    if statement_service.get_statement(org_id, statement_id).consignor_id != consignor.id:
        raise NotFoundError("Statement not found", ids=[statement_id])
    statement_service.mark_statement_viewed(org_id, statement_id)
    return statement_service.statement_detail(org_id, statement_id)
