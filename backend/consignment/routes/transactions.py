# Overview: Flask API routes for sales transactions; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..enums import STAFF_ROLES
from ..services import transaction_service
from ..validation import (
    DomainError,
    error_response,
    optional_bool,
    optional_date,
    optional_int,
    pagination_args,
)


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_auth
@require_role(*STAFF_ROLES)
def list_transactions_route():
    """
    Query parameters:
    - consignor_id
    - start_date / end_date: inclusive YYYY-MM-DD
    - status: COMPLETED or VOIDED
    - paid: true (in a payout) / false (unpaid)
    - payment_method
    - limit / offset
    """
    try:
        limit, offset = pagination_args(request.args)
        rows, total = transaction_service.list_transactions(
            g.org_id,
            consignor_id=optional_int(request.args, "consignor_id"),
            start_date=optional_date(request.args, "start_date"),
            end_date=optional_date(request.args, "end_date"),
            status=request.args.get("status"),
            paid=optional_bool(request.args, "paid"),
            payment_method=request.args.get("payment_method"),
            limit=limit,
            offset=offset,
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status

    return jsonify({
        "items": [t.to_dict() for t in rows],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@transactions_bp.post("")
@require_auth
@require_role(*STAFF_ROLES)
def create_transaction_route():
    """
    Record a sale.

    Request body:
    {
        "item_id": 12,                  // required, item must be AVAILABLE
        "payment_method": "CARD",       // required
        "sale_price_cents": 4500,       // optional, defaults to the item price
        "sales_tax_cents": 360,         // optional
        "sale_date": "2025-11-03T15:04:00Z", // optional, defaults to now
        "notes": "..."
    }
    """
    data = request.get_json(silent=True) or {}
    if data.get("item_id") is None:
        return jsonify({"error": "item_id is required", "code": "validation_error", "field": "item_id"}), 400

    try:
        txn = transaction_service.create_transaction(
            g.org_id,
            item_id=data.get("item_id"),
            payment_method=data.get("payment_method"),
            sale_price_cents=data.get("sale_price_cents"),
            sales_tax_cents=data.get("sales_tax_cents", 0),
            sale_date=data.get("sale_date"),
            notes=data.get("notes"),
            user_id=g.current_user.id,
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(txn.to_dict()), 201


@transactions_bp.get("/<int:transaction_id>")
@require_auth
@require_role(*STAFF_ROLES)
def get_transaction_route(transaction_id: int):
    try:
        txn = transaction_service.get_transaction(g.org_id, transaction_id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(txn.to_dict())


@transactions_bp.put("/<int:transaction_id>")
@require_auth
@require_role(*STAFF_ROLES)
def update_transaction_route(transaction_id: int):
    """Only payment_method and notes may change."""
    try:
        txn = transaction_service.update_transaction(g.org_id, transaction_id, request.get_json(silent=True) or {})
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(txn.to_dict())


@transactions_bp.post("/<int:transaction_id>/void")
@require_auth
@require_role(*STAFF_ROLES)
def void_transaction_route(transaction_id: int):
    """Request body: {"reason": "..."} (optional). The item returns to AVAILABLE."""
    data = request.get_json(silent=True) or {}
    try:
        txn = transaction_service.void_transaction(
            g.org_id,
            transaction_id,
            reason=data.get("reason"),
            user_id=g.current_user.id,
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(txn.to_dict())
