# Overview: Flask API routes for consignor payouts; parses input and returns JSON responses.

"""
Payout routes

Payouts batch a consignor's unpaid sales. Building, previewing and listing
payouts is open to staff; CSV export requires the PRO tier.
"""

from flask import Blueprint, Response, g, jsonify, request

from ..decorators import require_auth, require_role, require_tier
from ..enums import STAFF_ROLES, SubscriptionTier
from ..services import payout_service
from ..validation import (
    DomainError,
    ValidationError,
    coerce_date,
    coerce_int,
    error_response,
    optional_date,
    optional_int,
    pagination_args,
)


payouts_bp = Blueprint("payouts", __name__, url_prefix="/api/payouts")


def _period_from(data: dict):
    if data.get("period_start") is None or data.get("period_end") is None:
        raise ValidationError("period_start and period_end are required", field="period_start")
    return coerce_date(data["period_start"], "period_start"), coerce_date(data["period_end"], "period_end")


@payouts_bp.get("/pending")
@require_auth
@require_role(*STAFF_ROLES)
def pending_payouts_route():
    """
    Unpaid balances grouped by consignor.

    Query parameters: consignor_id, sold_before (YYYY-MM-DD),
    minimum_amount_cents.
    """
    try:
        results = payout_service.pending_payouts(
            g.org_id,
            consignor_id=optional_int(request.args, "consignor_id"),
            sold_before=optional_date(request.args, "sold_before"),
            minimum_amount_cents=optional_int(request.args, "minimum_amount_cents"),
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify({"items": results, "count": len(results)})


@payouts_bp.post("/preview")
@require_auth
@require_role(*STAFF_ROLES)
def preview_payout_route():
    """Request body: {"consignor_id": 1, "period_start": "...", "period_end": "..."}"""
    data = request.get_json(silent=True) or {}
    try:
        period_start, period_end = _period_from(data)
        draft = payout_service.preview_payout(
            g.org_id,
            coerce_int(data.get("consignor_id"), "consignor_id"),
            period_start,
            period_end,
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(draft)


@payouts_bp.post("")
@require_auth
@require_role(*STAFF_ROLES)
def create_payout_route():
    """
    Build a payout.

    Request body:
    {
        "consignor_id": 1,                 // required
        "period_start": "2025-11-01",      // required
        "period_end": "2025-11-30",        // required
        "transaction_ids": [10, 11, 14],   // required, non-empty
        "payment_method": "CHECK",         // optional
        "payment_reference": "#1042",      // optional
        "notes": "..."                     // optional
    }

    Errors carry the offending transaction ids:
    404 unknown ids, 400 wrong consignor / outside period / voided,
    409 already paid out.
    """
    data = request.get_json(silent=True) or {}
    try:
        period_start, period_end = _period_from(data)
        payout = payout_service.build_payout(
            g.org_id,
            coerce_int(data.get("consignor_id"), "consignor_id"),
            period_start,
            period_end,
            data.get("transaction_ids"),
            payment_method=data.get("payment_method"),
            payment_reference=data.get("payment_reference"),
            notes=data.get("notes"),
            user_id=g.current_user.id,
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(payout.to_dict()), 201


@payouts_bp.get("")
@require_auth
@require_role(*STAFF_ROLES)
def list_payouts_route():
    """Query parameters: consignor_id, status, start_date, end_date, limit, offset."""
    try:
        limit, offset = pagination_args(request.args)
        rows, total = payout_service.list_payouts(
            g.org_id,
            consignor_id=optional_int(request.args, "consignor_id"),
            status=request.args.get("status"),
            start_date=optional_date(request.args, "start_date"),
            end_date=optional_date(request.args, "end_date"),
            limit=limit,
            offset=offset,
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status

    return jsonify({
        "items": [p.to_dict() for p in rows],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@payouts_bp.get("/<int:payout_id>")
@require_auth
@require_role(*STAFF_ROLES)
def get_payout_route(payout_id: int):
    try:
        detail = payout_service.payout_detail(g.org_id, payout_id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(detail)


@payouts_bp.put("/<int:payout_id>")
@require_auth
@require_role(*STAFF_ROLES)
def update_payout_route(payout_id: int):
    """Request body: status, payment_method, payment_reference, notes (all optional)."""
    try:
        payout = payout_service.update_payout(g.org_id, payout_id, request.get_json(silent=True) or {})
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(payout.to_dict())


@payouts_bp.delete("/<int:payout_id>")
@require_auth
@require_role(*STAFF_ROLES)
def delete_payout_route(payout_id: int):
    try:
        payout_service.delete_payout(g.org_id, payout_id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify({"message": "Payout deleted"})


@payouts_bp.get("/<int:payout_id>/export")
@require_auth
@require_role(*STAFF_ROLES)
@require_tier(SubscriptionTier.PRO)
def export_payout_route(payout_id: int):
    try:
        filename, content = payout_service.export_payout_csv(g.org_id, payout_id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
