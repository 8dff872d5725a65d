# Overview: Flask API routes for consignor management; parses input and returns JSON responses.

"""
Consignor routes

All routes require a staff session (OWNER or CLERK); removal is OWNER only.
Consignors are scoped to the session's organization.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..enums import STAFF_ROLES, UserRole
from ..services import consignor_service
from ..validation import DomainError, error_response, pagination_args


consignors_bp = Blueprint("consignors", __name__, url_prefix="/api/consignors")


@consignors_bp.get("")
@require_auth
@require_role(*STAFF_ROLES)
def list_consignors_route():
    """
    Query parameters:
    - status: filter by consignor status
    - search: name, business, email or consignor number
    - limit / offset: pagination

    Returns:
        {items: Consignor[], count: int, limit: int, offset: int}
    """
    try:
        limit, offset = pagination_args(request.args)
        consignors, total = consignor_service.list_consignors(
            g.org_id,
            status=request.args.get("status"),
            search=request.args.get("search"),
            limit=limit,
            offset=offset,
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status

    return jsonify({
        "items": [c.to_dict() for c in consignors],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@consignors_bp.post("")
@require_auth
@require_role(*STAFF_ROLES)
def create_consignor_route():
    """
    Request body:
    {
        "first_name": "Ada",              // required
        "last_name": "Lovelace",          // required
        "email": "...",                   // optional, unique among non-rejected consignors
        "split_percentage": "60.00",      // optional, defaults to the shop's split
        "preferred_payout_method": "CHECK",
        "display_name" / "business_name" / "phone" / "payout_details" / "notes"
    }
    """
    try:
        consignor = consignor_service.create_consignor(g.org_id, request.get_json(silent=True) or {})
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(consignor.to_dict()), 201


@consignors_bp.get("/<int:consignor_id>")
@require_auth
@require_role(*STAFF_ROLES)
def get_consignor_route(consignor_id: int):
    """Consignor with pending balance and item counts."""
    try:
        summary = consignor_service.consignor_summary(g.org_id, consignor_id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(summary)


@consignors_bp.put("/<int:consignor_id>")
@require_auth
@require_role(*STAFF_ROLES)
def update_consignor_route(consignor_id: int):
    try:
        consignor = consignor_service.update_consignor(g.org_id, consignor_id, request.get_json(silent=True) or {})
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(consignor.to_dict())


@consignors_bp.post("/<int:consignor_id>/status")
@require_auth
@require_role(*STAFF_ROLES)
def change_consignor_status_route(consignor_id: int):
    """
    Request body: {"action": "approve|reject|deactivate|reactivate", "reason": "..."}
    """
    data = request.get_json(silent=True) or {}
    action = (data.get("action") or "").strip().lower()
    if not action:
        return jsonify({"error": "action is required", "code": "validation_error", "field": "action"}), 400

    try:
        consignor = consignor_service.change_consignor_status(g.org_id, consignor_id, action, data.get("reason"))
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(consignor.to_dict())


@consignors_bp.delete("/<int:consignor_id>")
@require_auth
@require_role(UserRole.OWNER)
def delete_consignor_route(consignor_id: int):
    """
    Remove a consignor. Consignors with history are deactivated instead;
    the response's "deleted" flag tells which happened.
    """
    try:
        result = consignor_service.delete_consignor(g.org_id, consignor_id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(result)
