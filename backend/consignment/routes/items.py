# Overview: Flask API routes for consigned items; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..enums import STAFF_ROLES
from ..services import item_service
from ..validation import DomainError, error_response, optional_int, pagination_args


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.get("")
@require_auth
@require_role(*STAFF_ROLES)
def list_items_route():
    """
    Query parameters: status, consignor_id, category, search, limit, offset.
    """
    try:
        limit, offset = pagination_args(request.args)
        items, total = item_service.list_items(
            g.org_id,
            status=request.args.get("status"),
            consignor_id=optional_int(request.args, "consignor_id"),
            category=request.args.get("category"),
            search=request.args.get("search"),
            limit=limit,
            offset=offset,
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status

    return jsonify({
        "items": [i.to_dict() for i in items],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@items_bp.post("")
@require_auth
@require_role(*STAFF_ROLES)
def create_item_route():
    """
    Request body:
    {
        "consignor_id": 1,            // required
        "sku": "DRS-0042",            // required, unique within the shop
        "title": "Silk dress",        // required
        "price_cents": 4500,          // required, > 0
        "condition": "LIKE_NEW",      // optional
        "split_percentage": "50.00",  // optional per-item override
        "description" / "category"    // optional
    }
    """
    try:
        item = item_service.create_item(g.org_id, request.get_json(silent=True) or {})
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(item.to_dict()), 201


@items_bp.get("/<int:item_id>")
@require_auth
@require_role(*STAFF_ROLES)
def get_item_route(item_id: int):
    try:
        item = item_service.get_item(g.org_id, item_id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(item.to_dict())


@items_bp.get("/by-sku/<sku>")
@require_auth
@require_role(*STAFF_ROLES)
def get_item_by_sku_route(sku: str):
    try:
        item = item_service.get_item_by_sku(g.org_id, sku)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(item.to_dict())


@items_bp.put("/<int:item_id>")
@require_auth
@require_role(*STAFF_ROLES)
def update_item_route(item_id: int):
    try:
        item = item_service.update_item(g.org_id, item_id, request.get_json(silent=True) or {})
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(item.to_dict())


@items_bp.post("/<int:item_id>/remove")
@require_auth
@require_role(*STAFF_ROLES)
def remove_item_route(item_id: int):
    """Request body: {"reason": "..."} (optional)."""
    data = request.get_json(silent=True) or {}
    try:
        item = item_service.remove_item(g.org_id, item_id, data.get("reason"))
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(item.to_dict())
