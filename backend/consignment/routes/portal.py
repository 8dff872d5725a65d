# Overview: Flask API routes for the consignor portal; read-only views of the caller's own records.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..enums import UserRole
from ..services import portal_service
from ..validation import DomainError, error_response, optional_bool, optional_date, optional_int, pagination_args


portal_bp = Blueprint("portal", __name__, url_prefix="/api/portal")


def _page(rows, total, limit, offset):
    return jsonify({
        "items": [r.to_dict() for r in rows],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@portal_bp.get("/dashboard")
@require_auth
@require_role(UserRole.CONSIGNOR)
def dashboard_route():
    """Own profile, item counts, pending balance and total paid out."""
    try:
        data = portal_service.dashboard(g.org_id, g.current_user.id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(data)


@portal_bp.get("/items")
@require_auth
@require_role(UserRole.CONSIGNOR)
def list_items_route():
    """Query parameters: status, search, limit, offset."""
    try:
        limit, offset = pagination_args(request.args)
        rows, total = portal_service.list_items(
            g.org_id,
            g.current_user.id,
            status=request.args.get("status"),
            search=request.args.get("search"),
            limit=limit,
            offset=offset,
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return _page(rows, total, limit, offset)


@portal_bp.get("/items/<int:item_id>")
@require_auth
@require_role(UserRole.CONSIGNOR)
def get_item_route(item_id: int):
    try:
        item = portal_service.item_detail(g.org_id, g.current_user.id, item_id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(item.to_dict())


@portal_bp.get("/sales")
@require_auth
@require_role(UserRole.CONSIGNOR)
def list_sales_route():
    """Query parameters: start_date, end_date (inclusive), paid, limit, offset."""
    try:
        limit, offset = pagination_args(request.args)
        rows, total = portal_service.list_sales(
            g.org_id,
            g.current_user.id,
            start_date=optional_date(request.args, "start_date"),
            end_date=optional_date(request.args, "end_date"),
            status=request.args.get("status"),
            paid=optional_bool(request.args, "paid"),
            limit=limit,
            offset=offset,
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return _page(rows, total, limit, offset)


@portal_bp.get("/payouts")
@require_auth
@require_role(UserRole.CONSIGNOR)
def list_payouts_route():
    try:
        limit, offset = pagination_args(request.args)
        rows, total = portal_service.list_payouts(
            g.org_id,
            g.current_user.id,
            status=request.args.get("status"),
            start_date=optional_date(request.args, "start_date"),
            end_date=optional_date(request.args, "end_date"),
            limit=limit,
            offset=offset,
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return _page(rows, total, limit, offset)


@portal_bp.get("/payouts/<int:payout_id>")
@require_auth
@require_role(UserRole.CONSIGNOR)
def get_payout_route(payout_id: int):
    try:
        detail = portal_service.payout_detail(g.org_id, g.current_user.id, payout_id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(detail)


@portal_bp.get("/statements")
@require_auth
@require_role(UserRole.CONSIGNOR)
def list_statements_route():
    """Query parameters: year, limit, offset."""
    try:
        limit, offset = pagination_args(request.args)
        rows, total = portal_service.list_statements(
            g.org_id,
            g.current_user.id,
            year=optional_int(request.args, "year"),
            limit=limit,
            offset=offset,
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return _page(rows, total, limit, offset)


@portal_bp.get("/statements/<int:statement_id>")
@require_auth
@require_role(UserRole.CONSIGNOR)
def get_statement_route(statement_id: int):
    try:
        detail = portal_service.statement_detail(g.org_id, g.current_user.id, statement_id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(detail)
