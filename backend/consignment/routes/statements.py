# Overview: Flask API routes for consignor statements; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role, require_tier
from ..enums import STAFF_ROLES, SubscriptionTier
from ..services import statement_service
from ..validation import (
    DomainError,
    ValidationError,
    coerce_date,
    coerce_int,
    error_response,
    optional_int,
    pagination_args,
)


statements_bp = Blueprint("statements", __name__, url_prefix="/api/statements")


@statements_bp.post("")
@require_auth
@require_role(*STAFF_ROLES)
def generate_statement_route():
    """
    Generate (or regenerate) one consignor's statement.

    Request body: {"consignor_id": 1, "period_start": "2025-11-01", "period_end": "2025-11-30"}
    """
    data = request.get_json(silent=True) or {}
    try:
        if data.get("period_start") is None or data.get("period_end") is None:
            raise ValidationError("period_start and period_end are required", field="period_start")
        statement = statement_service.generate_statement(
            g.org_id,
            coerce_int(data.get("consignor_id"), "consignor_id"),
            coerce_date(data["period_start"], "period_start"),
            coerce_date(data["period_end"], "period_end"),
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(statement.to_dict()), 201


@statements_bp.post("/generate-month")
@require_auth
@require_role(*STAFF_ROLES)
@require_tier(SubscriptionTier.PRO)
def generate_month_route():
    """
    Generate statements for every active consignor.

    Request body: {"year": 2025, "month": 11}
    """
    data = request.get_json(silent=True) or {}
    try:
        result = statement_service.generate_statements_for_month(
            g.org_id,
            coerce_int(data.get("year"), "year"),
            coerce_int(data.get("month"), "month"),
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(result)


@statements_bp.get("")
@require_auth
@require_role(*STAFF_ROLES)
def list_statements_route():
    """Query parameters: consignor_id, year, limit, offset."""
    try:
        limit, offset = pagination_args(request.args)
        rows, total = statement_service.list_statements(
            g.org_id,
            consignor_id=optional_int(request.args, "consignor_id"),
            year=optional_int(request.args, "year"),
            limit=limit,
            offset=offset,
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status

    return jsonify({
        "items": [s.to_dict() for s in rows],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@statements_bp.get("/<int:statement_id>")
@require_auth
@require_role(*STAFF_ROLES)
def get_statement_route(statement_id: int):
    """Statement with itemized sales and payouts."""
    try:
        detail = statement_service.statement_detail(g.org_id, statement_id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(detail)


@statements_bp.post("/<int:statement_id>/regenerate")
@require_auth
@require_role(*STAFF_ROLES)
def regenerate_statement_route(statement_id: int):
    try:
        statement = statement_service.regenerate_statement(g.org_id, statement_id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(statement.to_dict())


@statements_bp.post("/<int:statement_id>/viewed")
@require_auth
@require_role(*STAFF_ROLES)
def mark_statement_viewed_route(statement_id: int):
    try:
        statement = statement_service.mark_statement_viewed(g.org_id, statement_id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(statement.to_dict())
