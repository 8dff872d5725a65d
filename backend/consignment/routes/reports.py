# Overview: Flask API routes for sales, payout, consignor and inventory reports (PRO tier).

from flask import Blueprint, Response, g, jsonify, request

from ..decorators import require_auth, require_role, require_tier
from ..enums import STAFF_ROLES, SubscriptionTier
from ..services import reporting_service
from ..validation import DomainError, error_response, optional_bool, optional_date, optional_int


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
@require_auth
@require_role(*STAFF_ROLES)
@require_tier(SubscriptionTier.PRO)
def sales_report_route():
    """Query parameters: start_date, end_date (inclusive YYYY-MM-DD), consignor_id."""
    try:
        report = reporting_service.sales_metrics(
            g.org_id,
            optional_date(request.args, "start_date"),
            optional_date(request.args, "end_date"),
            consignor_id=optional_int(request.args, "consignor_id"),
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(report)


@reports_bp.get("/sales/export")
@require_auth
@require_role(*STAFF_ROLES)
@require_tier(SubscriptionTier.PRO)
def export_sales_route():
    try:
        start_date = optional_date(request.args, "start_date")
        end_date = optional_date(request.args, "end_date")
        content = reporting_service.export_sales_csv(
            g.org_id,
            start_date,
            end_date,
            consignor_id=optional_int(request.args, "consignor_id"),
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status

    suffix = f"{start_date or 'all'}_{end_date or 'all'}"
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename=sales_{suffix}.csv"},
    )


@reports_bp.get("/payouts")
@require_auth
@require_role(*STAFF_ROLES)
@require_tier(SubscriptionTier.PRO)
def payout_summary_route():
    """Query parameters: start_date, end_date (inclusive YYYY-MM-DD), consignor_id."""
    try:
        report = reporting_service.payout_summary(
            g.org_id,
            optional_date(request.args, "start_date"),
            optional_date(request.args, "end_date"),
            consignor_id=optional_int(request.args, "consignor_id"),
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(report)


@reports_bp.get("/consignors")
@require_auth
@require_role(*STAFF_ROLES)
@require_tier(SubscriptionTier.PRO)
def consignor_performance_route():
    try:
        report = reporting_service.consignor_performance(
            g.org_id,
            optional_date(request.args, "start_date"),
            optional_date(request.args, "end_date"),
            include_inactive=bool(optional_bool(request.args, "include_inactive")),
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(report)


@reports_bp.get("/inventory-aging")
@require_auth
@require_role(*STAFF_ROLES)
@require_tier(SubscriptionTier.PRO)
def inventory_aging_route():
    """Query parameters: as_of (YYYY-MM-DD, default today), min_days, consignor_id."""
    try:
        report = reporting_service.inventory_aging(
            g.org_id,
            as_of=optional_date(request.args, "as_of"),
            min_days=optional_int(request.args, "min_days") or 0,
            consignor_id=optional_int(request.args, "consignor_id"),
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(report)
