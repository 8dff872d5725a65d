# Overview: Flask API routes for the current shop's profile and subscription.

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..enums import STAFF_ROLES, UserRole
from ..services import organization_service, security_service
from ..validation import DomainError, error_response, coerce_int


organization_bp = Blueprint("organization", __name__, url_prefix="/api/organization")


@organization_bp.get("")
@require_auth
@require_role(*STAFF_ROLES)
def get_organization_route():
    try:
        org = organization_service.get_organization(g.org_id)
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(org.to_dict())


@organization_bp.put("")
@require_auth
@require_role(UserRole.OWNER)
def update_organization_route():
    """
    Update shop profile.

    Request body (all optional):
    {"name": "...", "default_split_percentage": "55.00",
     "quickbooks_connected": false, "stripe_connected": false}
    """
    try:
        org = organization_service.update_organization(g.org_id, request.get_json(silent=True) or {})
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(org.to_dict())


@organization_bp.put("/subscription")
@require_auth
@require_role(UserRole.OWNER)
def update_subscription_route():
    """Request body: {"status": "ACTIVE", "tier": "PRO"} (either or both)."""
    data = request.get_json(silent=True) or {}
    try:
        org = organization_service.update_subscription(
            g.org_id,
            status=data.get("status"),
            tier=data.get("tier"),
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    return jsonify(org.to_dict())


@organization_bp.get("/security-events")
@require_auth
@require_role(UserRole.OWNER)
def list_security_events_route():
    try:
        limit = coerce_int(request.args.get("limit", 100), "limit")
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status
    events = security_service.list_security_events(
        g.org_id,
        event_type=request.args.get("event_type"),
        limit=max(1, min(limit, 500)),
    )
    return jsonify({"items": [e.to_dict() for e in events], "count": len(events)})
