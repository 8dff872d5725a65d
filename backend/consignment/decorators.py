# Overview: Request decorators for authentication, role checks and tier gating.

from functools import wraps

from flask import g, jsonify, request

from .extensions import db
from .models import Organization
from .services import security_service, session_service
from .services.tier_service import evaluate_tier_access
from .validation import AuthorizationError, error_response


def _is_authenticated() -> bool:
    return hasattr(g, 'current_user') and hasattr(g, 'org_id')


def _audit(event_type: str, reason: str, *, org_id=None, user_id=None, action=None) -> None:
    security_service.log_security_event(
        event_type=event_type,
        success=False,
        org_id=org_id,
        user_id=user_id,
        resource=request.path,
        action=action or request.method,
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


def require_auth(f):
    """
    Require a bearer session token and establish tenant context.

    Sets:
    - g.current_user: the authenticated User
    - g.org_id: the tenant for every query in the request
    - g.role: role claim captured at login
    - g.session_context: the full SessionContext

    Returns 401 when the header is missing or the token is invalid, expired,
    revoked, or belongs to a deactivated user or organization.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401

        token = auth_header.split(" ", 1)[1].strip()
        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token", "code": "unauthenticated"}), 401

        g.current_user = context.user
        g.org_id = context.org_id
        g.role = context.role
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """Require the session's role claim to be one of roles (403 otherwise)."""
    allowed = {getattr(r, "value", r) for r in roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required", "code": "unauthenticated"}), 401

            if g.role not in allowed:
                _audit(
                    "ROLE_DENIED",
                    f"Role {g.role} not in {', '.join(sorted(allowed))}",
                    org_id=g.org_id,
                    user_id=g.current_user.id,
                )
                return jsonify({
                    "error": "Permission denied",
                    "code": "forbidden",
                    "required_roles": sorted(allowed),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_tier(tier):
    """
    Gate a route behind a minimum subscription tier.

    Compose after require_auth. Denials are recorded in the security audit
    trail and answered with 401 (organization unresolved) or 402 carrying
    current_tier, required_tier and upgrade_required.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            org = db.session.get(Organization, g.org_id) if _is_authenticated() else None
            decision = evaluate_tier_access(org, tier)

            try:
                decision.raise_for_denial()
            except AuthorizationError as e:
                _audit(
                    "TIER_DENIED" if org else "ORG_UNRESOLVED",
                    e.message,
                    org_id=org.id if org else None,
                    user_id=g.current_user.id if org else None,
                    action=f"TIER:{decision.required_tier.value}",
                )
                body, status = error_response(e)
                return jsonify(body), status

            return f(*args, **kwargs)

        return decorated_function
    return decorator
