# Overview: Flask API routes for shop sign-up, login and sessions.

"""
Authentication API routes

- POST /api/auth/register   create an organization and its OWNER
- POST /api/auth/login      org slug + email + password -> bearer token
- POST /api/auth/logout     revoke the presented token
- GET  /api/auth/me         current user, organization and role
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth
from ..extensions import db
from ..models import Organization
from ..money import percentage_to_bps
from ..services import auth_service, security_service, session_service
from ..validation import DomainError, error_response


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/register")
def register_route():
    """
    Sign up a new shop.

    Request body:
    {
        "shop_name": "Second Chances",    // required
        "email": "owner@example.com",     // required
        "password": "...",                // required, strength rules apply
        "first_name": "...",              // optional
        "last_name": "...",               // optional
        "slug": "second-chances",         // optional, derived from shop_name
        "default_split_percentage": 60    // optional
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        split = data.get("default_split_percentage")
        org, owner = auth_service.register_organization(
            shop_name=data.get("shop_name"),
            email=data.get("email"),
            password=data.get("password"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            slug=data.get("slug"),
            default_split_bps=percentage_to_bps(split, "default_split_percentage") if split is not None else None,
        )
        session, token = session_service.create_session(
            owner,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except DomainError as e:
        body, status = error_response(e)
        return jsonify(body), status

    return jsonify({
        "organization": org.to_dict(),
        "user": owner.to_dict(),
        "token": token,
        "session": session.to_dict(),
    }), 201


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and create a session token.

    Request body: {"org_slug": "...", "email": "...", "password": "..."}
    The token goes in the Authorization header as "Bearer <token>".
    """
    data = request.get_json(silent=True) or {}
    org_slug = data.get("org_slug")
    email = data.get("email")
    password = data.get("password")

    if not all([org_slug, email, password]):
        return jsonify({"error": "org_slug, email and password required", "code": "validation_error"}), 400

    user = auth_service.authenticate(org_slug, email, password)
    if not user:
        org = db.session.query(Organization).filter_by(slug=str(org_slug).strip().lower()).first()
        security_service.log_security_event(
            event_type="LOGIN_FAILED",
            success=False,
            org_id=org.id if org else None,
            resource=request.path,
            action="LOGIN",
            reason=f"Invalid credentials for {email}",
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({"error": "Invalid credentials", "code": "unauthenticated"}), 401

    session, token = session_service.create_session(
        user,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify({
        "user": user.to_dict(),
        "organization": user.organization.to_dict(),
        "token": token,
        "session": session.to_dict(),
        "org_id": session.org_id,
        "role": session.role,
        "message": "Login successful",
    }), 200


@auth_bp.post("/logout")
def logout_route():
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return jsonify({"error": "Authorization header required", "code": "unauthenticated"}), 401

    token = auth_header.split(" ", 1)[1].strip()
    if not session_service.revoke_session(token, reason="User logout"):
        return jsonify({"error": "Invalid or expired token", "code": "unauthenticated"}), 401

    return jsonify({"message": "Logout successful"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    org = db.session.get(Organization, g.org_id)
    return jsonify({
        "user": g.current_user.to_dict(),
        "organization": org.to_dict() if org else None,
        "org_id": g.org_id,
        "role": g.role,
    })
