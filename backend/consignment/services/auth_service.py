# Overview: Password hashing, shop registration and credential checks.

"""
Authentication service

Users belong to exactly one organization; email uniqueness is scoped to the
organization. Shops sign in with their organization slug plus email and
password.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special character required
- Session tokens are managed separately (see session_service.py)
"""

from __future__ import annotations

import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..enums import SubscriptionStatus, SubscriptionTier, UserRole
from ..models import Organization, User
from ..money import percentage_to_bps
from ..validation import ConflictError, NotFoundError, ValidationError, coerce_enum
from consignment.time_utils import utcnow

BCRYPT_ROUNDS = 12
_SLUG_RE = re.compile(r"[^a-z0-9]+")


class PasswordValidationError(ValidationError):
    """Raised when a password doesn't meet strength requirements."""

    def __init__(self, message: str):
        super().__init__(message, field="password")


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.?'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe check; malformed hashes never verify."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def slugify(name: str) -> str:
    slug = _SLUG_RE.sub("-", name.strip().lower()).strip("-")
    return slug[:100]


def _normalize_email(email) -> str:
    if not isinstance(email, str) or "@" not in email.strip():
        raise ValidationError("A valid email is required", field="email")
    return email.strip().lower()


def create_user(
    *,
    org_id: int,
    email: str,
    password: str,
    role: str = UserRole.CLERK.value,
    first_name: str | None = None,
    last_name: str | None = None,
    commit: bool = True,
) -> User:
    """
    Create a user inside an organization.

    Raises NotFoundError for an unknown organization and ConflictError when
    the email is already taken in that organization.
    """
    org = db.session.get(Organization, org_id)
    if not org:
        raise NotFoundError("Organization not found")

    email = _normalize_email(email)
    role = coerce_enum(UserRole, role, "role")

    existing = db.session.query(User).filter_by(org_id=org_id, email=email).first()
    if existing:
        raise ConflictError("Email already exists in this organization", field="email")

    user = User(
        org_id=org_id,
        email=email,
        first_name=first_name,
        last_name=last_name,
        password_hash=hash_password(password),
        role=role,
    )
    db.session.add(user)
    if commit:
        db.session.commit()
    return user


def register_organization(
    *,
    shop_name: str,
    email: str,
    password: str,
    first_name: str | None = None,
    last_name: str | None = None,
    slug: str | None = None,
    default_split_bps: int | None = None,
) -> tuple[Organization, User]:
    """
    Sign up a new shop: an organization on a BASIC trial plus its OWNER.
    default_split_bps falls back to the DEFAULT_SPLIT_PERCENTAGE setting.

    Raises ValidationError for bad input, ConflictError for a taken slug.
    """
    if not isinstance(shop_name, str) or not shop_name.strip():
        raise ValidationError("shop_name is required", field="shop_name")
    shop_name = shop_name.strip()
    if len(shop_name) > 100:
        raise ValidationError("shop_name must be at most 100 characters", field="shop_name")

    slug = slugify(slug or shop_name)
    if not slug:
        raise ValidationError("slug must contain letters or digits", field="slug")

    if db.session.query(Organization).filter_by(slug=slug).first():
        raise ConflictError(f"Organization slug '{slug}' is already taken", field="slug")

    # Fail on a weak password before anything is written
    validate_password_strength(password)

    if default_split_bps is None:
        default_split_bps = percentage_to_bps(
            current_app.config.get("DEFAULT_SPLIT_PERCENTAGE", "60.00"), "DEFAULT_SPLIT_PERCENTAGE"
        )

    now = utcnow()
    org = Organization(
        name=shop_name,
        slug=slug,
        subscription_status=SubscriptionStatus.TRIAL.value,
        subscription_tier=SubscriptionTier.BASIC.value,
        subscription_started_at=now,
        default_split_bps=default_split_bps,
    )
    db.session.add(org)
    db.session.flush()

    owner = create_user(
        org_id=org.id,
        email=email,
        password=password,
        role=UserRole.OWNER.value,
        first_name=first_name,
        last_name=last_name,
        commit=False,
    )

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Organization slug '{slug}' is already taken", field="slug")

    return org, owner


def authenticate(org_slug: str, email: str, password: str) -> User | None:
    """
    Check credentials within one organization.

    Returns the User when the credentials are valid and both the user and the
    organization are active; None otherwise. Updates last_login_at.
    """
    if not org_slug or not email or not password:
        return None

    org = db.session.query(Organization).filter_by(slug=str(org_slug).strip().lower()).first()
    if not org or not org.is_active:
        return None

    user = db.session.query(User).filter(
        User.org_id == org.id,
        User.email == str(email).strip().lower(),
        User.is_active.is_(True),
    ).first()
    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
