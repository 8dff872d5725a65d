# Overview: Consignor records, numbering, status changes and removal.

"""
Consignor service

Consignors are scoped to organizations. consignor_number (CON-00001) is
assigned per organization in creation order.

Removal rules:
- a consignor with unpaid sales cannot be removed (ConflictError)
- a consignor with any sales, payouts or statements is DEACTIVATED instead
- otherwise the consignor is deleted along with its unsold items
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..enums import ConsignorStatus, PayoutMethod, PayoutStatus, TransactionStatus, UserRole
from ..models import Consignor, Item, Organization, Payout, Statement, Transaction, User
from ..money import percentage_to_bps
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_enum,
    validate_payload,
)
from consignment.time_utils import utcnow


CONSIGNOR_POLICY = ModelValidationPolicy(
    writable_fields={
        "first_name", "last_name", "display_name", "business_name",
        "email", "phone", "split_percentage", "preferred_payout_method",
        "payout_details", "notes", "user_id",
    },
    required_on_create={"first_name", "last_name"},
    enum_fields={"preferred_payout_method": PayoutMethod},
)

# (from statuses) -> to status, per action
STATUS_ACTIONS = {
    "approve": ({ConsignorStatus.PENDING}, ConsignorStatus.ACTIVE),
    "reject": ({ConsignorStatus.PENDING}, ConsignorStatus.REJECTED),
    "deactivate": ({ConsignorStatus.ACTIVE, ConsignorStatus.INACTIVE}, ConsignorStatus.DEACTIVATED),
    "reactivate": ({ConsignorStatus.DEACTIVATED, ConsignorStatus.INACTIVE}, ConsignorStatus.ACTIVE),
}


def _next_consignor_number(org_id: int) -> str:
    last = db.session.query(func.max(Consignor.consignor_number)).filter(Consignor.org_id == org_id).scalar()
    seq = int(last.split("-", 1)[1]) + 1 if last else 1
    return f"CON-{seq:05d}"


def _check_email_unique(org_id: int, email: str | None, exclude_id: int | None = None) -> None:
    if not email:
        return
    query = db.session.query(Consignor.id).filter(
        Consignor.org_id == org_id,
        func.lower(Consignor.email) == email.lower(),
        Consignor.status != ConsignorStatus.REJECTED.value,
    )
    if exclude_id is not None:
        query = query.filter(Consignor.id != exclude_id)
    if query.first():
        raise ConflictError("A consignor with this email already exists", field="email")


def _check_portal_user(org_id: int, user_id: int | None, exclude_id: int | None = None) -> None:
    """A portal login must be a CONSIGNOR user of the same shop, linked once."""
    if user_id is None:
        return
    user = db.session.query(User).filter_by(id=user_id, org_id=org_id).first()
    if not user:
        raise ValidationError("user_id does not match a user in this organization", field="user_id")
    if user.role != UserRole.CONSIGNOR.value:
        raise ValidationError("user_id must belong to a CONSIGNOR user", field="user_id")
    query = db.session.query(Consignor.id).filter(Consignor.org_id == org_id, Consignor.user_id == user_id)
    if exclude_id is not None:
        query = query.filter(Consignor.id != exclude_id)
    if query.first():
        raise ConflictError("This user is already linked to another consignor", field="user_id")


def get_consignor(org_id: int, consignor_id: int) -> Consignor:
    consignor = db.session.query(Consignor).filter_by(id=consignor_id, org_id=org_id).first()
    if not consignor:
        raise NotFoundError("Consignor not found", ids=[consignor_id])
    return consignor


def create_consignor(org_id: int, payload: dict) -> Consignor:
    """Create an ACTIVE consignor; the split defaults to the organization's."""
    org = db.session.get(Organization, org_id)
    if not org:
        raise NotFoundError("Organization not found")

    patch = validate_payload(model=Consignor, payload=payload, policy=CONSIGNOR_POLICY, partial=False)

    split = patch.pop("split_percentage", None)
    split_bps = org.default_split_bps if split is None else percentage_to_bps(split)

    _check_email_unique(org_id, patch.get("email"))
    _check_portal_user(org_id, patch.get("user_id"))

    consignor = Consignor(
        org_id=org_id,
        consignor_number=_next_consignor_number(org_id),
        default_split_bps=split_bps,
        status=ConsignorStatus.ACTIVE.value,
        **patch,
    )
    db.session.add(consignor)
    db.session.commit()

    current_app.logger.info("Consignor %s created in org %s", consignor.consignor_number, org_id)
    return consignor


def list_consignors(
    org_id: int,
    *,
    status: str | None = None,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Consignor], int]:
    query = db.session.query(Consignor).filter(Consignor.org_id == org_id)

    if status:
        query = query.filter(Consignor.status == coerce_enum(ConsignorStatus, status, "status"))

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Consignor.first_name.ilike(pattern),
            Consignor.last_name.ilike(pattern),
            Consignor.display_name.ilike(pattern),
            Consignor.business_name.ilike(pattern),
            Consignor.email.ilike(pattern),
            Consignor.consignor_number.ilike(pattern),
        ))

    total = query.count()
    consignors = query.order_by(Consignor.last_name.asc(), Consignor.first_name.asc(), Consignor.id.asc()) \
        .offset(offset).limit(limit).all()
    return consignors, total


def consignor_summary(org_id: int, consignor_id: int) -> dict:
    """Consignor plus item counts and the balance of completed but unpaid sales."""
    consignor = get_consignor(org_id, consignor_id)

    unpaid_cents, unpaid_count = db.session.query(
        func.coalesce(func.sum(Transaction.consignor_amount_cents), 0),
        func.count(Transaction.id),
    ).filter(
        Transaction.org_id == org_id,
        Transaction.consignor_id == consignor_id,
        Transaction.status == TransactionStatus.COMPLETED.value,
        Transaction.payout_id.is_(None),
    ).one()

    paid_cents = db.session.query(func.coalesce(func.sum(Payout.amount_cents), 0)).filter(
        Payout.org_id == org_id,
        Payout.consignor_id == consignor_id,
        Payout.status == PayoutStatus.PAID.value,
    ).scalar()

    item_counts = dict(
        db.session.query(Item.status, func.count(Item.id))
        .filter(Item.org_id == org_id, Item.consignor_id == consignor_id)
        .group_by(Item.status)
        .all()
    )

    data = consignor.to_dict()
    data.update({
        "pending_balance_cents": int(unpaid_cents),
        "unpaid_transaction_count": int(unpaid_count),
        "total_paid_out_cents": int(paid_cents),
        "item_counts": item_counts,
    })
    return data


def update_consignor(org_id: int, consignor_id: int, payload: dict) -> Consignor:
    """Partial update. A new split only affects sales recorded afterwards."""
    consignor = get_consignor(org_id, consignor_id)
    patch = validate_payload(model=Consignor, payload=payload, policy=CONSIGNOR_POLICY, partial=True)

    if "split_percentage" in patch:
        split = patch.pop("split_percentage")
        if split is None:
            raise ValidationError("split_percentage cannot be null", field="split_percentage")
        consignor.default_split_bps = percentage_to_bps(split)

    if "email" in patch:
        _check_email_unique(org_id, patch["email"], exclude_id=consignor.id)

    if "user_id" in patch:
        _check_portal_user(org_id, patch["user_id"], exclude_id=consignor.id)

    for key, value in patch.items():
        setattr(consignor, key, value)

    db.session.commit()
    return consignor


def change_consignor_status(org_id: int, consignor_id: int, action: str, reason: str | None = None) -> Consignor:
    """Apply approve / reject / deactivate / reactivate."""
    if action not in STATUS_ACTIONS:
        raise ValidationError(f"Unknown action: {action}", field="action")

    consignor = get_consignor(org_id, consignor_id)
    allowed_from, target = STATUS_ACTIONS[action]

    if ConsignorStatus(consignor.status) not in allowed_from:
        raise ConflictError(f"Cannot {action} a consignor that is {consignor.status}")

    consignor.status = target.value
    consignor.status_changed_at = utcnow()
    consignor.status_changed_reason = (reason or "").strip() or None
    db.session.commit()

    current_app.logger.info("Consignor %s %s -> %s", consignor.id, action, target.value)
    return consignor


def delete_consignor(org_id: int, consignor_id: int) -> dict:
    """
    Remove a consignor.

    Returns {"deleted": bool, "consignor": dict}; deleted is False when the
    consignor was deactivated to preserve its history.
    """
    consignor = get_consignor(org_id, consignor_id)

    unpaid = db.session.query(Transaction.id).filter(
        Transaction.consignor_id == consignor.id,
        Transaction.status == TransactionStatus.COMPLETED.value,
        Transaction.payout_id.is_(None),
    ).all()
    if unpaid:
        raise ConflictError(
            "Consignor has unpaid sales; pay them out before removing the consignor",
            ids=[row.id for row in unpaid],
        )

    has_history = any(
        db.session.query(model.id).filter(model.consignor_id == consignor.id).first()
        for model in (Transaction, Payout, Statement)
    )

    if has_history:
        consignor.status = ConsignorStatus.DEACTIVATED.value
        consignor.status_changed_at = utcnow()
        consignor.status_changed_reason = "Removed with existing history"
        db.session.commit()
        current_app.logger.info("Consignor %s deactivated instead of deleted", consignor.id)
        return {"deleted": False, "consignor": consignor.to_dict()}

    snapshot = consignor.to_dict()
    db.session.query(Item).filter(Item.consignor_id == consignor.id).delete(synchronize_session=False)
    db.session.delete(consignor)
    db.session.commit()
    current_app.logger.info("Consignor %s deleted", consignor_id)
    return {"deleted": True, "consignor": snapshot}
