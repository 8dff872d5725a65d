# Overview: Consigned item inventory: intake, lookup, edits and removal.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..enums import ConsignorStatus, ItemCondition, ItemStatus
from ..models import Item
from ..money import MAX_PRICE_CENTS, percentage_to_bps
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_enum,
    validate_payload,
)
from .consignor_service import get_consignor
from consignment.time_utils import utcnow


ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "consignor_id", "sku", "title", "description", "category",
        "condition", "price_cents", "split_percentage",
    },
    required_on_create={"consignor_id", "sku", "title", "price_cents"},
    enum_fields={"condition": ItemCondition},
)

# Consignors that may not take in new items
_CLOSED_CONSIGNOR_STATUSES = {ConsignorStatus.DEACTIVATED.value, ConsignorStatus.REJECTED.value}


def enforce_rules_item(patch: dict) -> None:
    """Business rules not captured by column metadata."""
    if "price_cents" in patch and patch["price_cents"] is not None:
        price = patch["price_cents"]
        if price <= 0:
            raise ValidationError("price_cents must be > 0", field="price_cents")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(
                f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})",
                field="price_cents",
            )
    if "sku" in patch and patch["sku"] is not None:
        patch["sku"] = patch["sku"].upper()


def _apply_override(item: Item, patch: dict) -> None:
    if "split_percentage" in patch:
        value = patch.pop("split_percentage")
        item.override_split_bps = None if value is None else percentage_to_bps(value)


def _sku_taken(org_id: int, sku: str, exclude_id: int | None = None) -> bool:
    query = db.session.query(Item.id).filter(Item.org_id == org_id, Item.sku == sku)
    if exclude_id is not None:
        query = query.filter(Item.id != exclude_id)
    return query.first() is not None


def _commit_item(sku: str) -> None:
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"SKU '{sku}' already exists in this organization", field="sku")


def get_item(org_id: int, item_id: int) -> Item:
    item = db.session.query(Item).filter_by(id=item_id, org_id=org_id).first()
    if not item:
        raise NotFoundError("Item not found", ids=[item_id])
    return item


def get_item_by_sku(org_id: int, sku: str) -> Item:
    item = db.session.query(Item).filter_by(org_id=org_id, sku=sku.strip().upper()).first()
    if not item:
        raise NotFoundError(f"Item with SKU '{sku}' not found")
    return item


def create_item(org_id: int, payload: dict) -> Item:
    """
    Take in an item for a consignor. SKUs are stored upper-case and must be
    unique within the organization (ConflictError).
    """
    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=False)
    enforce_rules_item(patch)

    consignor = get_consignor(org_id, patch["consignor_id"])
    if consignor.status in _CLOSED_CONSIGNOR_STATUSES:
        raise ValidationError(
            f"Consignor is {consignor.status} and cannot take in items",
            field="consignor_id",
        )

    if _sku_taken(org_id, patch["sku"]):
        raise ConflictError(f"SKU '{patch['sku']}' already exists in this organization", field="sku")

    item = Item(org_id=org_id, status=ItemStatus.AVAILABLE.value)
    _apply_override(item, patch)
    for key, value in patch.items():
        setattr(item, key, value)

    db.session.add(item)
    _commit_item(item.sku)
    return item


def list_items(
    org_id: int,
    *,
    status: str | None = None,
    consignor_id: int | None = None,
    category: str | None = None,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Item], int]:
    query = db.session.query(Item).filter(Item.org_id == org_id)

    if status:
        query = query.filter(Item.status == coerce_enum(ItemStatus, status, "status"))
    if consignor_id is not None:
        query = query.filter(Item.consignor_id == consignor_id)
    if category:
        query = query.filter(Item.category == category)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Item.sku.ilike(pattern),
            Item.title.ilike(pattern),
            Item.description.ilike(pattern),
        ))

    total = query.count()
    items = query.order_by(Item.created_at.desc(), Item.id.desc()).offset(offset).limit(limit).all()
    return items, total


def update_item(org_id: int, item_id: int, payload: dict) -> Item:
    """Edit an unsold item. SOLD items are frozen (ConflictError)."""
    item = get_item(org_id, item_id)
    if item.status == ItemStatus.SOLD.value:
        raise ConflictError("Sold items cannot be modified", ids=[item.id])

    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=True)
    enforce_rules_item(patch)

    if "consignor_id" in patch and patch["consignor_id"] != item.consignor_id:
        get_consignor(org_id, patch["consignor_id"])

    if "sku" in patch and _sku_taken(org_id, patch["sku"], exclude_id=item.id):
        raise ConflictError(f"SKU '{patch['sku']}' already exists in this organization", field="sku")

    _apply_override(item, patch)
    for key, value in patch.items():
        setattr(item, key, value)

    _commit_item(item.sku)
    return item


def remove_item(org_id: int, item_id: int, reason: str | None = None) -> Item:
    """Take an AVAILABLE item off the floor (AVAILABLE -> REMOVED)."""
    item = get_item(org_id, item_id)
    if item.status != ItemStatus.AVAILABLE.value:
        raise ConflictError(f"Only available items can be removed (item is {item.status})", ids=[item.id])

    item.status = ItemStatus.REMOVED.value
    item.removed_at = utcnow()
    item.removed_reason = (reason or "").strip() or None
    db.session.commit()

    current_app.logger.info("Item %s removed from org %s", item.id, org_id)
    return item
