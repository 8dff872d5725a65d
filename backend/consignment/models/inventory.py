from __future__ import annotations

from ..extensions import db
from ..enums import ItemStatus
from ..money import bps_to_percentage
from consignment.time_utils import to_utc_z

class Item(db.Model):
    """
    A consigned item on the shop floor.

    LIFECYCLE: AVAILABLE -> SOLD (via Transaction) or AVAILABLE -> REMOVED.
    A SOLD item is immutable apart from audit fields; voiding its
    transaction returns it to AVAILABLE.

    SKU is unique within an organization.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.UniqueConstraint("org_id", "sku", name="uq_items_org_sku"),
        db.Index("ix_items_org_status", "org_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    consignor_id = db.Column(db.Integer, db.ForeignKey("consignors.id"), nullable=False, index=True)

    sku = db.Column(db.String(50), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(50), nullable=True)
    condition = db.Column(db.String(16), nullable=True)

    price_cents = db.Column(db.Integer, nullable=False)

    # Optional per-item override of the consignor's default split
    override_split_bps = db.Column(db.Integer, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=ItemStatus.AVAILABLE.value)
    sold_at = db.Column(db.DateTime(timezone=True), nullable=True)
    removed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    removed_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    organization = db.relationship("Organization", back_populates="items")
    consignor = db.relationship("Consignor", backref=db.backref("items", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} sku={self.sku!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "consignor_id": self.consignor_id,
            "sku": self.sku,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "condition": self.condition,
            "price_cents": self.price_cents,
            "override_split_bps": self.override_split_bps,
            "override_split_percentage": (
                str(bps_to_percentage(self.override_split_bps))
                if self.override_split_bps is not None else None
            ),
            "status": self.status,
            "sold_at": to_utc_z(self.sold_at) if self.sold_at else None,
            "removed_at": to_utc_z(self.removed_at) if self.removed_at else None,
            "removed_reason": self.removed_reason,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
