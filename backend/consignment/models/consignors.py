from __future__ import annotations

from ..extensions import db
from ..enums import ConsignorStatus
from ..money import bps_to_percentage
from consignment.time_utils import to_utc_z

class Consignor(db.Model):
    """
    A person or business that leaves items at the shop to be sold.

    default_split_bps is the consignor's share of each sale in basis points
    (6000 == 60.00%). The rate is copied onto every Transaction at sale time,
    so later rate changes never touch recorded sales.
    """
    __tablename__ = "consignors"
    __table_args__ = (
        db.UniqueConstraint("org_id", "consignor_number", name="uq_consignors_org_number"),
        db.Index("ix_consignors_org_status", "org_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)

    # Portal login, when the consignor has one
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Auto-generated: CON-00001
    consignor_number = db.Column(db.String(20), nullable=False)

    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    display_name = db.Column(db.String(200), nullable=True)
    business_name = db.Column(db.String(200), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(20), nullable=True)

    default_split_bps = db.Column(db.Integer, nullable=False)
    preferred_payout_method = db.Column(db.String(20), nullable=True)
    payout_details = db.Column(db.String(255), nullable=True)  # Venmo handle, Zelle email, etc.

    status = db.Column(db.String(16), nullable=False, default=ConsignorStatus.ACTIVE.value)
    status_changed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    status_changed_reason = db.Column(db.String(255), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    organization = db.relationship("Organization", back_populates="consignors")
    user = db.relationship("User")

    def get_display_name(self) -> str:
        if self.display_name:
            return self.display_name
        if self.business_name:
            return self.business_name
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "user_id": self.user_id,
            "consignor_number": self.consignor_number,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "display_name": self.get_display_name(),
            "business_name": self.business_name,
            "email": self.email,
            "phone": self.phone,
            "default_split_bps": self.default_split_bps,
            "default_split_percentage": str(bps_to_percentage(self.default_split_bps)),
            "preferred_payout_method": self.preferred_payout_method,
            "payout_details": self.payout_details,
            "status": self.status,
            "status_changed_at": to_utc_z(self.status_changed_at),
            "status_changed_reason": self.status_changed_reason,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
