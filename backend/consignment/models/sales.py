from __future__ import annotations

from ..extensions import db
from ..enums import TransactionStatus
from ..money import bps_to_percentage
from consignment.time_utils import to_utc_z

class Transaction(db.Model):
    """
    Sale of exactly one consigned Item.

    SPLIT SNAPSHOT: consignor_split_bps is frozen when the sale is recorded.
    consignor_amount_cents + shop_amount_cents == sale_price_cents; sales
    tax is tracked separately and belongs to neither share.

    PAYOUT LINK: payout_id mirrors the PayoutLine row that pays this sale.
    PayoutLine.transaction_id is unique, which is what keeps a sale from
    being paid twice.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_org_sale_date", "org_id", "sale_date"),
        db.Index("ix_transactions_consignor_sale_date", "consignor_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    consignor_id = db.Column(db.Integer, db.ForeignKey("consignors.id"), nullable=False, index=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False)
    sale_price_cents = db.Column(db.Integer, nullable=False)
    sales_tax_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_method = db.Column(db.String(16), nullable=False)
    source = db.Column(db.String(32), nullable=False, default="MANUAL")

    consignor_split_bps = db.Column(db.Integer, nullable=False)
    consignor_amount_cents = db.Column(db.Integer, nullable=False)
    shop_amount_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=TransactionStatus.COMPLETED.value, index=True)

    payout_id = db.Column(db.Integer, db.ForeignKey("payouts.id", ondelete="SET NULL"), nullable=True, index=True)

    # QuickBooks sync status (the sync itself runs elsewhere)
    synced_to_quickbooks = db.Column(db.Boolean, nullable=False, default=False)
    quickbooks_sales_receipt_id = db.Column(db.String(100), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    processed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    voided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    organization = db.relationship("Organization", back_populates="transactions")
    item = db.relationship("Item", backref=db.backref("transactions", lazy=True))
    consignor = db.relationship("Consignor", backref=db.backref("transactions", lazy=True))
    payout = db.relationship("Payout", back_populates="transactions")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} item_id={self.item_id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "item_id": self.item_id,
            "consignor_id": self.consignor_id,
            "sale_date": to_utc_z(self.sale_date),
            "sale_price_cents": self.sale_price_cents,
            "sales_tax_cents": self.sales_tax_cents,
            "payment_method": self.payment_method,
            "source": self.source,
            "consignor_split_bps": self.consignor_split_bps,
            "consignor_split_percentage": str(bps_to_percentage(self.consignor_split_bps)),
            "consignor_amount_cents": self.consignor_amount_cents,
            "shop_amount_cents": self.shop_amount_cents,
            "status": self.status,
            "payout_id": self.payout_id,
            "synced_to_quickbooks": self.synced_to_quickbooks,
            "quickbooks_sales_receipt_id": self.quickbooks_sales_receipt_id,
            "notes": self.notes,
            "processed_by_user_id": self.processed_by_user_id,
            "voided_by_user_id": self.voided_by_user_id,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "void_reason": self.void_reason,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }
