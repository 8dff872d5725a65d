from __future__ import annotations

from ..extensions import db
from ..enums import PayoutStatus
from consignment.time_utils import to_iso_date, to_utc_z

class Payout(db.Model):
    """
    Batch payment to one consignor for a set of transactions.

    amount_cents always equals the sum of consignor_amount_cents over the
    linked transactions; transaction_count equals their number.

    STATUS: PENDING -> PROCESSING -> PAID (PENDING -> PAID allowed).
    A PAID payout cannot be edited or deleted.
    """
    __tablename__ = "payouts"
    __table_args__ = (
        db.UniqueConstraint("org_id", "payout_number", name="uq_payouts_org_number"),
        db.Index("ix_payouts_consignor_date", "consignor_id", "payout_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    consignor_id = db.Column(db.Integer, db.ForeignKey("consignors.id"), nullable=False, index=True)

    # PO{yyyymmdd}{seq:03}, sequence per organization and day
    payout_number = db.Column(db.String(50), nullable=False)
    payout_date = db.Column(db.Date, nullable=False)

    amount_cents = db.Column(db.Integer, nullable=False)
    transaction_count = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PayoutStatus.PENDING.value, index=True)

    payment_method = db.Column(db.String(20), nullable=True)
    payment_reference = db.Column(db.String(100), nullable=True)

    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    # QuickBooks sync status (the sync itself runs elsewhere)
    synced_to_quickbooks = db.Column(db.Boolean, nullable=False, default=False)
    quickbooks_bill_id = db.Column(db.String(100), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    organization = db.relationship("Organization", back_populates="payouts")
    consignor = db.relationship("Consignor", backref=db.backref("payouts", lazy=True))
    lines = db.relationship("PayoutLine", back_populates="payout", cascade="all, delete-orphan", passive_deletes=True)
    transactions = db.relationship("Transaction", back_populates="payout")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Payout id={self.id} number={self.payout_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "consignor_id": self.consignor_id,
            "payout_number": self.payout_number,
            "payout_date": to_iso_date(self.payout_date),
            "amount_cents": self.amount_cents,
            "transaction_count": self.transaction_count,
            "status": self.status,
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "period_start": to_iso_date(self.period_start),
            "period_end": to_iso_date(self.period_end),
            "notes": self.notes,
            "synced_to_quickbooks": self.synced_to_quickbooks,
            "quickbooks_bill_id": self.quickbooks_bill_id,
            "created_by_user_id": self.created_by_user_id,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class PayoutLine(db.Model):
    """
    Link between a payout and one transaction it pays.

    transaction_id is UNIQUE: the database refuses a second payout for the
    same sale even when two requests race past the application checks.
    """
    __tablename__ = "payout_lines"
    __table_args__ = (
        db.UniqueConstraint("transaction_id", name="uq_payout_lines_transaction"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    payout_id = db.Column(db.Integer, db.ForeignKey("payouts.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False)
    consignor_amount_cents = db.Column(db.Integer, nullable=False)

    payout = db.relationship("Payout", back_populates="lines")
    transaction = db.relationship("Transaction")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payout_id": self.payout_id,
            "transaction_id": self.transaction_id,
            "consignor_amount_cents": self.consignor_amount_cents,
        }
