from __future__ import annotations

from ..extensions import db
from ..enums import StatementStatus
from consignment.time_utils import to_iso_date, to_utc_z

class Statement(db.Model):
    """
    Periodic account summary for one consignor.

    closing_balance_cents == opening_balance_cents + total_earnings_cents
    - total_payouts_cents, i.e. earnings accrued but not yet paid out.

    One statement per consignor and period; regenerating a period rewrites
    this row instead of adding another.
    """
    __tablename__ = "statements"
    __table_args__ = (
        db.UniqueConstraint("consignor_id", "period_start", "period_end", name="uq_statements_consignor_period"),
        db.Index("ix_statements_org_period", "org_id", "period_start"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)
    consignor_id = db.Column(db.Integer, db.ForeignKey("consignors.id"), nullable=False, index=True)

    # STMT-2025-11-CON00042
    statement_number = db.Column(db.String(32), nullable=False)
    period_start = db.Column(db.Date, nullable=False)
    period_end = db.Column(db.Date, nullable=False)

    opening_balance_cents = db.Column(db.Integer, nullable=False, default=0)
    total_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    total_earnings_cents = db.Column(db.Integer, nullable=False, default=0)
    total_payouts_cents = db.Column(db.Integer, nullable=False, default=0)
    closing_balance_cents = db.Column(db.Integer, nullable=False, default=0)

    items_sold = db.Column(db.Integer, nullable=False, default=0)
    payout_count = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=StatementStatus.GENERATED.value)
    viewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    generated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    organization = db.relationship("Organization", back_populates="statements")
    consignor = db.relationship("Consignor", backref=db.backref("statements", lazy=True))

    def __repr__(self) -> str:
        return f"<Statement id={self.id} number={self.statement_number!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "consignor_id": self.consignor_id,
            "statement_number": self.statement_number,
            "period_start": to_iso_date(self.period_start),
            "period_end": to_iso_date(self.period_end),
            "period_label": self.period_start.strftime("%B %Y") if self.period_start else None,
            "opening_balance_cents": self.opening_balance_cents,
            "total_sales_cents": self.total_sales_cents,
            "total_earnings_cents": self.total_earnings_cents,
            "total_payouts_cents": self.total_payouts_cents,
            "closing_balance_cents": self.closing_balance_cents,
            "items_sold": self.items_sold,
            "payout_count": self.payout_count,
            "status": self.status,
            "viewed_at": to_utc_z(self.viewed_at) if self.viewed_at else None,
            "generated_at": to_utc_z(self.generated_at),
        }
