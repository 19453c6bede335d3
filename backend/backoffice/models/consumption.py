from __future__ import annotations

from enum import Enum

from ..extensions import db
from backoffice.time_utils import to_utc_z


class MealSize(str, Enum):
    """Meal sizes; the values double as the closure column suffixes (total_p...)."""

    SMALL = "P"
    MEDIUM = "M"
    LARGE = "G"


class ConsumptionRecord(db.Model):
    """
    One logged meal order for a company on a given day.

    Prices, discount and totals are snapshotted at creation time so later
    price table or discount changes never rewrite history. Records are
    create/delete only.
    """
    __tablename__ = "consumption_records"
    __table_args__ = (
        db.Index("ix_consumption_company_day", "company_id", "consumed_on"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    consumed_on = db.Column(db.Date, nullable=False, index=True)
    size = db.Column(db.String(1), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    # [{"name": str, "unit_price_cents": int, "quantity": int}, ...]
    extra_items = db.Column(db.JSON, nullable=False, default=list)

    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_bps = db.Column(db.Integer, nullable=False, default=0)
    meals_subtotal_cents = db.Column(db.Integer, nullable=False)
    extras_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False)

    contact_name = db.Column(db.String(150), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("consumption_records", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "company_name": self.company.name if self.company else None,
            "consumed_on": self.consumed_on.isoformat() if self.consumed_on else None,
            "size": self.size,
            "quantity": self.quantity,
            "extra_items": list(self.extra_items or []),
            "unit_price_cents": self.unit_price_cents,
            "discount_bps": self.discount_bps,
            "meals_subtotal_cents": self.meals_subtotal_cents,
            "extras_cents": self.extras_cents,
            "discount_cents": self.discount_cents,
            "total_price_cents": self.total_price_cents,
            "contact_name": self.contact_name,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
