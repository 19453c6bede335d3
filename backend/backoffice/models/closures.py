from __future__ import annotations

from enum import Enum

from ..extensions import db
from backoffice.time_utils import to_utc_z


class ClosureStatus(str, Enum):
    """
    Coarse billing lifecycle of a monthly closure.

    PENDING -> REPORT_SENT -> INVOICE_PENDING -> INVOICE_SENT
            -> PAYMENT_PENDING -> COMPLETED

    Each delivery step has an ERROR_* counterpart that the operator can retry
    from indefinitely.
    """

    PENDING = "pending"
    REPORT_SENT = "report_sent"
    INVOICE_PENDING = "invoice_pending"
    INVOICE_SENT = "invoice_sent"
    PAYMENT_PENDING = "payment_pending"
    COMPLETED = "completed"
    ERROR_REPORT = "error_report"
    ERROR_INVOICE = "error_invoice"
    ERROR_PAYMENT = "error_payment"

    @property
    def is_error(self) -> bool:
        return self.value.startswith("error_")


class Closure(db.Model):
    """
    Monthly billing summary for one company.

    One row per (company, month, year). Totals come from the closure
    generator but may be overridden by hand; every override is recorded in
    closure_adjustments. Status and totals are independent fields.
    """
    __tablename__ = "closures"
    __table_args__ = (
        db.UniqueConstraint("company_id", "month", "year", name="uq_closures_company_period"),
        db.Index("ix_closures_period", "year", "month"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)

    total_p = db.Column(db.Integer, nullable=False, default=0)
    total_m = db.Column(db.Integer, nullable=False, default=0)
    total_g = db.Column(db.Integer, nullable=False, default=0)
    total_value_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(32), nullable=False, default=ClosureStatus.PENDING.value, index=True)
    closure_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    last_error = db.Column(db.Text, nullable=True)
    last_sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    is_overridden = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    company = db.relationship("Company", backref=db.backref("closures", lazy=True))

    @property
    def total_meals(self) -> int:
        return (self.total_p or 0) + (self.total_m or 0) + (self.total_g or 0)

    def to_dict(self) -> dict:
        company = self.company
        return {
            "id": self.id,
            "company_id": self.company_id,
            "company": {
                "name": company.name,
                "contact_name": company.contact_name,
                "email": company.email,
                "payment_method": company.payment_method,
            } if company else None,
            "month": self.month,
            "year": self.year,
            "total_p": self.total_p,
            "total_m": self.total_m,
            "total_g": self.total_g,
            "total_meals": self.total_meals,
            "total_value_cents": self.total_value_cents,
            "status": self.status,
            "closure_date": self.closure_date.isoformat() if self.closure_date else None,
            "notes": self.notes,
            "last_error": self.last_error,
            "last_sent_at": to_utc_z(self.last_sent_at),
            "is_overridden": self.is_overridden,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ClosureAdjustment(db.Model):
    """
    Audit trail for manual overrides of closure fields.

    IMMUTABLE: append-only. changes holds {field: [before, after]}.
    """
    __tablename__ = "closure_adjustments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    closure_id = db.Column(db.Integer, db.ForeignKey("closures.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    changes = db.Column(db.JSON, nullable=False)
    reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "closure_id": self.closure_id,
            "user_id": self.user_id,
            "user_email": self.user.email if self.user else None,
            "changes": self.changes,
            "reason": self.reason,
            "created_at": to_utc_z(self.created_at),
        }
