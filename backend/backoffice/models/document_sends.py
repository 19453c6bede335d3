from __future__ import annotations

from enum import Enum

from ..extensions import db
from backoffice.time_utils import to_utc_z


class DocumentKind(str, Enum):
    REPORT = "report"
    BILLING_NOTICE = "billing_notice"
    TAX_INVOICE = "tax_invoice"


class SendStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    ERROR = "error"


class DocumentSend(db.Model):
    """
    Delivery tracking for one document of a closure.

    Every closure gets exactly three of these (one per DocumentKind), created
    lazily the first time its sends are looked at. retries counts every
    delivery attempt, successful or not.
    """
    __tablename__ = "document_sends"
    __table_args__ = (
        db.UniqueConstraint("closure_id", "kind", name="uq_document_sends_closure_kind"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    closure_id = db.Column(db.Integer, db.ForeignKey("closures.id"), nullable=False, index=True)

    kind = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SendStatus.PENDING.value, index=True)
    retries = db.Column(db.Integer, nullable=False, default=0)

    last_error = db.Column(db.Text, nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    closure = db.relationship("Closure", backref=db.backref("document_sends", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "closure_id": self.closure_id,
            "kind": self.kind,
            "status": self.status,
            "retries": self.retries,
            "last_error": self.last_error,
            "sent_at": to_utc_z(self.sent_at),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
