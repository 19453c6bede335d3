from __future__ import annotations

from decimal import Decimal
from enum import Enum

from ..extensions import db
from backoffice.time_utils import to_utc_z


class PaymentMethod(str, Enum):
    """How a client company settles its monthly closure."""

    BANK_SLIP = "bank_slip"
    PIX = "pix"
    WIRE_TRANSFER = "wire_transfer"


class Company(db.Model):
    """
    Client company that orders meals.

    Companies are never hard-deleted once they have consumption or closure
    history; they are switched off through is_active instead.
    """
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False, unique=True)
    tax_id = db.Column(db.String(32), nullable=True)  # CNPJ, free text
    address = db.Column(db.String(255), nullable=True)

    contact_name = db.Column(db.String(150), nullable=False)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    payment_method = db.Column(db.String(32), nullable=False, default=PaymentMethod.PIX.value)
    discount_bps = db.Column(db.Integer, nullable=False, default=0)  # 1000 == 10%

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    @property
    def discount_percent(self) -> Decimal:
        return Decimal(self.discount_bps or 0) / Decimal(100)

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r} active={self.is_active}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "tax_id": self.tax_id,
            "address": self.address,
            "contact_name": self.contact_name,
            "phone": self.phone,
            "email": self.email,
            "payment_method": self.payment_method,
            "discount_bps": self.discount_bps,
            "discount_percent": float(self.discount_percent),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
