# Overview: Service-layer operations for settings; encapsulates business logic and database work.

"""
Application settings stored in the settings table.

Every reader merges the stored JSON over built-in defaults, so a fresh
database behaves exactly like the defaults below. Settings are always loaded
into explicit objects (PriceTable, dicts) and passed to the code that needs
them; nothing caches them globally.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Setting
from ..validation import ValidationError, StoreError
from .pricing_service import PriceTable
from backoffice.time_utils import utcnow


KEY_PRICES = "prices"
KEY_BUSINESS_PROFILE = "business_profile"
KEY_TEMPLATES = "templates"

DEFAULT_BUSINESS_PROFILE = {
    "name": "Unaí Marmitas",
    "tax_id": "",
    "address": "",
    "phone": "",
    "email": "",
    "pix_key": "",
}

DEFAULT_TEMPLATES = {
    "report": (
        "Olá {contact_name},\n\n"
        "Segue o relatório de consumo de marmitas do mês {month:02d}/{year}.\n\n"
        "Resumo:\n"
        "- Total de marmitas: {total_meals}\n"
        "- Valor total: {total_value}\n\n"
        "Atenciosamente,\n{business_name}"
    ),
    "billing_notice": (
        "Olá {contact_name},\n\n"
        "Segue a cobrança referente ao consumo de marmitas do mês {month:02d}/{year}.\n\n"
        "Valor total: {total_value}\n\n"
        "Para pagamento via PIX, utilize a chave: {pix_key}\n\n"
        "Atenciosamente,\n{business_name}"
    ),
    "tax_invoice": (
        "Olá {contact_name},\n\n"
        "Segue a nota fiscal referente ao mês {month:02d}/{year}, "
        "no valor de {total_value}.\n\n"
        "Atenciosamente,\n{business_name}"
    ),
}


def _get_value(key: str) -> Any:
    row = db.session.query(Setting).filter_by(key=key).first()
    return row.value if row else None


def _put_value(key: str, value: Any, user_id: int | None) -> Setting:
    try:
        row = db.session.query(Setting).filter_by(key=key).first()
        if row is None:
            row = Setting(key=key)
            db.session.add(row)
        row.value = value
        row.updated_by_user_id = user_id
        row.updated_at = utcnow()
        db.session.commit()
        return row
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError(f"Failed to save setting '{key}'") from exc


def get_price_table() -> PriceTable:
    """Stored price table, or the default table when none is configured."""
    return PriceTable.from_mapping(_get_value(KEY_PRICES))


def save_price_table(data: dict, user_id: int | None = None) -> PriceTable:
    """
    Persist a (partial) price table. Sizes not present keep their current price.
    """
    if not isinstance(data, dict):
        raise ValidationError("prices must be an object keyed by size")
    merged = get_price_table().to_dict()
    merged.update({k: v for k, v in data.items()})
    unknown = set(merged) - {"P", "M", "G"}
    if unknown:
        raise ValidationError(f"Unknown size(s): {', '.join(sorted(unknown))}")
    table = PriceTable.from_mapping(merged)
    _put_value(KEY_PRICES, table.to_dict(), user_id)
    return table


def reset_price_table() -> PriceTable:
    try:
        db.session.query(Setting).filter_by(key=KEY_PRICES).delete()
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Failed to reset prices") from exc
    return PriceTable.default()


def get_business_profile() -> dict:
    stored = _get_value(KEY_BUSINESS_PROFILE) or {}
    return {**DEFAULT_BUSINESS_PROFILE, **stored}


def save_business_profile(data: dict, user_id: int | None = None) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("business profile must be an object")
    unknown = set(data) - set(DEFAULT_BUSINESS_PROFILE)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    profile = get_business_profile()
    profile.update({k: str(v).strip() if v is not None else "" for k, v in data.items()})
    _put_value(KEY_BUSINESS_PROFILE, profile, user_id)
    return profile


def get_templates() -> dict:
    stored = _get_value(KEY_TEMPLATES) or {}
    return {**DEFAULT_TEMPLATES, **stored}


def save_templates(data: dict, user_id: int | None = None) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("templates must be an object")
    unknown = set(data) - set(DEFAULT_TEMPLATES)
    if unknown:
        raise ValidationError(f"Unknown template(s): {', '.join(sorted(unknown))}")
    templates = get_templates()
    templates.update({k: str(v) for k, v in data.items()})
    _put_value(KEY_TEMPLATES, templates, user_id)
    return templates
