# Overview: Service-layer operations for consumption records; encapsulates business logic and database work.

"""
Consumption Record Manager.

A record is priced once, at creation, with the company's current discount and
the current price table; every computed amount is stored on the row. Records
can only be created or deleted.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Iterable

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ConsumptionRecord, MealSize
from ..signals import consumption_recorded, consumption_deleted
from ..validation import NotFoundError, StoreError, ValidationError
from . import settings_service
from .company_service import get_company
from .pricing_service import compute_order_total, normalize_extra_items, parse_size
from backoffice.time_utils import today


def create_record(
    company_id: int,
    consumed_on: date | None,
    size: MealSize | str,
    quantity: Any,
    extra_items: Iterable[Any] | None = None,
    notes: str | None = None,
    *,
    user_id: int | None = None,
) -> ConsumptionRecord:
    """
    Price and persist a consumption record.

    Raises:
        NotFoundError: company does not exist
        ValidationError: company inactive, quantity < 1, bad size/extras
        StoreError: the write failed
    """
    company = get_company(company_id)
    if not company.is_active:
        raise ValidationError(f"Company {company.name!r} is inactive")

    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if quantity < 1:
        raise ValidationError("quantity must be at least 1")

    meal_size = parse_size(size)
    extras = normalize_extra_items(extra_items)
    total = compute_order_total(
        meal_size,
        quantity,
        extras,
        company.discount_percent,
        settings_service.get_price_table(),
    )

    record = ConsumptionRecord(
        company_id=company.id,
        consumed_on=consumed_on or today(),
        size=meal_size.value,
        quantity=quantity,
        extra_items=[item.to_dict() for item in extras],
        unit_price_cents=total.unit_price_cents,
        discount_bps=company.discount_bps or 0,
        meals_subtotal_cents=total.meals_subtotal_cents,
        extras_cents=total.extras_cents,
        discount_cents=total.discount_cents,
        total_price_cents=total.grand_total_cents,
        contact_name=company.contact_name,
        notes=(notes or "").strip() or None,
        created_by_user_id=user_id,
    )
    try:
        db.session.add(record)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Failed to save consumption record") from exc

    consumption_recorded.send(record)
    return record


def delete_record(record_id: int) -> None:
    """Deleting an id that does not exist is an error, not a no-op."""
    record = db.session.get(ConsumptionRecord, record_id)
    if record is None:
        raise NotFoundError(f"Consumption record {record_id} not found")
    company_id = record.company_id
    try:
        db.session.delete(record)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Failed to delete consumption record") from exc

    consumption_deleted.send(record_id, company_id=company_id)


def list_records(
    *,
    consumed_on: date | None = None,
    company_id: int | None = None,
    start: date | None = None,
    end: date | None = None,
    limit: int | None = None,
) -> list[ConsumptionRecord]:
    """
    start is inclusive, end is exclusive. Newest first.
    """
    q = db.session.query(ConsumptionRecord)
    if consumed_on is not None:
        q = q.filter(ConsumptionRecord.consumed_on == consumed_on)
    if company_id is not None:
        q = q.filter(ConsumptionRecord.company_id == company_id)
    if start is not None:
        q = q.filter(ConsumptionRecord.consumed_on >= start)
    if end is not None:
        q = q.filter(ConsumptionRecord.consumed_on < end)
    q = q.order_by(ConsumptionRecord.created_at.desc(), ConsumptionRecord.id.desc())
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def summarize_records(records: Iterable[ConsumptionRecord]) -> dict:
    """Day/company statistics derived from a set of records. Not stored."""
    records = list(records)
    by_size = {size.value: 0 for size in MealSize}
    for r in records:
        by_size[r.size] = by_size.get(r.size, 0) + (r.quantity or 0)
    return {
        "total_quantity": sum(r.quantity or 0 for r in records),
        "quantity_by_size": by_size,
        "total_value_cents": sum(r.total_price_cents or 0 for r in records),
        "extras_value_cents": sum(r.extras_cents or 0 for r in records),
        "company_count": len({r.company_id for r in records}),
        "order_count": len(records),
    }
