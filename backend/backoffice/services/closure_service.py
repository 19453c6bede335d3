# Overview: Service-layer operations for monthly closures; encapsulates business logic and database work.

"""
Monthly Closure Aggregator

================================================================================
PURPOSE: Turn a month of consumption records into one billing closure per company
================================================================================

RULES:
1. Only active companies are considered.
2. Companies with no records in the month get no closure.
3. Records are already discounted, so totals are plain sums.
4. One closure per (company, month, year): re-running overwrites totals and
   leaves the status alone. Running twice on unchanged data is a no-op.
5. Each upsert commits on its own. A failure aborts the batch; closures
   written before it stay written (the operator simply re-runs).

Manual overrides of totals are allowed but always leave a ClosureAdjustment
row behind. Regenerating a month replaces overridden totals and clears the
override flag; the adjustment history is kept.
================================================================================
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import (
    Closure,
    ClosureAdjustment,
    ClosureStatus,
    Company,
    ConsumptionRecord,
    DocumentSend,
    MealSize,
)
from ..signals import closures_generated
from ..validation import NotFoundError, StoreError, ValidationError, validate_period
from backoffice.time_utils import month_bounds, today

OVERRIDABLE_FIELDS = ("total_p", "total_m", "total_g", "total_value_cents", "notes")


def aggregate_records(records: list[ConsumptionRecord]) -> dict:
    totals = {"total_p": 0, "total_m": 0, "total_g": 0, "total_value_cents": 0}
    for r in records:
        if r.size == MealSize.SMALL.value:
            totals["total_p"] += r.quantity
        elif r.size == MealSize.MEDIUM.value:
            totals["total_m"] += r.quantity
        elif r.size == MealSize.LARGE.value:
            totals["total_g"] += r.quantity
        totals["total_value_cents"] += r.total_price_cents
    return totals


def _upsert_closure(company: Company, month: int, year: int, totals: dict) -> Closure:
    closure = db.session.query(Closure).filter_by(
        company_id=company.id, month=month, year=year
    ).first()
    if closure is None:
        closure = Closure(
            company_id=company.id,
            month=month,
            year=year,
            status=ClosureStatus.PENDING.value,
            closure_date=today(),
        )
        db.session.add(closure)
    for key, value in totals.items():
        setattr(closure, key, value)
    closure.is_overridden = False
    db.session.commit()
    return closure


def generate_closures(month: int, year: int) -> dict:
    """
    Build or refresh the closures of every active company for a month.

    Returns {"count": int, "closures": [Closure, ...]}.

    Raises:
        ValidationError: bad month/year
        StoreError: a lookup or write failed; the batch stops there
    """
    validate_period(month, year)
    start, end = month_bounds(month, year)

    written: list[Closure] = []
    try:
        companies = (
            db.session.query(Company)
            .filter(Company.is_active.is_(True))
            .order_by(Company.id.asc())
            .all()
        )
        for company in companies:
            records = (
                db.session.query(ConsumptionRecord)
                .filter(
                    ConsumptionRecord.company_id == company.id,
                    ConsumptionRecord.consumed_on >= start,
                    ConsumptionRecord.consumed_on < end,
                )
                .all()
            )
            if not records:
                continue
            written.append(_upsert_closure(company, month, year, aggregate_records(records)))
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception(
            "Closure generation for %02d/%d aborted after %d closure(s)", month, year, len(written)
        )
        raise StoreError(f"Failed to generate closures for {month:02d}/{year}") from exc

    current_app.logger.info("Generated %d closure(s) for %02d/%d", len(written), month, year)
    closures_generated.send(None, month=month, year=year, closures=written)
    return {"count": len(written), "closures": written}


def list_closures(month: int, year: int, status: str | None = None) -> list[Closure]:
    validate_period(month, year)
    q = db.session.query(Closure).filter_by(month=month, year=year)
    if status:
        q = q.filter(Closure.status == status)
    return q.order_by(Closure.company_id.asc()).all()


def get_closure(closure_id: int) -> Closure:
    closure = db.session.get(Closure, closure_id)
    if closure is None:
        raise NotFoundError(f"Closure {closure_id} not found")
    return closure


def override_closure(
    closure_id: int,
    patch: dict,
    *,
    user_id: int | None,
    reason: str | None = None,
) -> Closure:
    """
    Hand-edit closure totals/notes.

    Only fields that actually change are recorded. Status is never touched.
    """
    closure = get_closure(closure_id)
    unknown = set(patch) - set(OVERRIDABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    changes = {}
    for key, value in patch.items():
        before = getattr(closure, key)
        if before != value:
            changes[key] = [before, value]
            setattr(closure, key, value)

    if not changes:
        return closure

    if any(key != "notes" for key in changes):
        closure.is_overridden = True

    try:
        db.session.add(ClosureAdjustment(
            closure_id=closure.id,
            user_id=user_id,
            changes=changes,
            reason=(reason or "").strip() or None,
        ))
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Failed to update closure") from exc
    return closure


def list_adjustments(closure_id: int) -> list[ClosureAdjustment]:
    get_closure(closure_id)
    return (
        db.session.query(ClosureAdjustment)
        .filter_by(closure_id=closure_id)
        .order_by(ClosureAdjustment.created_at.asc(), ClosureAdjustment.id.asc())
        .all()
    )


def delete_closure(closure_id: int) -> None:
    """Delete a closure after its document sends and adjustments."""
    closure = get_closure(closure_id)
    try:
        db.session.query(DocumentSend).filter_by(closure_id=closure.id).delete()
        db.session.query(ClosureAdjustment).filter_by(closure_id=closure.id).delete()
        db.session.delete(closure)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Failed to delete closure") from exc


def closure_stats(closures: list[Closure]) -> dict:
    """Month overview: totals plus a count per status."""
    by_status = {status.value: 0 for status in ClosureStatus}
    for c in closures:
        by_status[c.status] = by_status.get(c.status, 0) + 1
    return {
        "company_count": len(closures),
        "total_value_cents": sum(c.total_value_cents or 0 for c in closures),
        "total_meals": sum(c.total_meals for c in closures),
        "by_status": by_status,
        "in_progress": sum(
            by_status[s.value] for s in (
                ClosureStatus.REPORT_SENT,
                ClosureStatus.INVOICE_PENDING,
                ClosureStatus.INVOICE_SENT,
                ClosureStatus.PAYMENT_PENDING,
            )
        ),
        "completed": by_status[ClosureStatus.COMPLETED.value],
        "with_errors": sum(by_status[s.value] for s in ClosureStatus if s.is_error),
    }
