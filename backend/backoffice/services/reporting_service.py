# Overview: Service-layer operations for reporting; read-only aggregations over consumption records.

from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy import func

from backoffice.extensions import db
from backoffice.models import Closure, ClosureStatus, Company, ConsumptionRecord, MealSize
from backoffice.services.consumption_service import list_records, summarize_records
from backoffice.time_utils import month_bounds, shift_month, today
from backoffice.validation import ValidationError, validate_period


def _growth_percent(current: int | float, previous: int | float) -> float:
    if not previous:
        return 0.0
    return round((current - previous) / previous * 100, 2)


def _active_company_count() -> int:
    return db.session.query(func.count(Company.id)).filter(Company.is_active.is_(True)).scalar() or 0


def monthly_report(month: int, year: int, months_back: int = 6) -> dict:
    """
    Reporting screen data for a month plus its trailing window.

    The window covers months_back months ending at (month, year), oldest first.
    """
    validate_period(month, year)
    if months_back < 1 or months_back > 24:
        raise ValidationError("months_back must be between 1 and 24")

    window = [shift_month(month, year, -offset) for offset in range(months_back - 1, -1, -1)]
    window_start, _ = month_bounds(*window[0])
    _, window_end = month_bounds(month, year)
    records = list_records(start=window_start, end=window_end)

    buckets: dict[tuple[int, int], list[ConsumptionRecord]] = {period: [] for period in window}
    for r in records:
        key = (r.consumed_on.month, r.consumed_on.year)
        if key in buckets:
            buckets[key].append(r)

    evolution = [
        {
            "period": f"{y}-{m:02d}",
            "meals": sum(r.quantity for r in buckets[(m, y)]),
            "value_cents": sum(r.total_price_cents for r in buckets[(m, y)]),
        }
        for (m, y) in window
    ]

    current = buckets[(month, year)]
    by_size = []
    for size in MealSize:
        rows = [r for r in current if r.size == size.value]
        by_size.append({
            "size": size.value,
            "quantity": sum(r.quantity for r in rows),
            "value_cents": sum(r.total_price_cents for r in rows),
        })

    per_company: dict[int, dict] = {}
    for r in current:
        entry = per_company.setdefault(r.company_id, {
            "company_id": r.company_id,
            "name": r.company.name if r.company else f"Company {r.company_id}",
            "value_cents": 0,
            "meals": 0,
        })
        entry["value_cents"] += r.total_price_cents
        entry["meals"] += r.quantity
    top_companies = sorted(per_company.values(), key=lambda e: e["value_cents"], reverse=True)[:5]

    total_meals = sum(r.quantity for r in current)
    total_revenue = sum(r.total_price_cents for r in current)
    previous_value = evolution[-2]["value_cents"] if len(evolution) > 1 else 0

    return {
        "month": month,
        "year": year,
        "revenue_by_month": [{"period": e["period"], "value_cents": e["value_cents"]} for e in evolution],
        "monthly_evolution": evolution,
        "consumption_by_size": by_size,
        "top_companies": top_companies,
        "general": {
            "total_meals": total_meals,
            "total_revenue_cents": total_revenue,
            "active_companies": _active_company_count(),
            "average_ticket_cents": round(total_revenue / total_meals) if total_meals else 0,
            "monthly_growth_percent": _growth_percent(total_revenue, previous_value),
        },
    }


def dashboard(on: date | None = None) -> dict:
    """Front page numbers for a given day (defaults to today)."""
    day = on or today()
    today_stats = summarize_records(list_records(consumed_on=day))
    yesterday_stats = summarize_records(list_records(consumed_on=day - timedelta(days=1)))

    month_start, month_end = month_bounds(day.month, day.year)
    revenue_month = (
        db.session.query(func.coalesce(func.sum(ConsumptionRecord.total_price_cents), 0))
        .filter(ConsumptionRecord.consumed_on >= month_start, ConsumptionRecord.consumed_on < month_end)
        .scalar()
    )
    pending_closures = (
        db.session.query(func.count(Closure.id))
        .filter(Closure.status == ClosureStatus.PENDING.value)
        .scalar()
    )

    return {
        "date": day.isoformat(),
        "meals_today": today_stats["total_quantity"],
        "orders_today": today_stats["order_count"],
        "growth_today_percent": _growth_percent(
            today_stats["total_quantity"], yesterday_stats["total_quantity"]
        ),
        "revenue_month_cents": int(revenue_month or 0),
        "pending_closures": int(pending_closures or 0),
        "active_companies": _active_company_count(),
        "recent_records": [r.to_dict() for r in list_records(limit=5)],
    }
