# Overview: Service-layer operations for client companies.

from __future__ import annotations

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Company, ConsumptionRecord, Closure
from ..validation import ConflictError, NotFoundError, StoreError

COMPANY_MUTABLE_FIELDS = {
    "name", "tax_id", "address", "contact_name", "phone", "email",
    "payment_method", "discount_bps", "is_active",
}


def apply_company_patch(company: Company, patch: dict) -> None:
    for k, v in patch.items():
        if k not in COMPANY_MUTABLE_FIELDS:
            continue
        setattr(company, k, v)


def list_companies(search: str | None = None, status: str = "all") -> list[Company]:
    """
    status: "all", "active" or "inactive".
    search matches name, contact name (case-insensitive) or tax id.
    """
    q = db.session.query(Company)
    if status == "active":
        q = q.filter(Company.is_active.is_(True))
    elif status == "inactive":
        q = q.filter(Company.is_active.is_(False))

    if search:
        term = search.strip().lower()
        q = q.filter(or_(
            func.lower(Company.name).contains(term),
            func.lower(Company.contact_name).contains(term),
            Company.tax_id.contains(search.strip()),
        ))
    return q.order_by(Company.name.asc()).all()


def list_active_companies() -> list[Company]:
    return list_companies(status="active")


def get_company(company_id: int) -> Company:
    company = db.session.get(Company, company_id)
    if company is None:
        raise NotFoundError(f"Company {company_id} not found")
    return company


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Company).filter(func.lower(Company.name) == name.lower())
    if exclude_id is not None:
        q = q.filter(Company.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"A company named '{name}' already exists")


def create_company(patch: dict) -> Company:
    _ensure_unique_name(patch["name"])
    company = Company()
    apply_company_patch(company, patch)
    try:
        db.session.add(company)
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("Company violates a uniqueness constraint") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Failed to create company") from exc
    return company


def update_company(company_id: int, patch: dict) -> Company:
    company = get_company(company_id)
    if "name" in patch:
        _ensure_unique_name(patch["name"], exclude_id=company.id)
    apply_company_patch(company, patch)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Failed to update company") from exc
    return company


def toggle_company_status(company_id: int) -> Company:
    company = get_company(company_id)
    return update_company(company.id, {"is_active": not company.is_active})


def has_history(company_id: int) -> bool:
    has_records = db.session.query(ConsumptionRecord.id).filter_by(company_id=company_id).first() is not None
    has_closures = db.session.query(Closure.id).filter_by(company_id=company_id).first() is not None
    return has_records or has_closures


def delete_company(company_id: int) -> str:
    """
    Hard-delete a company without history; otherwise deactivate it.

    Returns "deleted" or "deactivated".
    """
    company = get_company(company_id)
    if has_history(company.id):
        company.is_active = False
        outcome = "deactivated"
    else:
        db.session.delete(company)
        outcome = "deleted"
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError("Failed to delete company") from exc
    return outcome
