# Overview: Service-layer operations for document-send tracking.

"""
Document-Send Tracker

Each closure has three independent deliveries: the monthly report, the
billing notice and the tax invoice. Every one of them is its own small state
machine (pending -> sent, pending/error -> error) with a retry counter.

The three rows are created lazily, together, the first time a closure's
sends are requested. If some (but not all) rows exist they are left alone,
which the overall status reports as "pending".

Overall status precedence, evaluated in this order:
    1. any of the three rows missing  -> pending
    2. any row in error               -> error
    3. any row still pending          -> partial
    4. all three sent                 -> complete
"""

from __future__ import annotations

from enum import Enum

from sqlalchemy.exc import SQLAlchemyError

from ..delivery import DeliveryError
from ..extensions import db
from ..models import Closure, ClosureStatus, DocumentKind, DocumentSend, SendStatus
from ..signals import document_send_attempted
from ..validation import NotFoundError, StoreError, ValidationError
from . import dispatch_service
from .closure_service import get_closure, list_closures
from backoffice.time_utils import utcnow


class OverallStatus(str, Enum):
    PENDING = "pending"
    ERROR = "error"
    PARTIAL = "partial"
    COMPLETE = "complete"


def derive_overall_status(
    report: SendStatus | str | None,
    billing_notice: SendStatus | str | None,
    tax_invoice: SendStatus | str | None,
) -> OverallStatus:
    """
    Pure function of the three statuses; None means the row does not exist.
    """
    statuses = (report, billing_notice, tax_invoice)
    if any(s is None for s in statuses):
        return OverallStatus.PENDING
    parsed = [SendStatus(s) for s in statuses]
    if any(s is SendStatus.ERROR for s in parsed):
        return OverallStatus.ERROR
    if any(s is SendStatus.PENDING for s in parsed):
        return OverallStatus.PARTIAL
    return OverallStatus.COMPLETE


def lifecycle_label(
    report: SendStatus | str | None,
    billing_notice: SendStatus | str | None,
    tax_invoice: SendStatus | str | None,
) -> ClosureStatus:
    """
    Coarse lifecycle position implied by the document sends alone.

    The report maps to the report step; the billing notice and the tax invoice
    together map to the invoice step. Payment cannot be observed from sends,
    so the furthest this goes is invoice_sent.
    """
    def parse(s):
        return SendStatus(s) if s is not None else None

    r, b, t = parse(report), parse(billing_notice), parse(tax_invoice)
    if r is SendStatus.ERROR:
        return ClosureStatus.ERROR_REPORT
    if r is not SendStatus.SENT:
        return ClosureStatus.PENDING
    if SendStatus.ERROR in (b, t):
        return ClosureStatus.ERROR_INVOICE
    if b is SendStatus.SENT and t is SendStatus.SENT:
        return ClosureStatus.INVOICE_SENT
    if b is SendStatus.SENT or t is SendStatus.SENT:
        return ClosureStatus.INVOICE_PENDING
    return ClosureStatus.REPORT_SENT


def list_sends(closure_id: int) -> list[DocumentSend]:
    return (
        db.session.query(DocumentSend)
        .filter_by(closure_id=closure_id)
        .order_by(DocumentSend.id.asc())
        .all()
    )


def ensure_sends(closure_id: int) -> list[DocumentSend]:
    """
    Return the closure's sends, creating all three if it has none.
    """
    get_closure(closure_id)
    existing = list_sends(closure_id)
    if existing:
        return existing
    try:
        created = [
            DocumentSend(
                closure_id=closure_id,
                kind=kind.value,
                status=SendStatus.PENDING.value,
                retries=0,
            )
            for kind in DocumentKind
        ]
        db.session.add_all(created)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError(f"Failed to create document sends for closure {closure_id}") from exc
    return created


def get_send(send_id: int) -> DocumentSend:
    send = db.session.get(DocumentSend, send_id)
    if send is None:
        raise NotFoundError(f"Document send {send_id} not found")
    return send


def _commit(send: DocumentSend) -> DocumentSend:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError(f"Failed to update document send {send.id}") from exc
    return send


def resend(send_id: int) -> DocumentSend:
    """
    Attempt delivery, whatever the current status.

    Success: sent, sent_at=now, last_error cleared.
    Failure: error, last_error set, sent_at left as it was.
    retries is incremented either way.
    """
    send = get_send(send_id)
    closure = get_closure(send.closure_id)

    try:
        dispatch_service.dispatch(closure, send.kind)
    except DeliveryError as exc:
        send.status = SendStatus.ERROR.value
        send.last_error = str(exc) or "Delivery failed"
    else:
        send.status = SendStatus.SENT.value
        send.sent_at = utcnow()
        send.last_error = None
    send.retries = (send.retries or 0) + 1

    _commit(send)
    document_send_attempted.send(send)
    return send


def mark_sent(send_id: int) -> DocumentSend:
    """Operator override: the document went out some other way."""
    send = get_send(send_id)
    send.status = SendStatus.SENT.value
    send.sent_at = utcnow()
    return _commit(send)


def add_note(send_id: int, text: str | None) -> DocumentSend:
    """Replace the notes; status is untouched."""
    send = get_send(send_id)
    if text is not None and not isinstance(text, str):
        raise ValidationError("notes must be a string")
    send.notes = (text or "").strip() or None
    return _commit(send)


def group_for_closure(closure: Closure, sends: list[DocumentSend]) -> dict:
    by_kind = {s.kind: s for s in sends}
    report = by_kind.get(DocumentKind.REPORT.value)
    billing = by_kind.get(DocumentKind.BILLING_NOTICE.value)
    invoice = by_kind.get(DocumentKind.TAX_INVOICE.value)

    statuses = [s.status if s else None for s in (report, billing, invoice)]
    notes = next((s.notes for s in (report, billing, invoice) if s and s.notes), "")
    return {
        "closure": closure.to_dict(),
        "report": report.to_dict() if report else None,
        "billing_notice": billing.to_dict() if billing else None,
        "tax_invoice": invoice.to_dict() if invoice else None,
        "overall_status": derive_overall_status(*statuses).value,
        "lifecycle_label": lifecycle_label(*statuses).value,
        "notes": notes,
    }


def grouped_sends(month: int, year: int, status: SendStatus | str | None = None) -> list[dict]:
    """
    One group per closure of the month, creating missing send rows on the way.

    status keeps only groups with at least one send in that status.
    """
    try:
        wanted = SendStatus(status).value if status else None
    except ValueError:
        allowed = ", ".join(s.value for s in SendStatus)
        raise ValidationError(f"status must be one of: {allowed}")
    groups = []
    for closure in list_closures(month, year):
        sends = ensure_sends(closure.id)
        if wanted and not any(s.status == wanted for s in sends):
            continue
        groups.append(group_for_closure(closure, sends))
    return groups


def send_stats(groups: list[dict]) -> dict:
    counts = {s.value: 0 for s in OverallStatus}
    for g in groups:
        counts[g["overall_status"]] += 1
    return {"total": len(groups), **counts}
