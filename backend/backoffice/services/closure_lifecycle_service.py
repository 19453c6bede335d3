# Overview: Service-layer operations for the closure billing lifecycle.

"""
Closure Status State Machine

================================================================================
PURPOSE: Track a closure from generation to payment, one operator action at a time
================================================================================

STATE MACHINE:
    pending -> report_sent -> invoice_sent -> completed

    send_report      pending | error_report                          -> report_sent | error_report
    send_invoice     report_sent | invoice_pending | error_invoice   -> invoice_sent | error_invoice
    confirm_payment  invoice_sent | payment_pending | error_payment  -> completed | error_payment

invoice_pending and payment_pending are display states carried over from the
previous system's data. No action enters them; a closure holding one can
still move on with the next step.

RULES:
1. No step is skipped; every action checks its source state first.
2. Failures are data: an error_* state plus last_error, never an exception.
3. Error states may be retried forever (no retry counter at this level).
4. Error states keep the stage of the step that failed, for progress bars.
5. Totals overrides never change status.

There is no locking; concurrent actions on one closure are last-write-wins.
================================================================================
"""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError

from ..delivery import DeliveryError
from ..extensions import db
from ..models import Closure, ClosureStatus, DocumentKind
from ..signals import closure_status_changed
from ..validation import ConflictError, StoreError, ValidationError
from . import dispatch_service
from .closure_service import get_closure
from backoffice.time_utils import utcnow

S = ClosureStatus

TOTAL_STAGES = 6

STAGES = {
    S.PENDING: 1,
    S.REPORT_SENT: 2,
    S.INVOICE_PENDING: 3,
    S.INVOICE_SENT: 4,
    S.PAYMENT_PENDING: 5,
    S.COMPLETED: 6,
    S.ERROR_REPORT: 1,
    S.ERROR_INVOICE: 3,
    S.ERROR_PAYMENT: 5,
}

LABELS = {
    S.PENDING: "Pending",
    S.REPORT_SENT: "Report sent",
    S.INVOICE_PENDING: "Invoice pending",
    S.INVOICE_SENT: "Invoice sent",
    S.PAYMENT_PENDING: "Awaiting payment",
    S.COMPLETED: "Completed",
    S.ERROR_REPORT: "Report error",
    S.ERROR_INVOICE: "Invoice error",
    S.ERROR_PAYMENT: "Payment error",
}

# action -> (allowed sources, success target, failure target)
TRANSITIONS: dict[str, tuple[frozenset, ClosureStatus, ClosureStatus]] = {
    "send_report": (frozenset({S.PENDING, S.ERROR_REPORT}), S.REPORT_SENT, S.ERROR_REPORT),
    "send_invoice": (
        frozenset({S.REPORT_SENT, S.INVOICE_PENDING, S.ERROR_INVOICE}),
        S.INVOICE_SENT,
        S.ERROR_INVOICE,
    ),
    "confirm_payment": (
        frozenset({S.INVOICE_SENT, S.PAYMENT_PENDING, S.ERROR_PAYMENT}),
        S.COMPLETED,
        S.ERROR_PAYMENT,
    ),
}


class LifecycleError(ConflictError):
    """
    Raised when an action is attempted from a state that does not allow it.

    This is a domain error, not a technical error.
    """
    pass


def parse_status(status: ClosureStatus | str) -> ClosureStatus:
    try:
        return ClosureStatus(status)
    except ValueError:
        allowed = ", ".join(s.value for s in ClosureStatus)
        raise ValidationError(f"Invalid status '{status}'. Must be one of: {allowed}")


def stage_of(status: ClosureStatus | str) -> int:
    return STAGES[parse_status(status)]


def progress_of(status: ClosureStatus | str) -> float:
    return stage_of(status) / TOTAL_STAGES


def label_of(status: ClosureStatus | str) -> str:
    return LABELS[parse_status(status)]


def can_transition(from_status: ClosureStatus | str, to_status: ClosureStatus | str) -> bool:
    """True if some action moves from_status to to_status."""
    source = parse_status(from_status)
    target = parse_status(to_status)
    for sources, success, failure in TRANSITIONS.values():
        if source in sources and target in (success, failure):
            return True
    return False


def allowed_actions(status: ClosureStatus | str) -> list[str]:
    current = parse_status(status)
    return [action for action, (sources, _, _) in TRANSITIONS.items() if current in sources]


def describe(closure: Closure) -> dict:
    """Closure dict enriched with stage/progress for the UI."""
    data = closure.to_dict()
    status = parse_status(closure.status)
    data.update({
        "status_label": label_of(status),
        "stage": stage_of(status),
        "total_stages": TOTAL_STAGES,
        "progress": progress_of(status),
        "is_error": status.is_error,
        "allowed_actions": allowed_actions(status),
    })
    return data


def _require_source(closure: Closure, action: str) -> ClosureStatus:
    sources, _, _ = TRANSITIONS[action]
    current = parse_status(closure.status)
    if current not in sources:
        allowed = ", ".join(sorted(s.value for s in sources))
        raise LifecycleError(
            f"Cannot {action.replace('_', ' ')} for closure {closure.id}: "
            f"current status is '{current.value}', must be one of: {allowed}"
        )
    return current


def _commit_transition(closure: Closure, previous: ClosureStatus) -> Closure:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StoreError(f"Failed to update closure {closure.id}") from exc
    closure_status_changed.send(closure, previous_status=previous.value)
    return closure


def _deliver_step(closure_id: int, action: str, kind: DocumentKind) -> Closure:
    closure = get_closure(closure_id)
    previous = _require_source(closure, action)
    _, success, failure = TRANSITIONS[action]

    try:
        dispatch_service.dispatch(closure, kind)
    except DeliveryError as exc:
        closure.status = failure.value
        closure.last_error = str(exc) or "Delivery failed"
    else:
        closure.status = success.value
        closure.last_sent_at = utcnow()
        closure.last_error = None
    return _commit_transition(closure, previous)


def send_report(closure_id: int) -> Closure:
    """Deliver the monthly report. pending | error_report -> report_sent | error_report."""
    return _deliver_step(closure_id, "send_report", DocumentKind.REPORT)


def send_invoice(closure_id: int) -> Closure:
    """Deliver the tax invoice. -> invoice_sent | error_invoice."""
    return _deliver_step(closure_id, "send_invoice", DocumentKind.TAX_INVOICE)


def confirm_payment(closure_id: int, failure_reason: str | None = None) -> Closure:
    """
    Record the outcome of a payment check.

    Without failure_reason the closure is completed; with one it moves to
    error_payment and keeps the reason in last_error.
    """
    closure = get_closure(closure_id)
    previous = _require_source(closure, "confirm_payment")
    _, success, failure = TRANSITIONS["confirm_payment"]

    reason = (failure_reason or "").strip()
    if reason:
        closure.status = failure.value
        closure.last_error = reason
    else:
        closure.status = success.value
        closure.last_error = None
    return _commit_transition(closure, previous)
