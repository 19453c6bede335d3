# Overview: Domain signals for observers (dashboards, notifications).

from blinker import Namespace
from flask import current_app

_signals = Namespace()

# sender: the ConsumptionRecord
consumption_recorded = _signals.signal("consumption-recorded")
# sender: the deleted record id, kwargs: company_id
consumption_deleted = _signals.signal("consumption-deleted")
# sender: None, kwargs: month, year, closures
closures_generated = _signals.signal("closures-generated")
# sender: the Closure, kwargs: previous_status
closure_status_changed = _signals.signal("closure-status-changed")
# sender: the DocumentSend
document_send_attempted = _signals.signal("document-send-attempted")


def _log_status_change(closure, previous_status=None, **_):
    current_app.logger.info(
        "Closure %s status %s -> %s", closure.id, previous_status, closure.status
    )


def _log_send_attempt(send, **_):
    if send.status == "error":
        current_app.logger.warning(
            "Document send %s (%s) failed, retries=%s: %s",
            send.id, send.kind, send.retries, send.last_error,
        )


closure_status_changed.connect(_log_status_change)
document_send_attempted.connect(_log_send_attempt)
