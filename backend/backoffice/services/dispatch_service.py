# Overview: Renders closure documents from the stored templates and hands them to the dispatcher.

from __future__ import annotations

from flask import current_app

from ..delivery import DeliveryError, OutgoingDocument, get_dispatcher
from ..models import Closure, DocumentKind
from . import settings_service
from .pricing_service import format_brl

SUBJECTS = {
    DocumentKind.REPORT: "Relatório de consumo {month:02d}/{year}",
    DocumentKind.BILLING_NOTICE: "Cobrança {month:02d}/{year}",
    DocumentKind.TAX_INVOICE: "Nota fiscal {month:02d}/{year}",
}


def template_context(closure: Closure, profile: dict) -> dict:
    company = closure.company
    return {
        "contact_name": company.contact_name if company else "",
        "company_name": company.name if company else "",
        "month": closure.month,
        "year": closure.year,
        "total_p": closure.total_p,
        "total_m": closure.total_m,
        "total_g": closure.total_g,
        "total_meals": closure.total_meals,
        "total_value": format_brl(closure.total_value_cents),
        "pix_key": profile.get("pix_key", ""),
        "business_name": profile.get("name", ""),
    }


def build_document(closure: Closure, kind: DocumentKind | str) -> OutgoingDocument:
    """
    Render one document for a closure.

    A template that cannot be rendered (unknown placeholder, bad attribute or
    index lookup, malformed format spec) is a delivery failure, so it ends up
    recorded on the closure/send instead of crashing the request.
    """
    kind = DocumentKind(kind)
    profile = settings_service.get_business_profile()
    templates = settings_service.get_templates()
    context = template_context(closure, profile)
    try:
        body = templates[kind.value].format(**context)
        subject = SUBJECTS[kind].format(**context)
    except (AttributeError, IndexError, KeyError, TypeError, ValueError) as exc:
        raise DeliveryError(f"Template '{kind.value}' could not be rendered: {exc}") from exc

    company = closure.company
    return OutgoingDocument(
        kind=kind.value,
        closure_id=closure.id,
        recipient=company.email if company else None,
        subject=subject,
        body=body,
    )


def dispatch(closure: Closure, kind: DocumentKind | str) -> None:
    """Build and deliver. Raises DeliveryError on any failure."""
    document = build_document(closure, kind)
    try:
        get_dispatcher().deliver(document)
    except DeliveryError as exc:
        current_app.logger.warning(
            "Delivery of %s for closure %s failed: %s", document.kind, closure.id, exc
        )
        raise
