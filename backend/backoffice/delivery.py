# Overview: Document delivery backends and their per-app registration.

"""
Dispatchers deliver an OutgoingDocument or raise DeliveryError.

The backend is picked by DELIVERY_BACKEND at app creation:
- "log":       writes the document to the app log and always succeeds
- "simulated": succeeds with probability DELIVERY_SUCCESS_RATE

Tests and integrations install their own with set_dispatcher(app, ...).
"""

from __future__ import annotations

import random
from dataclasses import dataclass

from flask import Flask, current_app

EXTENSION_KEY = "backoffice.dispatcher"


class DeliveryError(Exception):
    """A document could not be delivered. Recorded on the entity, never raised to HTTP."""


@dataclass(frozen=True)
class OutgoingDocument:
    kind: str
    closure_id: int
    recipient: str | None
    subject: str
    body: str


class Dispatcher:
    name = "base"

    def deliver(self, document: OutgoingDocument) -> None:
        raise NotImplementedError


class LogDispatcher(Dispatcher):
    name = "log"

    def deliver(self, document: OutgoingDocument) -> None:
        current_app.logger.info(
            "Delivered %s for closure %s to %s: %s",
            document.kind, document.closure_id, document.recipient or "<no recipient>", document.subject,
        )


class SimulatedDispatcher(Dispatcher):
    """Random outcome, for demos and manual testing of the retry flows."""
    name = "simulated"

    def __init__(self, success_rate: float = 0.7, rng: random.Random | None = None):
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError("success_rate must be between 0 and 1")
        self.success_rate = success_rate
        self.rng = rng or random.Random()

    def deliver(self, document: OutgoingDocument) -> None:
        if self.rng.random() >= self.success_rate:
            raise DeliveryError("Simulated connection failure")
        current_app.logger.info(
            "Delivered %s for closure %s (simulated)", document.kind, document.closure_id
        )


def build_dispatcher(app: Flask) -> Dispatcher:
    backend = app.config.get("DELIVERY_BACKEND", "log")
    if backend == "log":
        return LogDispatcher()
    if backend == "simulated":
        return SimulatedDispatcher(float(app.config.get("DELIVERY_SUCCESS_RATE", 0.7)))
    raise ValueError(f"Unknown DELIVERY_BACKEND: {backend!r}")


def init_app(app: Flask) -> None:
    app.extensions[EXTENSION_KEY] = build_dispatcher(app)


def set_dispatcher(app: Flask, dispatcher: Dispatcher) -> None:
    app.extensions[EXTENSION_KEY] = dispatcher


def get_dispatcher() -> Dispatcher:
    return current_app.extensions[EXTENSION_KEY]
