"""Handling for verified Stripe webhook events.

Handlers only log. None of them calls back into Stripe, so a redelivered
event repeats its log line and its audit row and nothing else.
"""

import json
import logging
from typing import Any, Callable, Dict, Mapping

from intent_service.database import SessionLocal
from intent_service.models import WebhookEvent

logger = logging.getLogger(__name__)

Handler = Callable[[Mapping[str, Any]], None]


def _payment_method_attached(obj: Mapping[str, Any]) -> None:
    logger.info("PaymentMethod %s attached to customer %s", obj.get("id"), obj.get("customer"))


def _payment_intent_succeeded(obj: Mapping[str, Any]) -> None:
    if not obj.get("setup_future_usage"):
        logger.info("Customer did not want to save the card for %s", obj.get("id"))
    logger.info("Payment received for %s", obj.get("id"))


def _payment_intent_payment_failed(obj: Mapping[str, Any]) -> None:
    error = obj.get("last_payment_error") or {}
    logger.info("Payment failed for %s: %s", obj.get("id"), error.get("message"))


def _payment_intent_requires_action(obj: Mapping[str, Any]) -> None:
    logger.info("Payment %s requires action", obj.get("id"))


def _payment_intent_amount_capturable_updated(obj: Mapping[str, Any]) -> None:
    logger.info("Payment %s capturable amount updated to %s", obj.get("id"), obj.get("amount_capturable"))


EVENT_HANDLERS: Dict[str, Handler] = {
    "payment_method.attached": _payment_method_attached,
    "payment_intent.succeeded": _payment_intent_succeeded,
    "payment_intent.payment_failed": _payment_intent_payment_failed,
    "payment_intent.requires_action": _payment_intent_requires_action,
    "payment_intent.amount_capturable_updated": _payment_intent_amount_capturable_updated,
}


def record_event(event: Mapping[str, Any]) -> None:
    db = SessionLocal()
    try:
        db.add(WebhookEvent(
            event_id=event.get("id"),
            type=event["type"],
            payload=json.dumps(event["data"]["object"], default=str),
        ))
        db.commit()
    finally:
        db.close()


def dispatch_event(event: Mapping[str, Any]) -> bool:
    """Record ``event`` and run its handler.

    Returns False when no handler is registered for the event type; the
    delivery is still acknowledged.
    """
    record_event(event)
    handler = EVENT_HANDLERS.get(event["type"])
    if handler is None:
        logger.info("Unhandled event type: %s", event["type"])
        return False
    handler(event["data"]["object"])
    return True
