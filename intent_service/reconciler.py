"""Payment intent lifecycle: pick the intent a customer should pay against.

Intents are always fetched fresh from Stripe; nothing here is cached between
requests.
"""

import logging
from typing import Any, Callable, Dict, Mapping, Optional

from intent_service.errors import AuthenticationRequired, GatewayError, NotFound
from intent_service.stripe_service import StripeGateway

logger = logging.getLogger(__name__)

REQUIRES_PAYMENT_METHOD = "requires_payment_method"


def _as_is(value: Any) -> Any:
    return value


def _object_id(value: Any) -> Any:
    # customer may come back expanded
    if isinstance(value, Mapping):
        return value["id"]
    return value


# Fields carried from a stale intent into its replacement. Unset values are
# never sent.
CARRY_OVER: Dict[str, Callable[[Any], Any]] = {
    "amount": _as_is,
    "currency": _as_is,
    "customer": _object_id,
    "description": _as_is,
    "statement_descriptor": _as_is,
    "statement_descriptor_suffix": _as_is,
    "receipt_email": _as_is,
    "metadata": dict,
    "application_fee_amount": _as_is,
}

FRESH_PAYMENT_OVERRIDES: Dict[str, Any] = {
    "capture_method": "automatic",
    "setup_future_usage": "off_session",
    "automatic_payment_methods": {"enabled": True, "allow_redirects": "never"},
    "error_on_requires_action": False,
}


def fresh_payment_params(stale: Mapping[str, Any]) -> Dict[str, Any]:
    """Creation params for a new intent replacing ``stale``.

    Only fields listed in CARRY_OVER are copied. The payment method is not,
    the customer picks one again.
    """
    params = {}
    for field, project in CARRY_OVER.items():
        value = stale.get(field)
        if value is None or value == "":
            continue
        params[field] = project(value)
    params.update(FRESH_PAYMENT_OVERRIDES)
    params["automatic_payment_methods"] = dict(FRESH_PAYMENT_OVERRIDES["automatic_payment_methods"])
    return params


class IntentReconciler:
    def __init__(self, gateway: StripeGateway):
        self.gateway = gateway

    def resolve_active_intent(self, customer_id: str):
        """Return the intent the customer should be presented with.

        Only the newest intent is considered. If it is waiting for a new
        payment method after a failed off-session attempt, it is replaced by
        a fresh intent and cancelled. Any other intent, terminal ones
        included, is returned untouched.

        Two concurrent calls for the same customer can both replace the same
        stale intent; nothing here serialises them.
        """
        intents = self.gateway.list_intents_by_customer(customer_id, limit=1)
        if not intents:
            raise NotFound("No payment intent found")

        current = intents[0]
        logger.info("Latest payment intent for %s: %s (%s)", customer_id, current["id"], current["status"])
        if current["status"] != REQUIRES_PAYMENT_METHOD:
            return current

        fresh = self.gateway.create_intent(**fresh_payment_params(current))
        logger.info("Replaced payment intent %s with %s", current["id"], fresh["id"])
        try:
            self.gateway.cancel_intent(current["id"])
        except GatewayError as exc:
            # The fresh intent is already usable; the stale one stays open.
            logger.warning("Could not cancel stale payment intent %s: %s", current["id"], exc.message)
        return fresh

    def charge_with_fallback(
        self,
        customer_id: str,
        payment_method_id: str,
        amount: int,
        currency: str,
        description: Optional[str] = None,
    ):
        """Charge a saved payment method, falling back to an on-session attempt.

        Every attempt is restricted to the saved method's type, so Stripe does
        not fall back to redirect-based methods that would need a return URL.
        The result may be ``succeeded``, ``processing`` or ``requires_action``;
        callers decide what to do from ``status``.
        """
        payment_method = self.gateway.get_payment_method(payment_method_id)
        method_types = [payment_method["type"]]
        params: Dict[str, Any] = {
            "amount": amount,
            "currency": currency,
            "customer": customer_id,
            "payment_method": payment_method_id,
            "payment_method_types": method_types,
            "confirm": True,
            "off_session": True,
            "capture_method": "automatic_async",
        }
        if description:
            params["description"] = description

        try:
            return self.gateway.create_intent(**params)
        except AuthenticationRequired as exc:
            if exc.payment_intent_id:
                logger.info(
                    "Payment intent %s requires authentication, confirming on session",
                    exc.payment_intent_id,
                )
                return self.gateway.confirm_intent(
                    exc.payment_intent_id,
                    payment_method=payment_method_id,
                    payment_method_types=method_types,
                    off_session=False,
                )

            logger.info("Off-session charge for %s requires authentication, creating on session", customer_id)
            del params["off_session"]
            return self.gateway.create_intent(**params)
