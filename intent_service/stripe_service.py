from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import stripe

from intent_service.config import Settings
from intent_service.errors import AuthenticationRequired, GatewayError


AUTHENTICATION_REQUIRED = "authentication_required"


def configure_transport(settings: Settings) -> None:
    """Apply the network timeout and retry budget to the Stripe transport.

    Called once at startup. Credentials are not set here, every call passes
    its own api key.
    """
    stripe.default_http_client = stripe.RequestsClient(timeout=settings.stripe_timeout)
    stripe.max_network_retries = settings.stripe_max_network_retries


def _partial_intent_id(exc: stripe.StripeError) -> Optional[str]:
    body = exc.json_body or {}
    intent = (body.get("error") or {}).get("payment_intent") or {}
    return intent.get("id")


@contextmanager
def _translate_errors(operation: str):
    try:
        yield
    except stripe.StripeError as exc:
        if exc.code == AUTHENTICATION_REQUIRED:
            raise AuthenticationRequired(operation, str(exc), _partial_intent_id(exc)) from exc
        raise GatewayError(operation, str(exc)) from exc


class StripeGateway:
    """Payment intent, setup intent and webhook operations against Stripe."""

    def __init__(self, api_key: str, webhook_secret: str):
        self._api_key = api_key
        self._webhook_secret = webhook_secret

    @classmethod
    def from_settings(cls, settings: Settings) -> "StripeGateway":
        return cls(settings.stripe_secret_key, settings.stripe_webhook_secret)

    def create_intent(self, **params: Any) -> stripe.PaymentIntent:
        with _translate_errors("create_intent"):
            return stripe.PaymentIntent.create(api_key=self._api_key, **params)

    def update_intent(self, intent_id: str, **params: Any) -> stripe.PaymentIntent:
        with _translate_errors("update_intent"):
            return stripe.PaymentIntent.modify(intent_id, api_key=self._api_key, **params)

    def get_intent(self, intent_id: str) -> stripe.PaymentIntent:
        with _translate_errors("get_intent"):
            return stripe.PaymentIntent.retrieve(intent_id, api_key=self._api_key)

    def list_intents_by_customer(self, customer_id: str, limit: int = 1) -> List[stripe.PaymentIntent]:
        """Newest first, as Stripe orders list results."""
        with _translate_errors("list_intents"):
            page = stripe.PaymentIntent.list(customer=customer_id, limit=limit, api_key=self._api_key)
            return list(page["data"])

    def capture_intent(self, intent_id: str, amount: Optional[int] = None) -> stripe.PaymentIntent:
        """Capture ``amount``, or everything capturable when it is None."""
        params: Dict[str, Any] = {}
        if amount is not None:
            params["amount_to_capture"] = amount
        with _translate_errors("capture_intent"):
            return stripe.PaymentIntent.capture(intent_id, api_key=self._api_key, **params)

    def cancel_intent(self, intent_id: str, reason: Optional[str] = None) -> stripe.PaymentIntent:
        params: Dict[str, Any] = {}
        if reason:
            params["cancellation_reason"] = reason
        with _translate_errors("cancel_intent"):
            return stripe.PaymentIntent.cancel(intent_id, api_key=self._api_key, **params)

    def confirm_intent(self, intent_id: str, **params: Any) -> stripe.PaymentIntent:
        with _translate_errors("confirm_intent"):
            return stripe.PaymentIntent.confirm(intent_id, api_key=self._api_key, **params)

    def get_payment_method(self, payment_method_id: str) -> stripe.PaymentMethod:
        with _translate_errors("get_payment_method"):
            return stripe.PaymentMethod.retrieve(payment_method_id, api_key=self._api_key)

    def create_setup_intent(self, **params: Any) -> stripe.SetupIntent:
        with _translate_errors("create_setup_intent"):
            return stripe.SetupIntent.create(api_key=self._api_key, **params)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> stripe.Event:
        """Verify a webhook delivery.

        Raises ValueError for an unparseable payload and
        stripe.SignatureVerificationError for a bad signature.
        """
        return stripe.Webhook.construct_event(
            payload, signature or "", self._webhook_secret, api_key=self._api_key
        )
