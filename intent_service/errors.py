"""Error taxonomy shared by the gateway wrapper, the reconciler and the routes."""

from typing import Optional


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RequestDecodeError(ServiceError):
    """Request body could not be decoded.

    Answered with 500 rather than 400; clients of the demo pages rely on it.
    """


class ValidationError(ServiceError):
    status_code = 400


class NotFound(ServiceError):
    # Kept at 500 to match the existing clients, see DESIGN.md.
    status_code = 500


class GatewayError(ServiceError):
    """A call to Stripe failed."""

    def __init__(self, operation: str, message: str):
        super().__init__(message)
        self.operation = operation


class AuthenticationRequired(GatewayError):
    """The payment method needs the customer to authenticate interactively."""

    def __init__(self, operation: str, message: str, payment_intent_id: Optional[str] = None):
        super().__init__(operation, message)
        self.payment_intent_id = payment_intent_id
