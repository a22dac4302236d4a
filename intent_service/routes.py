from functools import lru_cache
from typing import Optional, Type, TypeVar

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from intent_service.config import Settings, get_settings
from intent_service.errors import RequestDecodeError, ValidationError
from intent_service.reconciler import IntentReconciler
from intent_service.stripe_service import StripeGateway

router = APIRouter()

# authorize 1.00 to release it again after confirmation
PRE_AUTH_AMOUNT = 100

M = TypeVar("M", bound=BaseModel)


@lru_cache
def get_gateway() -> StripeGateway:
    return StripeGateway.from_settings(get_settings())


def get_reconciler(gateway: StripeGateway = Depends(get_gateway)) -> IntentReconciler:
    return IntentReconciler(gateway)


class RequestBody(BaseModel):
    model_config = ConfigDict(strict=True, populate_by_name=True)


class PaymentRequest(RequestBody):
    currency: str = "USD"


class ResolveRequest(RequestBody):
    customer_id: str = Field("", alias="customerID")


class IntentRequest(RequestBody):
    payment_intent_id: str = Field("", alias="paymentIntentID")


class CaptureRequest(IntentRequest):
    amount: Optional[int] = None


class ChargeRequest(RequestBody):
    customer_id: str = Field("", alias="customerID")
    payment_method_id: str = Field("", alias="paymentMethodID")
    amount: int = 0
    currency: str = ""
    description: Optional[str] = None


def decode_body(raw: bytes, model: Type[M], allow_empty: bool = False) -> M:
    if not raw.strip():
        if allow_empty:
            return model()
        raise RequestDecodeError("request body is empty")
    try:
        return model.model_validate_json(raw)
    except PydanticValidationError as exc:
        raise RequestDecodeError(str(exc)) from exc


def json_body(model: Type[M], allow_empty: bool = False):
    async def dependency(request: Request):
        return decode_body(await request.body(), model, allow_empty)
    return dependency


def require(value, name: str):
    if not value:
        raise ValidationError(f"{name} is required")
    return value


def customer_params(settings: Settings) -> dict:
    if settings.demo_customer_id:
        return {"customer": settings.demo_customer_id}
    return {}


def client_payload(settings: Settings, intent) -> dict:
    return {
        "publicKey": settings.stripe_publishable_key,
        "clientSecret": intent["client_secret"],
        "id": intent["id"],
    }


@router.get("/config")
def config(settings: Settings = Depends(get_settings)):
    return {"publishableKey": settings.stripe_publishable_key}


@router.post("/create-payment-intent")
def create_payment_intent(
    request: PaymentRequest = Depends(json_body(PaymentRequest, allow_empty=True)),
    gateway: StripeGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    intent = gateway.create_intent(
        amount=PRE_AUTH_AMOUNT,
        currency=request.currency,
        **customer_params(settings),
        capture_method="manual",
        setup_future_usage="off_session",
        statement_descriptor=settings.statement_descriptor,
        statement_descriptor_suffix="pre-auth",
        description="Pre-authorize 1.00 to release it back after confirmation",
        automatic_payment_methods={"enabled": True},
    )
    return client_payload(settings, intent)


@router.post("/resolve-last-payment-intent")
def resolve_last_payment_intent(
    request: ResolveRequest = Depends(json_body(ResolveRequest)),
    reconciler: IntentReconciler = Depends(get_reconciler),
    settings: Settings = Depends(get_settings),
):
    intent = reconciler.resolve_active_intent(require(request.customer_id, "customerID"))
    return {"amount": intent["amount"], **client_payload(settings, intent)}


@router.post("/create-setup-intent")
def create_setup_intent(
    request: PaymentRequest = Depends(json_body(PaymentRequest)),
    gateway: StripeGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    # setup intents carry no currency; the field is accepted for symmetry with
    # /create-payment-intent
    intent = gateway.create_setup_intent(
        **customer_params(settings),
        description="Capture payment details for future use",
        automatic_payment_methods={"enabled": True},
    )
    return client_payload(settings, intent)


@router.post("/capture-payment-intent")
def capture_payment_intent(
    request: CaptureRequest = Depends(json_body(CaptureRequest)),
    gateway: StripeGateway = Depends(get_gateway),
):
    intent_id = require(request.payment_intent_id, "paymentIntentID")
    return gateway.capture_intent(intent_id, request.amount)


@router.post("/cancel-payment-intent")
def cancel_payment_intent(
    request: IntentRequest = Depends(json_body(IntentRequest)),
    gateway: StripeGateway = Depends(get_gateway),
):
    intent_id = require(request.payment_intent_id, "paymentIntentID")
    return gateway.cancel_intent(intent_id, reason="abandoned")


@router.post("/confirm-payment-intent")
def confirm_payment_intent(
    request: IntentRequest = Depends(json_body(IntentRequest)),
    gateway: StripeGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    # confirmation itself happens client side with the returned secret
    intent = gateway.get_intent(require(request.payment_intent_id, "paymentIntentID"))
    return client_payload(settings, intent)


@router.post("/charge-saved-payment-method")
def charge_saved_payment_method(
    request: ChargeRequest = Depends(json_body(ChargeRequest)),
    reconciler: IntentReconciler = Depends(get_reconciler),
    settings: Settings = Depends(get_settings),
):
    if request.amount <= 0:
        raise ValidationError("amount must be positive")
    intent = reconciler.charge_with_fallback(
        require(request.customer_id, "customerID"),
        require(request.payment_method_id, "paymentMethodID"),
        request.amount,
        require(request.currency, "currency"),
        description=request.description,
    )
    return {"status": intent["status"], **client_payload(settings, intent)}
