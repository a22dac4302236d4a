import logging
import sys
from contextlib import asynccontextmanager

import stripe
from fastapi import Depends, FastAPI, Request, Header, HTTPException
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from intent_service.config import get_settings
from intent_service.database import Base, engine
from intent_service.errors import GatewayError, ServiceError
from intent_service.routes import get_gateway, router
from intent_service.stripe_service import StripeGateway, configure_transport
from intent_service.webhooks import dispatch_event

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_transport(settings)
    logger.info(
        "Stripe transport configured (timeout=%ss, max retries=%s)",
        settings.stripe_timeout,
        settings.stripe_max_network_retries,
    )
    yield


app = FastAPI(title="Payment Intent Demo Service", lifespan=lifespan)

app.include_router(router)

Base.metadata.create_all(bind=engine)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if isinstance(exc, GatewayError):
        logger.error("%s %s: %s: %s", request.method, request.url.path, exc.operation, exc.message)
    else:
        logger.warning("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    gateway: StripeGateway = Depends(get_gateway),
):
    payload = await request.body()

    try:
        event = gateway.construct_event(payload, stripe_signature)
    except ValueError:
        logger.warning("Webhook payload could not be parsed")
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        logger.warning("Webhook signature verification failed")
        raise HTTPException(status_code=400, detail="Invalid signature")

    dispatch_event(event)
    return {"status": "success"}


def serve_static(app: FastAPI, directory: str) -> None:
    """Serve ``directory`` for every path no API route claims.

    Installed as the router fallback, so a wrong method on an API route still
    answers 405.
    """
    app.router.default = StaticFiles(directory=directory, html=True)


if settings.static_dir:
    serve_static(app, settings.static_dir)
