# paywall/main.py
from fastapi import FastAPI
from paywall.core.config import settings
from paywall.api.endpoints import content
from paywall.auth.middleware import IdentityKeyAuthMiddleware
from paywall.payment.middleware import BSVPaymentMiddleware, PaymentMiddlewareOptions
from paywall.payment.pricing import RoutePriceTable
from paywall.services.wallet_api import HttpWallet
import logging

# Configure basic logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Priced routes, first match wins; anything unlisted is free
PRICED_ROUTES = [
    ("GET", f"{settings.API_V1_STR}/content/free", 0),
    ("GET", f"{settings.API_V1_STR}/content/", settings.BSV_DEFAULT_PRICE_SATOSHIS),
]


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_V1_STR}/openapi.json" # Standard location for OpenAPI spec
    )

    app.include_router(content.router, prefix=f"{settings.API_V1_STR}/content", tags=["content"])

    # Starlette runs the last added middleware first: identity, then payment
    app.add_middleware(
        BSVPaymentMiddleware,
        options=PaymentMiddlewareOptions(
            wallet=HttpWallet(),
            calculate_request_price=RoutePriceTable(PRICED_ROUTES),
        ),
    )
    app.add_middleware(IdentityKeyAuthMiddleware)

    @app.get("/", summary="Health Check", tags=["default"])
    def read_root():
        """ Basic health check endpoint. """
        logger.info("Root endpoint '/' accessed.")
        return {"status": "ok", "message": f"Welcome to {settings.PROJECT_NAME}"}

    return app


app = create_app()
