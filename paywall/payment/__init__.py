"""
BSV Payment Enforcement Module.

This module gates HTTP requests behind a per-request BSV micropayment.

Key components:
- middleware: FastAPI middleware running the payment state machine
- pricing: Price resolution and pricing strategies
- nonce: Single-use derivation prefixes bound to the server wallet
- models: Challenge, submission, outcome and wallet payload models
- errors: Error codes and failure results
- wallet: Wallet collaborator interface

Configuration is loaded from environment variables via paywall.core.config.
"""
from paywall.payment.errors import ErrorCode, PaymentFailure, WalletError
from paywall.payment.middleware import (
    BSVPaymentMiddleware,
    PaymentMiddlewareOptions,
    get_request_context,
)
from paywall.payment.models import PaymentChallenge, PaymentOutcome, PaymentSubmission, RequestContext
from paywall.payment.nonce import InMemoryNonceStore, NonceManager, NonceStore
from paywall.payment.pricing import RoutePriceTable, fixed_price, price_by_content_length
from paywall.payment.wallet import Wallet

__version__ = "0.1.0"

__all__ = [
    "BSVPaymentMiddleware",
    "ErrorCode",
    "InMemoryNonceStore",
    "NonceManager",
    "NonceStore",
    "PaymentChallenge",
    "PaymentFailure",
    "PaymentMiddlewareOptions",
    "PaymentOutcome",
    "PaymentSubmission",
    "RequestContext",
    "RoutePriceTable",
    "Wallet",
    "WalletError",
    "fixed_price",
    "get_request_context",
    "price_by_content_length",
]
