"""
FastAPI middleware enforcing BSV payment for HTTP requests.

This module provides HTTP middleware that:
1. Requires an authenticated identity key on the request context
2. Resolves the price of the request in satoshis
3. Returns 402 Payment Required with a fresh derivation prefix when no
   X-BSV-Payment header is present
4. Parses the X-BSV-Payment header and verifies its derivation prefix
5. Internalizes the payment transaction through the wallet
6. Attaches the PaymentOutcome to the request context and adds the
   X-BSV-Payment-Satoshis-Paid header to the response

It must run after the identity middleware (add it to the app first, since
Starlette runs the last added middleware outermost).
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from fastapi import Request, Response
from pydantic import ValidationError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from paywall.core.config import settings
from paywall.payment.errors import (
    ErrorCode,
    PaymentFailure,
    WalletError,
    invalid_derivation_prefix,
    malformed_payment,
    payment_failed,
    payment_internal,
    server_misconfigured,
)
from paywall.payment.models import (
    InternalizeActionArgs,
    InternalizeActionResult,
    InternalizeOutput,
    PaymentChallenge,
    PaymentOutcome,
    PaymentRemittance,
    PaymentSubmission,
    RequestContext,
)
from paywall.payment.nonce import NonceManager, get_nonce_manager
from paywall.payment.pricing import PriceCalculator, resolve_price
from paywall.payment.wallet import Wallet, call_collaborator

logger = logging.getLogger(__name__)

# Payment protocol headers
X_BSV_PAYMENT_HEADER = "x-bsv-payment"
X_BSV_PAYMENT_VERSION_HEADER = "x-bsv-payment-version"
X_BSV_PAYMENT_SATOSHIS_REQUIRED_HEADER = "x-bsv-payment-satoshis-required"
X_BSV_PAYMENT_DERIVATION_PREFIX_HEADER = "x-bsv-payment-derivation-prefix"
X_BSV_PAYMENT_SATOSHIS_PAID_HEADER = "x-bsv-payment-satoshis-paid"


@dataclass(frozen=True)
class PaymentMiddlewareOptions:
    """
    Configuration for BSVPaymentMiddleware.

    Args:
        wallet: Wallet used to mint nonces and internalize payments
        calculate_request_price: Callable returning the price in satoshis
        nonce_manager: Nonce manager to use. Defaults to the process-wide one.
    """
    wallet: Wallet
    calculate_request_price: PriceCalculator
    nonce_manager: Optional[NonceManager] = None

    def __post_init__(self):
        if not callable(self.calculate_request_price):
            raise TypeError("The calculate_request_price option must be callable.")
        if self.wallet is None or not isinstance(self.wallet, Wallet):
            raise TypeError("A valid wallet instance must be supplied to the payment middleware.")
        if self.nonce_manager is not None and not isinstance(self.nonce_manager, NonceManager):
            raise TypeError("The nonce_manager option must be a NonceManager.")


def get_request_context(request: Request) -> Optional[RequestContext]:
    """Return the RequestContext set by the identity middleware, if any."""
    context = getattr(request.state, "context", None)
    if isinstance(context, RequestContext):
        return context
    return None


def set_request_context(request: Request, context: RequestContext) -> None:
    request.state.context = context


def create_challenge_response(challenge: PaymentChallenge) -> JSONResponse:
    """
    Create an HTTP 402 Payment Required response.

    Args:
        challenge: The payment terms to advertise

    Returns:
        JSONResponse with 402 status, challenge headers and error body
    """
    failure = PaymentFailure(
        code=ErrorCode.PAYMENT_REQUIRED.value,
        status_code=402,
        description=(
            "A BSV payment is required to complete this request. "
            "Provide the X-BSV-Payment header."
        ),
        extra={"satoshisRequired": challenge.satoshis_required},
        headers={
            X_BSV_PAYMENT_VERSION_HEADER: challenge.version,
            X_BSV_PAYMENT_SATOSHIS_REQUIRED_HEADER: str(challenge.satoshis_required),
            X_BSV_PAYMENT_DERIVATION_PREFIX_HEADER: challenge.derivation_prefix,
        },
    )
    return failure.to_response()


def parse_payment_header(header_value: str) -> Union[PaymentSubmission, PaymentFailure]:
    """
    Parse the X-BSV-Payment header into a PaymentSubmission.

    Args:
        header_value: JSON object with transaction, derivationPrefix and derivationSuffix

    Returns:
        PaymentSubmission if well formed, otherwise an ERR_MALFORMED_PAYMENT failure
    """
    try:
        return PaymentSubmission.model_validate_json(header_value)
    except ValidationError as e:
        logger.warning(f"bsv-payment: Malformed X-BSV-Payment header: {e.error_count()} error(s)")
        return malformed_payment()


def build_internalize_args(
    submission: PaymentSubmission,
    identity_key: str,
    description: str
) -> InternalizeActionArgs:
    """Describe the payment output for the wallet's internalizeAction call."""
    return InternalizeActionArgs(
        tx=submission.transaction_bytes,
        outputs=[
            InternalizeOutput(
                output_index=0,
                payment_remittance=PaymentRemittance(
                    derivation_prefix=submission.derivation_prefix,
                    derivation_suffix=submission.derivation_suffix,
                    sender_identity_key=identity_key,
                ),
            )
        ],
        description=description,
    )


class BSVPaymentMiddleware(BaseHTTPMiddleware):
    """
    BSV payment enforcement middleware for FastAPI.

    For every request not in PUBLIC_PATHS this middleware:
    - Rejects the request with 500 if no identity key is on the request context
    - Lets free requests (price 0) through with satoshisPaid=0
    - Returns HTTP 402 with a payment challenge if no payment was submitted
    - Validates and internalizes a submitted payment before calling the route
    """

    def __init__(self, app, options: PaymentMiddlewareOptions):
        super().__init__(app)
        if not isinstance(options, PaymentMiddlewareOptions):
            raise TypeError("BSVPaymentMiddleware requires PaymentMiddlewareOptions.")
        self._options = options

    @property
    def wallet(self) -> Wallet:
        return self._options.wallet

    @property
    def nonce_manager(self) -> NonceManager:
        if self._options.nonce_manager is not None:
            return self._options.nonce_manager
        return get_nonce_manager()

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Response]
    ) -> Response:
        """
        Process the request through BSV payment enforcement.

        Flow:
        1. Check the identity precondition
        2. Resolve the price; free requests proceed immediately
        3. If no X-BSV-Payment header, return 402 with a challenge
        4. Parse the header and verify the derivation prefix
        5. Internalize the payment and attach the outcome
        6. Call the route and add X-BSV-Payment-Satoshis-Paid
        """
        if request.url.path in settings.PUBLIC_PATHS:
            return await call_next(request)

        context = get_request_context(request)
        if context is None or not isinstance(context.identity_key, str) or not context.identity_key:
            logger.error("bsv-payment: No identity key on request; is the auth middleware installed first?")
            return server_misconfigured().to_response()

        price = await resolve_price(self._options.calculate_request_price, request)
        if isinstance(price, PaymentFailure):
            return price.to_response()

        if price == 0:
            set_request_context(request, context.with_payment(PaymentOutcome(satoshis_paid=0)))
            return await call_next(request)

        payment_header = request.headers.get(X_BSV_PAYMENT_HEADER)
        if payment_header is None:
            return await self._issue_challenge(price)

        submission = parse_payment_header(payment_header)
        if isinstance(submission, PaymentFailure):
            return submission.to_response()

        # Configuration faults must not spend the client's prefix
        try:
            args = build_internalize_args(
                submission,
                identity_key=context.identity_key,
                description=settings.BSV_PAYMENT_DESCRIPTION,
            )
        except ValidationError:
            logger.exception("bsv-payment: Could not build internalizeAction arguments; check BSV_PAYMENT_DESCRIPTION")
            return payment_internal(
                "An internal error occurred while processing the payment for this request."
            ).to_response()

        failure = await self._verify_derivation_prefix(submission)
        if failure is not None:
            return failure.to_response()

        outcome = await self._settle(args, submission, price, context)
        if isinstance(outcome, PaymentFailure):
            return outcome.to_response()

        set_request_context(request, context.with_payment(outcome))

        response = await call_next(request)
        response.headers[X_BSV_PAYMENT_SATOSHIS_PAID_HEADER] = str(price)
        return response

    async def _issue_challenge(self, price: int) -> Response:
        try:
            derivation_prefix = await self.nonce_manager.create_nonce(self.wallet)
        except Exception:
            logger.exception("bsv-payment: Failed to create derivation prefix")
            return payment_internal(
                "An internal error occurred while creating the payment challenge for this request."
            ).to_response()

        challenge = PaymentChallenge(
            version=settings.BSV_PAYMENT_VERSION,
            satoshis_required=price,
            derivation_prefix=derivation_prefix,
        )
        logger.info(f"bsv-payment: No X-BSV-Payment header, returning 402 for {price} satoshis")
        return create_challenge_response(challenge)

    async def _verify_derivation_prefix(self, submission: PaymentSubmission) -> Optional[PaymentFailure]:
        try:
            valid = await self.nonce_manager.verify_nonce(submission.derivation_prefix, self.wallet)
        except Exception:
            logger.exception("bsv-payment: Derivation prefix verification raised")
            return invalid_derivation_prefix()

        if not valid:
            logger.warning("bsv-payment: Derivation prefix is unknown, reused or expired")
            return invalid_derivation_prefix()
        return None

    async def _settle(
        self,
        args: InternalizeActionArgs,
        submission: PaymentSubmission,
        price: int,
        context: RequestContext
    ) -> Union[PaymentOutcome, PaymentFailure]:
        try:
            raw_result = await call_collaborator(self.wallet.internalize_action, args)
            result = InternalizeActionResult.model_validate(raw_result)
        except WalletError as e:
            logger.warning(f"bsv-payment: Wallet rejected payment: {e.code or 'no code'} {e.description}")
            return payment_failed(e.code, e.description)
        except Exception:
            logger.exception("bsv-payment: Payment internalization failed")
            return payment_failed()

        logger.info(
            f"bsv-payment: Payment of {price} satoshis internalized "
            f"(accepted={result.accepted}) from {context.identity_key}"
        )
        return PaymentOutcome(
            satoshis_paid=price,
            accepted=result.accepted,
            tx=submission.transaction,
        )
