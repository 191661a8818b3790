"""
Error codes and failure results for the payment middleware.

Each stage of the payment flow returns either its success value or a
PaymentFailure. The middleware checks for a failure after every stage and
returns its response immediately, so exactly one error code is emitted per
failed request.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from starlette.responses import JSONResponse


class ErrorCode(str, Enum):
    """Error codes sent in the `code` field of the JSON error envelope."""
    SERVER_MISCONFIGURED = "ERR_SERVER_MISCONFIGURED"
    PAYMENT_INTERNAL = "ERR_PAYMENT_INTERNAL"
    PAYMENT_REQUIRED = "ERR_PAYMENT_REQUIRED"
    MALFORMED_PAYMENT = "ERR_MALFORMED_PAYMENT"
    INVALID_DERIVATION_PREFIX = "ERR_INVALID_DERIVATION_PREFIX"
    PAYMENT_FAILED = "ERR_PAYMENT_FAILED"
    UNAUTHORIZED = "ERR_UNAUTHORIZED"


@dataclass(frozen=True)
class PaymentFailure:
    """A terminal failure of one payment stage."""
    code: str
    status_code: int
    description: str
    extra: Dict[str, Any] = field(default_factory=dict)
    headers: Optional[Dict[str, str]] = None

    def to_body(self) -> Dict[str, Any]:
        """Build the JSON error envelope."""
        body: Dict[str, Any] = {"status": "error", "code": self.code}
        body.update(self.extra)
        body["description"] = self.description
        return body

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content=self.to_body(),
            headers=self.headers,
        )


class WalletError(Exception):
    """
    Raised by wallet collaborators when an operation is rejected.

    The code and description are meant for the paying client and are passed
    through in the 400 response when internalization fails.
    """

    def __init__(self, description: str, code: Optional[str] = None):
        super().__init__(description)
        self.description = description
        self.code = code


def server_misconfigured() -> PaymentFailure:
    return PaymentFailure(
        code=ErrorCode.SERVER_MISCONFIGURED.value,
        status_code=500,
        description="The payment middleware must be executed after the Auth middleware.",
    )


def payment_internal(description: str) -> PaymentFailure:
    return PaymentFailure(
        code=ErrorCode.PAYMENT_INTERNAL.value,
        status_code=500,
        description=description,
    )


def malformed_payment() -> PaymentFailure:
    return PaymentFailure(
        code=ErrorCode.MALFORMED_PAYMENT.value,
        status_code=400,
        description="The X-BSV-Payment header is not valid JSON.",
    )


def invalid_derivation_prefix() -> PaymentFailure:
    return PaymentFailure(
        code=ErrorCode.INVALID_DERIVATION_PREFIX.value,
        status_code=400,
        description="The X-BSV-Payment-Derivation-Prefix header is not valid.",
    )


def payment_failed(code: Optional[str] = None, description: Optional[str] = None) -> PaymentFailure:
    return PaymentFailure(
        code=code or ErrorCode.PAYMENT_FAILED.value,
        status_code=400,
        description=description or "Payment failed.",
    )


def unauthorized(description: str) -> PaymentFailure:
    return PaymentFailure(
        code=ErrorCode.UNAUTHORIZED.value,
        status_code=401,
        description=description,
    )
