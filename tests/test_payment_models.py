"""
Unit tests for payment models and error envelopes.
"""
import json
import pytest
from base64 import b64encode

from pydantic import ValidationError

from paywall.payment.errors import (
    ErrorCode,
    PaymentFailure,
    WalletError,
    invalid_derivation_prefix,
    malformed_payment,
    payment_failed,
    server_misconfigured,
)
from paywall.payment.models import (
    InternalizeActionArgs,
    InternalizeOutput,
    PaymentChallenge,
    PaymentOutcome,
    PaymentRemittance,
    PaymentSubmission,
    RequestContext,
)

IDENTITY_KEY = "02" + "ab" * 32


class TestPaymentSubmission:
    """Test X-BSV-Payment header contents."""

    def test_from_camel_case_json(self):
        raw = json.dumps({
            "transaction": b64encode(b"tx").decode(),
            "derivationPrefix": "prefix",
            "derivationSuffix": "suffix",
        })
        submission = PaymentSubmission.model_validate_json(raw)

        assert submission.transaction_bytes == b"tx"
        assert submission.derivation_prefix == "prefix"
        assert submission.derivation_suffix == "suffix"

    def test_extra_fields_ignored(self):
        raw = json.dumps({
            "transaction": b64encode(b"tx").decode(),
            "derivationPrefix": "prefix",
            "derivationSuffix": "suffix",
            "memo": "thanks",
        })
        assert PaymentSubmission.model_validate_json(raw).derivation_suffix == "suffix"

    def test_empty_transaction_rejected(self):
        raw = json.dumps({"transaction": "", "derivationPrefix": "p", "derivationSuffix": "s"})
        with pytest.raises(ValidationError):
            PaymentSubmission.model_validate_json(raw)

    def test_strict_types(self):
        raw = json.dumps({"transaction": b64encode(b"tx").decode(), "derivationPrefix": "p", "derivationSuffix": 7})
        with pytest.raises(ValidationError):
            PaymentSubmission.model_validate_json(raw)


class TestPaymentChallenge:
    """Test challenge validation."""

    def test_zero_price_challenge_rejected(self):
        """A challenge is never built for a zero price."""
        with pytest.raises(ValidationError):
            PaymentChallenge(version="1.0", satoshis_required=0, derivation_prefix="abc")

    def test_empty_prefix_rejected(self):
        with pytest.raises(ValidationError):
            PaymentChallenge(version="1.0", satoshis_required=10, derivation_prefix="")


class TestPaymentOutcome:
    """Test payment outcomes."""

    def test_free_outcome(self):
        outcome = PaymentOutcome(satoshis_paid=0)
        assert outcome.model_dump(by_alias=True) == {"satoshisPaid": 0, "accepted": None, "tx": None}

    def test_outcome_is_immutable(self):
        outcome = PaymentOutcome(satoshis_paid=100, accepted=True, tx="dHg=")
        with pytest.raises(ValidationError):
            outcome.satoshis_paid = 0

    def test_negative_rejected(self):
        with pytest.raises(ValidationError):
            PaymentOutcome(satoshis_paid=-1)


class TestRequestContext:
    """Test the per-request context."""

    def test_with_payment_returns_copy(self):
        context = RequestContext(identity_key=IDENTITY_KEY)
        paid = context.with_payment(PaymentOutcome(satoshis_paid=10, accepted=True, tx="dHg="))

        assert context.payment is None
        assert paid.payment.satoshis_paid == 10
        assert paid.identity_key == IDENTITY_KEY

    def test_payment_attached_once(self):
        context = RequestContext(identity_key=IDENTITY_KEY).with_payment(PaymentOutcome(satoshis_paid=0))
        with pytest.raises(ValueError, match="already attached"):
            context.with_payment(PaymentOutcome(satoshis_paid=5))


class TestInternalizeActionArgs:
    """Test the wallet payload."""

    def test_serialized_by_alias(self):
        args = InternalizeActionArgs(
            tx=b"\x01\x02\xff",
            outputs=[
                InternalizeOutput(
                    payment_remittance=PaymentRemittance(
                        derivation_prefix="p",
                        derivation_suffix="s",
                        sender_identity_key=IDENTITY_KEY,
                    )
                )
            ],
            description="Payment for request",
        )

        assert args.model_dump(by_alias=True) == {
            "tx": [1, 2, 255],
            "outputs": [{
                "outputIndex": 0,
                "protocol": "wallet payment",
                "paymentRemittance": {
                    "derivationPrefix": "p",
                    "derivationSuffix": "s",
                    "senderIdentityKey": IDENTITY_KEY,
                },
            }],
            "description": "Payment for request",
        }

    def test_description_length(self):
        with pytest.raises(ValidationError):
            InternalizeActionArgs(tx=b"\x01", outputs=[], description="pay")


class TestErrors:
    """Test error envelopes."""

    def test_error_codes(self):
        assert ErrorCode.SERVER_MISCONFIGURED.value == "ERR_SERVER_MISCONFIGURED"
        assert ErrorCode.PAYMENT_INTERNAL.value == "ERR_PAYMENT_INTERNAL"
        assert ErrorCode.PAYMENT_REQUIRED.value == "ERR_PAYMENT_REQUIRED"
        assert ErrorCode.MALFORMED_PAYMENT.value == "ERR_MALFORMED_PAYMENT"
        assert ErrorCode.INVALID_DERIVATION_PREFIX.value == "ERR_INVALID_DERIVATION_PREFIX"
        assert ErrorCode.PAYMENT_FAILED.value == "ERR_PAYMENT_FAILED"

    def test_failure_statuses(self):
        assert server_misconfigured().status_code == 500
        assert malformed_payment().status_code == 400
        assert invalid_derivation_prefix().status_code == 400
        assert payment_failed().status_code == 400

    def test_payment_failed_defaults(self):
        failure = payment_failed()
        assert failure.code == "ERR_PAYMENT_FAILED"
        assert failure.description == "Payment failed."

    def test_payment_failed_with_wallet_code(self):
        failure = payment_failed("ERR_INSUFFICIENT_OUTPUT", "Output too small")
        assert failure.code == "ERR_INSUFFICIENT_OUTPUT"
        assert failure.description == "Output too small"

    def test_to_response(self):
        failure = PaymentFailure(
            code="ERR_PAYMENT_REQUIRED",
            status_code=402,
            description="Pay up",
            extra={"satoshisRequired": 5},
            headers={"x-test": "1"},
        )
        response = failure.to_response()

        assert response.status_code == 402
        assert response.headers["x-test"] == "1"
        assert json.loads(response.body.decode()) == {
            "status": "error",
            "code": "ERR_PAYMENT_REQUIRED",
            "satoshisRequired": 5,
            "description": "Pay up",
        }

    def test_wallet_error(self):
        error = WalletError("Transaction invalid", code="ERR_INVALID_TX")
        assert str(error) == "Transaction invalid"
        assert error.code == "ERR_INVALID_TX"
        assert WalletError("oops").code is None
