"""
Data models for the BSV payment flow.

Header and wallet payloads use camelCase on the wire; the models expose
snake_case attributes and accept either form on input.
"""
import base64
import binascii
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

WALLET_PAYMENT_PROTOCOL = "wallet payment"


class PaymentChallenge(BaseModel):
    """Payment terms sent to the client with a 402 response."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    version: str
    satoshis_required: int = Field(..., gt=0, alias="satoshisRequired")
    derivation_prefix: str = Field(..., min_length=1, alias="derivationPrefix")


class PaymentSubmission(BaseModel):
    """Contents of the X-BSV-Payment request header."""
    model_config = ConfigDict(populate_by_name=True, strict=True)

    transaction: str = Field(..., description="Base64-encoded atomic BEEF transaction")
    derivation_prefix: str = Field(..., alias="derivationPrefix")
    derivation_suffix: str = Field(..., alias="derivationSuffix")

    @field_validator("transaction")
    @classmethod
    def transaction_must_be_base64(cls, value: str) -> str:
        try:
            decoded = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("transaction must be base64-encoded")
        if not decoded:
            raise ValueError("transaction must not be empty")
        return value

    @property
    def transaction_bytes(self) -> bytes:
        return base64.b64decode(self.transaction)


class PaymentOutcome(BaseModel):
    """
    Result of the payment step, attached to the request context.

    satoshis_paid is the price computed for the request, not a value read
    from the transaction. It is 0 when the request was free, in which case
    accepted and tx are None.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    satoshis_paid: int = Field(..., ge=0, alias="satoshisPaid")
    accepted: Optional[bool] = None
    tx: Optional[str] = None


class RequestContext(BaseModel):
    """Per-request identity and payment state shared between middlewares and handlers."""
    model_config = ConfigDict(frozen=True)

    identity_key: str
    payment: Optional[PaymentOutcome] = None

    def with_payment(self, outcome: PaymentOutcome) -> "RequestContext":
        """Return a copy carrying the payment outcome. A payment attaches only once."""
        if self.payment is not None:
            raise ValueError("A payment outcome is already attached to this request")
        return self.model_copy(update={"payment": outcome})


class PaymentRemittance(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    derivation_prefix: str = Field(..., alias="derivationPrefix")
    derivation_suffix: str = Field(..., alias="derivationSuffix")
    sender_identity_key: str = Field(..., alias="senderIdentityKey")


class InternalizeOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    output_index: int = Field(0, ge=0, alias="outputIndex")
    protocol: str = WALLET_PAYMENT_PROTOCOL
    payment_remittance: PaymentRemittance = Field(..., alias="paymentRemittance")


class InternalizeActionArgs(BaseModel):
    """Arguments for the wallet's internalizeAction call."""
    model_config = ConfigDict(populate_by_name=True)

    tx: bytes
    outputs: List[InternalizeOutput]
    description: str = Field(..., min_length=5, max_length=50)

    @field_serializer("tx")
    def serialize_tx(self, tx: bytes) -> List[int]:
        # BRC-100 JSON carries binary as an array of byte values
        return list(tx)


class InternalizeActionResult(BaseModel):
    accepted: bool
