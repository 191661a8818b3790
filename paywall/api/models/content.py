from pydantic import BaseModel, Field
from typing import Optional


class PaymentSummary(BaseModel):
    """Payment details for the request that fetched the content."""
    satoshisPaid: int = Field(..., description="Satoshis paid for this request")
    accepted: Optional[bool] = Field(default=None, description="Whether the wallet accepted the payment")


class ContentResponse(BaseModel):
    """Response model for a content item."""
    slug: str = Field(..., description="Content identifier")
    body: str = Field(..., description="Content text")
    payment: PaymentSummary
