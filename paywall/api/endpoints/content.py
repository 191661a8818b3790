from fastapi import APIRouter, HTTPException, Request
import logging

from paywall.api.models.content import ContentResponse, PaymentSummary
from paywall.payment.middleware import get_request_context

logger = logging.getLogger(__name__)

router = APIRouter()

# Sample catalogue served by the paid routes
ARTICLES = {
    "welcome": "Every request to this service is settled in satoshis.",
    "premium": "Premium analysis, paid for one request at a time.",
}


def _payment_summary(request: Request) -> PaymentSummary:
    context = get_request_context(request)
    if context is None or context.payment is None:
        # Payment middleware not installed in front of this route
        logger.error("Content route reached without a payment outcome")
        raise HTTPException(status_code=500, detail="Payment state unavailable")
    return PaymentSummary(
        satoshisPaid=context.payment.satoshis_paid,
        accepted=context.payment.accepted,
    )


@router.get("/free", response_model=ContentResponse)
async def get_free_content(request: Request) -> ContentResponse:
    """
    Get a free content item.

    Returns:
        ContentResponse: The item with satoshisPaid=0
    """
    return ContentResponse(
        slug="free",
        body="This item is free of charge.",
        payment=_payment_summary(request),
    )


@router.get("/{slug}", response_model=ContentResponse)
async def get_content(slug: str, request: Request) -> ContentResponse:
    """
    Get a paid content item.

    Returns:
        ContentResponse: The item and the payment that unlocked it

    Raises:
        HTTPException: 404 if the item does not exist
    """
    body = ARTICLES.get(slug)
    if body is None:
        raise HTTPException(status_code=404, detail=f"Content '{slug}' not found")

    summary = _payment_summary(request)
    logger.info(f"Serving content '{slug}' ({summary.satoshisPaid} satoshis paid)")
    return ContentResponse(slug=slug, body=body, payment=summary)
