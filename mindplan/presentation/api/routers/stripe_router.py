"""Stripe webhook endpoint."""

import logging
from typing import Any, Dict

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request, status

from ....core.dependencies import get_stripe_service, get_subscription_service
from ....services.stripe_service import StripeNotConfiguredError, StripeService
from ....services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stripe", tags=["Stripe Payments"])


@router.post("/webhook", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    stripe_service: StripeService = Depends(get_stripe_service),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> Dict[str, Any]:
    """Handle Stripe webhook events."""
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    try:
        event = stripe_service.construct_event(payload, sig_header)
    except StripeNotConfiguredError as exc:
        logger.error("Webhook received but STRIPE_WEBHOOK_SECRET is not set")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error",
        ) from exc
    except (stripe.SignatureVerificationError, ValueError) as exc:
        logger.warning("Webhook signature verification failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Webhook Error: {exc}",
        ) from exc

    event_type = event.get("type", "")
    logger.info("Processing webhook event %s (%s)", event.get("id"), event_type)

    try:
        subscription_service.handle_event(event_type, event["data"]["object"])
    except Exception as exc:
        logger.exception("Error processing webhook event %s", event_type)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        ) from exc

    return {"received": True, "event": event_type}
