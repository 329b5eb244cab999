"""API router for the signed-in user's subscription."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from mindplan.core.config import Settings
from mindplan.core.dependencies import get_settings, get_subscription_service
from mindplan.domain.models.user import User
from mindplan.presentation.api.dependencies import get_current_user
from mindplan.presentation.api.schemas.subscription_schemas import (
    CreateCheckoutSessionRequest,
    CreateCheckoutSessionResponse,
    PortalSessionResponse,
    SubscriptionStatusResponse,
)
from mindplan.services.stripe_service import PaymentProviderError, StripeNotConfiguredError
from mindplan.services.subscription_service import (
    AlreadyPremiumError,
    SubscriptionAccess,
    SubscriptionService,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscription", tags=["subscription"])


def subscription_status_response(access: SubscriptionAccess) -> SubscriptionStatusResponse:
    subscription = access.subscription
    entitlement = access.entitlement()
    return SubscriptionStatusResponse(
        plan_type=subscription.plan_type.value,
        status=subscription.status.value,
        tier=entitlement.tier.value,
        is_premium=entitlement.is_premium,
        trial_end=subscription.trial_end,
        beta_end=subscription.beta_end,
        trial_days_left=access.trial_days_left(),
        beta_days_left=access.beta_days_left(),
        current_period_end=subscription.current_period_end,
    )


@router.get("/status", response_model=SubscriptionStatusResponse)
async def get_subscription_status(
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionStatusResponse:
    """Current plan and entitlement; an expired trial or beta is downgraded here."""
    access = subscription_service.open(user.id)
    access.downgrade_if_expired()
    return subscription_status_response(access)


@router.post("/trial", response_model=SubscriptionStatusResponse)
async def start_trial(
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionStatusResponse:
    """Start the free premium trial."""
    try:
        subscription_service.start_trial(user.id)
    except AlreadyPremiumError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    return subscription_status_response(subscription_service.open(user.id))


@router.post("/checkout", response_model=CreateCheckoutSessionResponse)
async def create_checkout_session(
    request: CreateCheckoutSessionRequest,
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
    settings: Settings = Depends(get_settings),
) -> CreateCheckoutSessionResponse:
    """Create a Stripe checkout session for the premium subscription."""
    base_url = settings.frontend_base_url
    try:
        session = subscription_service.create_checkout_session(
            user=user,
            price_id=request.price_id or settings.stripe_price_premium_monthly or "",
            success_url=request.success_url or f"{base_url}/dashboard?payment=success",
            cancel_url=request.cancel_url or f"{base_url}/dashboard?payment=cancelled",
            with_trial=request.with_trial,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except StripeNotConfiguredError as e:
        logger.error("Checkout requested but Stripe is not configured: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe configuration error",
        ) from e
    except PaymentProviderError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to create checkout session",
        ) from e

    return CreateCheckoutSessionResponse(**session)


@router.post("/portal", response_model=PortalSessionResponse)
async def create_portal_session(
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
    settings: Settings = Depends(get_settings),
) -> PortalSessionResponse:
    """Create a Stripe customer portal session for managing the subscription."""
    try:
        url = subscription_service.create_portal_session(
            user, return_url=f"{settings.frontend_base_url}/dashboard"
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except StripeNotConfiguredError as e:
        logger.error("Portal requested but Stripe is not configured: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe configuration error",
        ) from e
    except PaymentProviderError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to create portal session",
        ) from e

    return PortalSessionResponse(url=url)
