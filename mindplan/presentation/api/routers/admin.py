"""Admin endpoints for beta testers and subscription maintenance."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ..dependencies import require_admin_user
from ..schemas.subscription_schemas import (
    BetaTesterResponse,
    GrantBetaRequest,
    SubscriptionStatusResponse,
    SweepResponse,
)
from ....core.dependencies import get_subscription_service, get_user_service
from ....domain.models.user import User
from ....services.subscription_service import SubscriptionService
from ....services.user_service import UserService
from .user_subscription_router import subscription_status_response

router = APIRouter(prefix="/api/admin", tags=["Admin"])


@router.post("/beta-testers", response_model=SubscriptionStatusResponse, status_code=status.HTTP_201_CREATED)
async def add_beta_tester(
    payload: GrantBetaRequest,
    _: User = Depends(require_admin_user),
    user_service: UserService = Depends(get_user_service),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionStatusResponse:
    if user_service.get_by_id(payload.user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    try:
        subscription_service.grant_beta(payload.user_id, days=payload.days)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return subscription_status_response(subscription_service.open(payload.user_id))


@router.get("/beta-testers", response_model=List[BetaTesterResponse])
async def list_beta_testers(
    _: User = Depends(require_admin_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> List[BetaTesterResponse]:
    return [
        BetaTesterResponse(
            subscription_id=sub.id,
            user_id=sub.user_id,
            beta_end=sub.beta_end,
            days_left=subscription_service.beta_days_left(sub),
            created_at=sub.created_at,
        )
        for sub in subscription_service.list_beta_testers()
    ]


@router.post("/subscriptions/sweep", response_model=SweepResponse)
async def sweep_expired_subscriptions(
    _: User = Depends(require_admin_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> SweepResponse:
    """Downgrade every trial or beta subscription whose period has ended."""
    return SweepResponse(downgraded=subscription_service.sweep_expired())
