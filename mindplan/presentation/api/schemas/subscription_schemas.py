"""Pydantic schemas for subscription API endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CreateCheckoutSessionRequest(BaseModel):
    """Request schema for creating a checkout session."""

    price_id: Optional[str] = None
    with_trial: bool = True
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class CreateCheckoutSessionResponse(BaseModel):
    """Response schema for creating a checkout session."""

    session_id: str
    checkout_url: Optional[str]


class PortalSessionResponse(BaseModel):
    url: str


class SubscriptionStatusResponse(BaseModel):
    """Current plan and entitlement for the signed-in user."""

    plan_type: str
    status: str
    tier: str
    is_premium: bool
    trial_end: Optional[datetime]
    beta_end: Optional[datetime]
    trial_days_left: int
    beta_days_left: int
    current_period_end: Optional[datetime]


class GrantBetaRequest(BaseModel):
    user_id: int
    days: Optional[int] = Field(default=None, ge=1)


class BetaTesterResponse(BaseModel):
    subscription_id: int
    user_id: int
    beta_end: Optional[datetime]
    days_left: int
    created_at: Optional[datetime]


class SweepResponse(BaseModel):
    downgraded: int
