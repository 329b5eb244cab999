"""Subscription domain model mirroring a user's plan and Stripe billing state."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Iterable, Optional


class PlanType(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    TRIAL = "trial"
    BETA = "beta"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"
    CANCELLED = "cancelled"

    @classmethod
    def from_provider(cls, value: Optional[str]) -> "SubscriptionStatus":
        """Map a Stripe (or legacy) status string onto the local status set.

        Raises:
            ValueError: If the value has no local counterpart
        """
        if not value:
            raise ValueError("Subscription status is empty")
        normalized = value.strip().lower()
        aliased = _PROVIDER_STATUS_ALIASES.get(normalized, normalized)
        return cls(aliased)


_PROVIDER_STATUS_ALIASES = {
    "trialing": "trial",
    "canceled": "cancelled",
    "incomplete_expired": "cancelled",
    "expired": "cancelled",
    "incomplete": "past_due",
}


class Subscription:
    """
    Subscription entity, one logical row per user.

    Attributes:
        id: Unique identifier
        user_id: Reference to User
        plan_type: free or premium
        status: Lifecycle status within the plan
        trial_end: End of the free trial (derived from created_at when absent)
        beta_end: End of the beta tester period, if any
        is_beta_tester: Whether the user was granted beta access
        stripe_customer_id: Stripe customer ID
        stripe_subscription_id: Stripe subscription ID
        current_period_start: Start of current billing period
        current_period_end: End of current billing period
        created_at: Subscription creation timestamp
        updated_at: Last update timestamp
        invalid_timestamps: Names of stored timestamp fields that could not be parsed
    """

    def __init__(
        self,
        id: int,
        user_id: int,
        plan_type: PlanType = PlanType.FREE,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        trial_end: Optional[datetime] = None,
        beta_end: Optional[datetime] = None,
        is_beta_tester: bool = False,
        stripe_customer_id: Optional[str] = None,
        stripe_subscription_id: Optional[str] = None,
        current_period_start: Optional[datetime] = None,
        current_period_end: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        invalid_timestamps: Iterable[str] = (),
    ):
        self.id = id
        self.user_id = user_id
        self.plan_type = plan_type
        self.status = status
        self.trial_end = trial_end
        self.beta_end = beta_end
        self.is_beta_tester = is_beta_tester
        self.stripe_customer_id = stripe_customer_id
        self.stripe_subscription_id = stripe_subscription_id
        self.current_period_start = current_period_start
        self.current_period_end = current_period_end
        self.created_at = created_at
        self.updated_at = updated_at
        self.invalid_timestamps = frozenset(invalid_timestamps)

    def __repr__(self) -> str:
        return (
            f"<Subscription id={self.id} user_id={self.user_id} "
            f"plan={self.plan_type.value} status={self.status.value}>"
        )
