"""Premium entitlement rules derived from a subscription record and the current time.

Everything here is pure: the functions never touch storage. When a time-boxed
tier (trial or beta) has run out, the returned :class:`Entitlement` carries
``expired=True`` and the caller is responsible for persisting the downgrade.
A trial or beta end that is present but unreadable counts as already passed.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from .models.subscription import PlanType, Subscription, SubscriptionStatus

logger = logging.getLogger(__name__)

TRIAL_LENGTH = timedelta(days=7)
TRIAL_FIELD = "trial"
BETA_FIELD = "beta"

_SECONDS_PER_DAY = 24 * 60 * 60


class EntitlementTier(str, Enum):
    FREE = "free"
    PREMIUM_ACTIVE = "premium_active"
    PREMIUM_TRIAL = "premium_trial"
    PREMIUM_BETA = "premium_beta"
    PREMIUM_PAYMENT_ISSUE = "premium_payment_issue"


@dataclass(frozen=True)
class Entitlement:
    tier: EntitlementTier
    is_premium: bool
    expired: bool = False
    expired_field: Optional[str] = None
    days_left: int = 0


_FREE = Entitlement(tier=EntitlementTier.FREE, is_premium=False)


def _as_utc(value: object) -> Optional[datetime]:
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _is_malformed(subscription: Subscription, attribute: str) -> bool:
    if attribute in subscription.invalid_timestamps:
        return True
    value = getattr(subscription, attribute)
    return value is not None and not isinstance(value, datetime)


def trial_end_for(subscription: Optional[Subscription]) -> Optional[datetime]:
    """Return the stored trial end, or seven days after creation when unset.

    Returns None when the stored value is unreadable or nothing is known.
    """
    if subscription is None:
        return None
    if _is_malformed(subscription, "trial_end"):
        return None
    stored = _as_utc(subscription.trial_end)
    if stored is not None:
        return stored
    created_at = _as_utc(subscription.created_at)
    if created_at is None:
        return None
    return created_at + TRIAL_LENGTH


def _end_for_field(subscription: Subscription, field: str) -> Optional[datetime]:
    if field == TRIAL_FIELD:
        return trial_end_for(subscription)
    if field == BETA_FIELD:
        return _as_utc(subscription.beta_end)
    raise ValueError(f"Unknown time-boxed field: {field!r}")


def days_left(subscription: Optional[Subscription], now: datetime, field: str) -> int:
    """Whole days (rounded up) until the trial or beta period ends, never negative."""
    if subscription is None:
        return 0
    end = _end_for_field(subscription, field)
    current = _as_utc(now)
    if end is None or current is None:
        return 0
    remaining = (end - current).total_seconds() / _SECONDS_PER_DAY
    return max(0, math.ceil(remaining))


def resolve_entitlement(subscription: Optional[Subscription], now: datetime) -> Entitlement:
    if subscription is None or subscription.plan_type == PlanType.FREE:
        return _FREE

    current = _as_utc(now)
    status = subscription.status

    if status == SubscriptionStatus.ACTIVE:
        return Entitlement(tier=EntitlementTier.PREMIUM_ACTIVE, is_premium=True)

    if status == SubscriptionStatus.BETA:
        beta_end = _as_utc(subscription.beta_end)
        malformed = _is_malformed(subscription, "beta_end")
        if malformed or (beta_end is not None and (current is None or current > beta_end)):
            return Entitlement(
                tier=EntitlementTier.FREE,
                is_premium=False,
                expired=True,
                expired_field=BETA_FIELD,
            )
        return Entitlement(
            tier=EntitlementTier.PREMIUM_BETA,
            is_premium=True,
            days_left=days_left(subscription, now, BETA_FIELD),
        )

    if status == SubscriptionStatus.TRIAL:
        trial_end = trial_end_for(subscription)
        if trial_end is None or current is None or current > trial_end:
            return Entitlement(
                tier=EntitlementTier.FREE,
                is_premium=False,
                expired=True,
                expired_field=TRIAL_FIELD,
            )
        return Entitlement(
            tier=EntitlementTier.PREMIUM_TRIAL,
            is_premium=True,
            days_left=days_left(subscription, now, TRIAL_FIELD),
        )

    if status in (SubscriptionStatus.PAST_DUE, SubscriptionStatus.UNPAID):
        # Grace period: billing problems keep access until Stripe cancels.
        return Entitlement(tier=EntitlementTier.PREMIUM_PAYMENT_ISSUE, is_premium=True)

    if status == SubscriptionStatus.CANCELLED:
        return _FREE

    logger.warning("Unrecognised subscription status %r on subscription %s", status, subscription.id)
    return _FREE


def is_premium(subscription: Optional[Subscription], now: datetime) -> bool:
    return resolve_entitlement(subscription, now).is_premium
