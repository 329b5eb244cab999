"""Subscription entitlement, lifecycle and Stripe mirroring."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from mindplan.domain.entitlement import (
    BETA_FIELD,
    TRIAL_FIELD,
    Entitlement,
    days_left,
    resolve_entitlement,
)
from mindplan.domain.models.subscription import PlanType, Subscription, SubscriptionStatus
from mindplan.domain.models.user import User
from mindplan.domain.ports.persistence import SubscriptionStore, UserStore
from mindplan.infrastructure.persistence.sqlite import utc_now
from mindplan.services.stripe_service import StripeNotConfiguredError, StripeService, as_dict

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# Field values written when a time-boxed tier runs out.
_EXPIRY_DOWNGRADES: Dict[str, Dict[str, Any]] = {
    TRIAL_FIELD: {
        "plan_type": PlanType.FREE,
        "status": SubscriptionStatus.ACTIVE,
        "trial_end": None,
    },
    BETA_FIELD: {
        "plan_type": PlanType.FREE,
        "status": SubscriptionStatus.ACTIVE,
        "beta_end": None,
        "is_beta_tester": False,
    },
}


class AlreadyPremiumError(ValueError):
    """Raised when a trial is requested by a user who already has premium access."""


def _from_timestamp(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        logger.warning("Ignoring malformed Stripe timestamp %r", value)
        return None


def _billing_period(provider_subscription: Mapping[str, Any]) -> Dict[str, Optional[datetime]]:
    """Period bounds live on the subscription in older API versions, on its items in newer ones."""
    start = provider_subscription.get("current_period_start")
    end = provider_subscription.get("current_period_end")
    if start is None or end is None:
        items = (provider_subscription.get("items") or {}).get("data") or []
        if items:
            start = start if start is not None else items[0].get("current_period_start")
            end = end if end is not None else items[0].get("current_period_end")
    period = {
        "current_period_start": _from_timestamp(start),
        "current_period_end": _from_timestamp(end),
    }
    return {field: value for field, value in period.items() if value is not None}


def _invoice_subscription_id(invoice: Mapping[str, Any]) -> Optional[str]:
    subscription_id = invoice.get("subscription")
    if subscription_id:
        return subscription_id if isinstance(subscription_id, str) else subscription_id.get("id")
    details = ((invoice.get("parent") or {}).get("subscription_details") or {})
    return details.get("subscription")


class SubscriptionAccess:
    """One user's subscription record for the duration of a request or session.

    The query methods are pure over the cached record and the clock; only
    :meth:`refresh` and :meth:`downgrade_if_expired` touch storage.
    """

    def __init__(
        self,
        user_id: int,
        repository: SubscriptionStore,
        clock: Clock = utc_now,
        subscription: Optional[Subscription] = None,
    ) -> None:
        self.user_id = user_id
        self._repository = repository
        self._clock = clock
        self._subscription = subscription

    @property
    def subscription(self) -> Optional[Subscription]:
        return self._subscription

    def refresh(self) -> Subscription:
        """Reload the user's most recent row, creating the free/active default on first use."""
        subscription = self._repository.get_latest_for_user(self.user_id)
        if subscription is None:
            logger.info("Creating default free subscription for user %s", self.user_id)
            subscription = self._repository.create(self.user_id, created_at=self._clock())
        self._subscription = subscription
        return subscription

    def entitlement(self) -> Entitlement:
        return resolve_entitlement(self._subscription, self._clock())

    def is_premium(self) -> bool:
        return self.entitlement().is_premium

    def trial_days_left(self) -> int:
        sub = self._subscription
        if sub is None or sub.status != SubscriptionStatus.TRIAL:
            return 0
        return days_left(sub, self._clock(), TRIAL_FIELD)

    def beta_days_left(self) -> int:
        sub = self._subscription
        if sub is None or sub.status != SubscriptionStatus.BETA:
            return 0
        return days_left(sub, self._clock(), BETA_FIELD)

    def downgrade_if_expired(self) -> bool:
        """Persist the free/active downgrade when the trial or beta period has ended.

        Returns True when a write was made. The cached record is replaced by the
        downgraded one, so a second call without a refresh never writes again.
        """
        entitlement = self.entitlement()
        if not entitlement.expired or self._subscription is None:
            return False

        changes = _EXPIRY_DOWNGRADES[entitlement.expired_field]
        subscription = self._subscription
        logger.info(
            "%s expired for user %s (subscription %s), converting to free",
            entitlement.expired_field.capitalize(),
            self.user_id,
            subscription.id,
        )
        updated = self._repository.update(subscription.id, **changes)
        if updated is None:
            for field, value in changes.items():
                setattr(subscription, field, value)
            updated = subscription
        self._subscription = updated
        return True


class SubscriptionService:
    """Service for managing user subscriptions."""

    def __init__(
        self,
        subscription_repository: SubscriptionStore,
        user_repository: UserStore,
        stripe_service: Optional[StripeService] = None,
        clock: Clock = utc_now,
        trial_days: int = 7,
        beta_days: int = 37,
    ):
        self.subscription_repository = subscription_repository
        self.user_repository = user_repository
        self.stripe_service = stripe_service
        self._clock = clock
        self.trial_days = trial_days
        self.beta_days = beta_days

    # Entitlement ---------------------------------------------------------
    def open(self, user_id: int) -> SubscriptionAccess:
        access = SubscriptionAccess(user_id, self.subscription_repository, self._clock)
        access.refresh()
        return access

    def is_premium(self, user_id: int) -> bool:
        """Entitlement check used to gate premium features; downgrades on expiry."""
        access = self.open(user_id)
        access.downgrade_if_expired()
        return access.is_premium()

    def start_trial(self, user_id: int) -> Subscription:
        """
        Start a premium trial for a user.

        Raises:
            AlreadyPremiumError: If the user already has premium access
        """
        access = self.open(user_id)
        access.downgrade_if_expired()
        if access.is_premium():
            raise AlreadyPremiumError("User already has premium access")

        trial_end = self._clock() + timedelta(days=self.trial_days)
        updated = self.subscription_repository.update(
            access.subscription.id,
            plan_type=PlanType.PREMIUM,
            status=SubscriptionStatus.TRIAL,
            trial_end=trial_end,
        )
        logger.info("Started %s-day trial for user %s", self.trial_days, user_id)
        return updated

    def grant_beta(self, user_id: int, days: Optional[int] = None) -> Subscription:
        """Give a user premium beta access for ``days`` (the configured beta length by default)."""
        length = days if days is not None else self.beta_days
        if length < 1:
            raise ValueError("Beta length must be at least one day")
        access = self.open(user_id)
        beta_end = self._clock() + timedelta(days=length)
        updated = self.subscription_repository.update(
            access.subscription.id,
            plan_type=PlanType.PREMIUM,
            status=SubscriptionStatus.BETA,
            beta_end=beta_end,
            is_beta_tester=True,
        )
        logger.info("User %s added as beta tester until %s", user_id, beta_end.isoformat())
        return updated

    def list_beta_testers(self) -> List[Subscription]:
        return self.subscription_repository.list_beta_testers()

    def beta_days_left(self, subscription: Subscription) -> int:
        return days_left(subscription, self._clock(), BETA_FIELD)

    def sweep_expired(self) -> int:
        """Downgrade every expired trial and beta row; returns how many were written."""
        downgraded = 0
        for subscription in self.subscription_repository.list_time_boxed():
            access = SubscriptionAccess(
                subscription.user_id, self.subscription_repository, self._clock, subscription
            )
            if access.downgrade_if_expired():
                downgraded += 1
        if downgraded:
            logger.info("Expiry sweep downgraded %s subscription(s)", downgraded)
        return downgraded

    # Checkout / portal ---------------------------------------------------
    def create_checkout_session(
        self,
        user: User,
        price_id: str,
        success_url: str,
        cancel_url: str,
        with_trial: bool = True,
    ) -> Dict[str, Any]:
        """
        Create a Stripe checkout session for the premium plan.

        Returns:
            Dict with ``session_id`` and ``checkout_url``

        Raises:
            ValueError: If the price is missing
            StripeNotConfiguredError: If Stripe keys are missing
            PaymentProviderError: If a Stripe API call fails
        """
        if not price_id:
            raise ValueError("Missing price_id")
        stripe_service = self._require_stripe()

        customer_id = stripe_service.ensure_customer(
            email=user.email,
            user_id=user.id,
            customer_id=user.stripe_customer_id,
        )
        if customer_id != user.stripe_customer_id:
            self.user_repository.set_stripe_customer_id(user.id, customer_id)
            user.stripe_customer_id = customer_id

        return stripe_service.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            user_id=user.id,
            success_url=success_url,
            cancel_url=cancel_url,
            trial_days=self.trial_days if with_trial else None,
        )

    def create_portal_session(self, user: User, return_url: str) -> str:
        """
        Raises:
            ValueError: If the user never went through checkout
        """
        if not user.stripe_customer_id:
            raise ValueError(
                "No Stripe customer found. Subscribe first to access the billing portal."
            )
        return self._require_stripe().create_portal_session(user.stripe_customer_id, return_url)

    def _require_stripe(self) -> StripeService:
        if self.stripe_service is None:
            raise StripeNotConfiguredError("Stripe service is not available.")
        return self.stripe_service

    # Webhook mirroring ---------------------------------------------------
    def handle_event(self, event_type: str, data: Mapping[str, Any]) -> bool:
        """Dispatch a verified Stripe event; returns False for event types we ignore."""
        handler = {
            "checkout.session.completed": self.handle_checkout_completed,
            "customer.subscription.updated": self.handle_subscription_updated,
            "customer.subscription.deleted": self.handle_subscription_deleted,
            "invoice.payment_succeeded": self.handle_payment_succeeded,
            "invoice.payment_failed": self.handle_payment_failed,
        }.get(event_type)
        if handler is None:
            logger.info("Unhandled Stripe event type: %s", event_type)
            return False
        handler(as_dict(data))
        return True

    def handle_checkout_completed(self, session: Mapping[str, Any]) -> None:
        """Upsert the user's row as premium once Checkout completes."""
        metadata = session.get("metadata") or {}
        raw_user_id = metadata.get("user_id")
        subscription_id = session.get("subscription")

        if not raw_user_id or not subscription_id:
            logger.error(
                "Missing user_id or subscription in checkout session %s (user_id=%s, subscription=%s)",
                session.get("id"),
                raw_user_id,
                subscription_id,
            )
            return
        try:
            user_id = int(raw_user_id)
        except (TypeError, ValueError):
            logger.error("Checkout session %s has non-numeric user_id %r", session.get("id"), raw_user_id)
            return

        provider_subscription = self._require_stripe().retrieve_subscription(subscription_id)
        status = self._mirror_status(provider_subscription.get("status")) or SubscriptionStatus.ACTIVE

        fields: Dict[str, Any] = {
            "plan_type": PlanType.PREMIUM,
            "status": status,
            "stripe_customer_id": session.get("customer") or provider_subscription.get("customer"),
            "stripe_subscription_id": subscription_id,
            "trial_end": (
                _from_timestamp(provider_subscription.get("trial_end"))
                if status == SubscriptionStatus.TRIAL
                else None
            ),
            **_billing_period(provider_subscription),
        }

        existing = self.subscription_repository.get_latest_for_user(user_id)
        if existing is None:
            self.subscription_repository.create(user_id, created_at=self._clock(), **fields)
        else:
            self.subscription_repository.update(existing.id, **fields)
        logger.info("Subscription %s recorded for user %s (%s)", subscription_id, user_id, status.value)

    def handle_subscription_updated(self, provider_subscription: Mapping[str, Any]) -> None:
        subscription_id = provider_subscription.get("id")
        if not subscription_id:
            logger.error("Missing id in subscription.updated payload")
            return

        status = self._mirror_status(provider_subscription.get("status"))
        if status is None:
            return

        fields: Dict[str, Any] = {"status": status, **_billing_period(provider_subscription)}
        if status != SubscriptionStatus.CANCELLED:
            fields["plan_type"] = PlanType.PREMIUM
        if status == SubscriptionStatus.TRIAL:
            fields["trial_end"] = _from_timestamp(provider_subscription.get("trial_end"))

        self._update_mirrored(subscription_id, provider_subscription, **fields)

    def handle_subscription_deleted(self, provider_subscription: Mapping[str, Any]) -> None:
        subscription_id = provider_subscription.get("id")
        if not subscription_id:
            logger.error("Missing id in subscription.deleted payload")
            return
        self._update_mirrored(
            subscription_id, provider_subscription, status=SubscriptionStatus.CANCELLED
        )

    def handle_payment_succeeded(self, invoice: Mapping[str, Any]) -> None:
        subscription_id = _invoice_subscription_id(invoice)
        if not subscription_id:
            logger.error("Missing subscription in invoice %s", invoice.get("id"))
            return
        self._update_mirrored(
            subscription_id,
            invoice,
            plan_type=PlanType.PREMIUM,
            status=SubscriptionStatus.ACTIVE,
        )

    def handle_payment_failed(self, invoice: Mapping[str, Any]) -> None:
        subscription_id = _invoice_subscription_id(invoice)
        if not subscription_id:
            logger.error("Missing subscription in invoice %s", invoice.get("id"))
            return
        self._update_mirrored(subscription_id, invoice, status=SubscriptionStatus.PAST_DUE)

    def _update_mirrored(
        self, subscription_id: str, source: Mapping[str, Any], **fields: Any
    ) -> None:
        updated = self.subscription_repository.update_by_stripe_subscription_id(
            subscription_id, **fields
        )
        user_id = (source.get("metadata") or {}).get("user_id")
        if not updated:
            logger.warning(
                "No local subscription for Stripe subscription %s (user_id=%s)",
                subscription_id,
                user_id,
            )
            return
        logger.info(
            "Stripe subscription %s now %s (user_id=%s)",
            subscription_id,
            fields["status"].value,
            user_id,
        )

    @staticmethod
    def _mirror_status(value: Optional[str]) -> Optional[SubscriptionStatus]:
        try:
            return SubscriptionStatus.from_provider(value)
        except ValueError:
            logger.error("Cannot map Stripe subscription status %r", value)
            return None
