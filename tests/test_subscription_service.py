"""
Tests for subscription lifecycle, expiry downgrades and Stripe event mirroring
"""
from datetime import datetime, timedelta, timezone

import pytest

from mindplan.domain.models.subscription import PlanType, SubscriptionStatus
from mindplan.infrastructure.persistence.sqlite import connect
from mindplan.infrastructure.repositories.subscription_repository import SubscriptionRepository
from mindplan.services.stripe_service import StripeNotConfiguredError
from mindplan.services.subscription_service import (
    AlreadyPremiumError,
    SubscriptionAccess,
    SubscriptionService,
)


class CountingSubscriptionRepository(SubscriptionRepository):
    def __init__(self, db_path):
        super().__init__(db_path)
        self.updates = 0

    def update(self, subscription_id, **fields):
        self.updates += 1
        return super().update(subscription_id, **fields)


def _timestamp(value: datetime) -> int:
    return int(value.timestamp())


def test_open_creates_free_default(subscription_service, subscription_repository, user):
    access = subscription_service.open(user.id)

    assert access.subscription.plan_type == PlanType.FREE
    assert access.subscription.status == SubscriptionStatus.ACTIVE
    assert access.is_premium() is False

    # Opening again reuses the same row.
    assert subscription_service.open(user.id).subscription.id == access.subscription.id


def test_expired_trial_downgrades_once(db_path, clock, user):
    repository = CountingSubscriptionRepository(db_path)
    repository.create(
        user.id,
        created_at=clock() - timedelta(days=8),
        plan_type=PlanType.PREMIUM,
        status=SubscriptionStatus.TRIAL,
        trial_end=clock() - timedelta(seconds=1),
    )
    access = SubscriptionAccess(user.id, repository, clock)
    access.refresh()

    assert access.is_premium() is False
    assert access.is_premium() is False
    assert repository.updates == 0

    assert access.downgrade_if_expired() is True
    assert access.downgrade_if_expired() is False
    assert repository.updates == 1

    stored = repository.get_latest_for_user(user.id)
    assert stored.plan_type == PlanType.FREE
    assert stored.status == SubscriptionStatus.ACTIVE
    assert stored.trial_end is None


def test_expired_beta_clears_beta_fields(subscription_service, subscription_repository, clock, user):
    subscription_service.grant_beta(user.id, days=3)
    clock.advance(days=3, seconds=1)

    assert subscription_service.is_premium(user.id) is False

    stored = subscription_repository.get_latest_for_user(user.id)
    assert stored.plan_type == PlanType.FREE
    assert stored.status == SubscriptionStatus.ACTIVE
    assert stored.beta_end is None
    assert stored.is_beta_tester is False


def test_start_trial(subscription_service, clock, user):
    subscription = subscription_service.start_trial(user.id)

    assert subscription.plan_type == PlanType.PREMIUM
    assert subscription.status == SubscriptionStatus.TRIAL
    assert subscription.trial_end == clock() + timedelta(days=7)
    assert subscription_service.open(user.id).trial_days_left() == 7


def test_start_trial_rejects_premium_users(subscription_service, user):
    subscription_service.start_trial(user.id)

    with pytest.raises(AlreadyPremiumError):
        subscription_service.start_trial(user.id)


def test_grant_beta_defaults_to_configured_length(subscription_service, clock, user):
    subscription = subscription_service.grant_beta(user.id)

    assert subscription.status == SubscriptionStatus.BETA
    assert subscription.is_beta_tester is True
    assert subscription.beta_end == clock() + timedelta(days=37)
    assert [s.user_id for s in subscription_service.list_beta_testers()] == [user.id]
    assert subscription_service.beta_days_left(subscription) == 37


def test_grant_beta_rejects_non_positive_length(subscription_service, user):
    with pytest.raises(ValueError):
        subscription_service.grant_beta(user.id, days=0)


def test_sweep_downgrades_only_expired(subscription_service, subscription_repository, user_repository, clock):
    expired_user = user_repository.create(email="old@mindplan.io", password_hash="x")
    current_user = user_repository.create(email="new@mindplan.io", password_hash="x")
    subscription_service.start_trial(expired_user.id)
    clock.advance(days=5)
    subscription_service.start_trial(current_user.id)
    clock.advance(days=3)

    assert subscription_service.sweep_expired() == 1
    assert subscription_service.sweep_expired() == 0

    assert subscription_repository.get_latest_for_user(expired_user.id).plan_type == PlanType.FREE
    assert subscription_repository.get_latest_for_user(current_user.id).status == SubscriptionStatus.TRIAL


def test_checkout_completed_upserts_premium(subscription_service, subscription_repository, fake_stripe, clock, user):
    subscription_service.open(user.id)
    period_end = clock() + timedelta(days=30)
    fake_stripe.subscriptions["sub_123"] = {
        "id": "sub_123",
        "status": "active",
        "customer": "cus_abc",
        "current_period_start": _timestamp(clock()),
        "current_period_end": _timestamp(period_end),
    }

    handled = subscription_service.handle_event(
        "checkout.session.completed",
        {"id": "cs_1", "customer": "cus_abc", "subscription": "sub_123", "metadata": {"user_id": str(user.id)}},
    )

    assert handled is True
    stored = subscription_repository.get_latest_for_user(user.id)
    assert stored.plan_type == PlanType.PREMIUM
    assert stored.status == SubscriptionStatus.ACTIVE
    assert stored.stripe_subscription_id == "sub_123"
    assert stored.stripe_customer_id == "cus_abc"
    assert subscription_repository.get_by_stripe_subscription_id("sub_123").id == stored.id
    assert stored.current_period_end == period_end.replace(microsecond=0)
    assert subscription_service.is_premium(user.id) is True


def test_checkout_completed_with_provider_trial(subscription_service, subscription_repository, fake_stripe, clock, user):
    trial_end = clock() + timedelta(days=7)
    fake_stripe.subscriptions["sub_trial"] = {
        "id": "sub_trial",
        "status": "trialing",
        "trial_end": _timestamp(trial_end),
        # Newer API versions only report the period on the subscription items.
        "items": {"data": [{"current_period_start": _timestamp(clock()), "current_period_end": _timestamp(trial_end)}]},
    }

    subscription_service.handle_checkout_completed(
        {"subscription": "sub_trial", "customer": "cus_t", "metadata": {"user_id": str(user.id)}}
    )

    stored = subscription_repository.get_latest_for_user(user.id)
    assert stored.status == SubscriptionStatus.TRIAL
    assert stored.trial_end == trial_end.replace(microsecond=0)
    assert stored.current_period_end == trial_end.replace(microsecond=0)


@pytest.mark.parametrize(
    "session",
    [
        {"subscription": "sub_123", "metadata": {}},
        {"metadata": {"user_id": "1"}},
        {"subscription": "sub_123", "metadata": {"user_id": "not-a-number"}},
    ],
)
def test_checkout_completed_missing_fields_is_a_no_op(subscription_service, subscription_repository, session):
    subscription_service.handle_checkout_completed(session)

    assert subscription_repository.get_latest_for_user(1) is None


def _mirrored_subscription(subscription_service, subscription_repository, user, **fields):
    access = subscription_service.open(user.id)
    return subscription_repository.update(
        access.subscription.id,
        plan_type=PlanType.PREMIUM,
        status=SubscriptionStatus.ACTIVE,
        stripe_subscription_id="sub_live",
        **fields,
    )


def test_subscription_updated_syncs_status(subscription_service, subscription_repository, user):
    _mirrored_subscription(subscription_service, subscription_repository, user)

    subscription_service.handle_event("customer.subscription.updated", {"id": "sub_live", "status": "past_due"})

    stored = subscription_repository.get_latest_for_user(user.id)
    assert stored.status == SubscriptionStatus.PAST_DUE
    assert subscription_service.is_premium(user.id) is True


def test_subscription_updated_with_unknown_status_keeps_row(subscription_service, subscription_repository, user):
    _mirrored_subscription(subscription_service, subscription_repository, user)

    subscription_service.handle_subscription_updated({"id": "sub_live", "status": "mystery"})

    assert subscription_repository.get_latest_for_user(user.id).status == SubscriptionStatus.ACTIVE


def test_subscription_deleted_cancels(subscription_service, subscription_repository, user):
    _mirrored_subscription(subscription_service, subscription_repository, user)

    subscription_service.handle_event("customer.subscription.deleted", {"id": "sub_live"})

    stored = subscription_repository.get_latest_for_user(user.id)
    assert stored.status == SubscriptionStatus.CANCELLED
    assert subscription_service.is_premium(user.id) is False


def test_invoice_events_toggle_payment_state(subscription_service, subscription_repository, user):
    _mirrored_subscription(subscription_service, subscription_repository, user)

    subscription_service.handle_event("invoice.payment_failed", {"id": "in_1", "subscription": "sub_live"})
    assert subscription_repository.get_latest_for_user(user.id).status == SubscriptionStatus.PAST_DUE

    subscription_service.handle_event(
        "invoice.payment_succeeded",
        {"id": "in_2", "parent": {"subscription_details": {"subscription": "sub_live"}}},
    )
    assert subscription_repository.get_latest_for_user(user.id).status == SubscriptionStatus.ACTIVE


def test_events_for_unknown_subscription_change_nothing(subscription_service, subscription_repository, user):
    _mirrored_subscription(subscription_service, subscription_repository, user)

    subscription_service.handle_event("customer.subscription.deleted", {"id": "sub_other"})

    assert subscription_repository.get_latest_for_user(user.id).status == SubscriptionStatus.ACTIVE


def test_unhandled_event_type_is_ignored(subscription_service):
    assert subscription_service.handle_event("customer.created", {"id": "cus_1"}) is False


def test_checkout_session_stores_new_customer(subscription_service, user_repository, fake_stripe, user):
    session = subscription_service.create_checkout_session(
        user, price_id="price_1", success_url="https://ok", cancel_url="https://cancel"
    )

    assert session["checkout_url"].startswith("https://")
    assert fake_stripe.checkout_sessions[0]["trial_days"] == 7
    assert user_repository.get_by_id(user.id).stripe_customer_id == f"cus_{user.id}"


def test_checkout_session_requires_price(subscription_service, user):
    with pytest.raises(ValueError):
        subscription_service.create_checkout_session(user, price_id="", success_url="a", cancel_url="b")


def test_portal_requires_existing_customer(subscription_service, user):
    with pytest.raises(ValueError):
        subscription_service.create_portal_session(user, return_url="https://app")


def test_checkout_without_stripe(subscription_repository, user_repository, clock, user):
    service = SubscriptionService(subscription_repository, user_repository, stripe_service=None, clock=clock)

    with pytest.raises(StripeNotConfiguredError):
        service.create_checkout_session(user, price_id="price_1", success_url="a", cancel_url="b")


def test_unknown_stored_status_fails_closed(subscription_repository, db_path, user):
    created = subscription_repository.create(user.id, plan_type=PlanType.PREMIUM)
    with connect(db_path) as conn:
        conn.execute("UPDATE subscriptions SET status = 'lifetime' WHERE id = ?", (created.id,))
        conn.commit()

    stored = subscription_repository.get_by_id(created.id)
    assert stored.status == SubscriptionStatus.CANCELLED


def test_timestamps_round_trip_as_utc(subscription_repository, user):
    naive = datetime(2025, 1, 2, 3, 4, 5)
    created = subscription_repository.create(user.id, trial_end=naive)

    assert created.trial_end == naive.replace(tzinfo=timezone.utc)


def _corrupt(db_path, subscription_id, column, value):
    with connect(db_path) as conn:
        conn.execute(f"UPDATE subscriptions SET {column} = ? WHERE id = ?", (value, subscription_id))
        conn.commit()


def test_unreadable_stored_beta_end_is_recorded(subscription_repository, db_path, user):
    created = subscription_repository.create(
        user.id, plan_type=PlanType.PREMIUM, status=SubscriptionStatus.BETA, is_beta_tester=True
    )
    _corrupt(db_path, created.id, "beta_end", "not-a-date")

    stored = subscription_repository.get_by_id(created.id)

    assert stored.beta_end is None
    assert stored.invalid_timestamps == {"beta_end"}


def test_unreadable_beta_end_downgrades(subscription_service, subscription_repository, db_path, user):
    granted = subscription_service.grant_beta(user.id)
    _corrupt(db_path, granted.id, "beta_end", "not-a-date")

    assert subscription_service.is_premium(user.id) is False

    stored = subscription_repository.get_latest_for_user(user.id)
    assert stored.plan_type == PlanType.FREE
    assert stored.is_beta_tester is False
    assert stored.invalid_timestamps == frozenset()


def test_unreadable_trial_end_downgrades(subscription_service, subscription_repository, db_path, user):
    started = subscription_service.start_trial(user.id)
    _corrupt(db_path, started.id, "trial_end", "tomorrow-ish")

    assert subscription_service.is_premium(user.id) is False
    assert subscription_repository.get_latest_for_user(user.id).plan_type == PlanType.FREE
