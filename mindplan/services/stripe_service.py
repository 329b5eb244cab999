"""Stripe payment integration service."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import stripe

logger = logging.getLogger(__name__)


class StripeNotConfiguredError(RuntimeError):
    """Raised when a Stripe call is attempted without the required keys."""


class PaymentProviderError(RuntimeError):
    """Raised when the Stripe API rejects or fails a request."""


def as_dict(obj: Any) -> Dict[str, Any]:
    """Return a plain dict for a Stripe object or an already-decoded payload."""
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)


class StripeService:
    """Thin wrapper over the Stripe SDK used by checkout, portal and webhook flows."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
    ) -> None:
        self._webhook_secret = webhook_secret
        if secret_key:
            stripe.api_key = secret_key
        else:
            logger.warning("STRIPE_SECRET_KEY is not set; checkout and portal sessions are disabled")

    @property
    def is_configured(self) -> bool:
        return bool(stripe.api_key)

    def _require_api_key(self) -> None:
        if not stripe.api_key:
            raise StripeNotConfiguredError("Stripe not configured. Please set STRIPE_SECRET_KEY.")

    def construct_event(self, payload: bytes, sig_header: str) -> Dict[str, Any]:
        """Verify the webhook signature and decode the event.

        Raises:
            StripeNotConfiguredError: If no webhook secret is configured
            stripe.SignatureVerificationError: If the signature does not match
            ValueError: If the payload is not valid JSON
        """
        if not self._webhook_secret:
            raise StripeNotConfiguredError("Stripe webhook secret is not configured.")
        event = stripe.Webhook.construct_event(payload, sig_header, self._webhook_secret)
        return as_dict(event)

    def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        self._require_api_key()
        try:
            return as_dict(stripe.Subscription.retrieve(subscription_id))
        except stripe.StripeError as e:
            logger.error("Failed to retrieve Stripe subscription %s: %s", subscription_id, str(e))
            raise PaymentProviderError(f"Failed to retrieve subscription: {str(e)}") from e

    def ensure_customer(self, email: str, user_id: int, customer_id: Optional[str] = None) -> str:
        """Reuse the stored Stripe customer when it still exists, otherwise create one."""
        self._require_api_key()
        try:
            if customer_id:
                customer = stripe.Customer.retrieve(customer_id)
                if not getattr(customer, "deleted", False):
                    return customer.id
                logger.info("Stripe customer %s was deleted; creating a new one", customer_id)

            customer = stripe.Customer.create(
                email=email,
                metadata={"user_id": str(user_id)},
            )
            return customer.id
        except stripe.StripeError as e:
            logger.error("Failed to prepare Stripe customer for user %s: %s", user_id, str(e))
            raise PaymentProviderError(f"Error creating customer: {str(e)}") from e

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        user_id: int,
        success_url: str,
        cancel_url: str,
        trial_days: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Create a hosted Checkout session for a subscription price."""
        self._require_api_key()
        metadata = {"user_id": str(user_id)}
        subscription_data: Dict[str, Any] = {"metadata": metadata}
        if trial_days:
            subscription_data["trial_period_days"] = trial_days

        try:
            session = stripe.checkout.Session.create(
                customer=customer_id,
                mode="subscription",
                line_items=[
                    {
                        "price": price_id,
                        "quantity": 1,
                    }
                ],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                subscription_data=subscription_data,
            )
        except stripe.StripeError as e:
            logger.error("Failed to create checkout session for user %s: %s", user_id, str(e))
            raise PaymentProviderError(f"Failed to create checkout session: {str(e)}") from e

        return {"session_id": session.id, "checkout_url": session.url}

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        """Create a billing portal session and return its URL."""
        self._require_api_key()
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=return_url,
            )
        except stripe.StripeError as e:
            logger.error("Failed to create portal session for customer %s: %s", customer_id, str(e))
            raise PaymentProviderError(f"Failed to create portal session: {str(e)}") from e

        return session.url
