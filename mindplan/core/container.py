from dataclasses import dataclass

from .config import Settings
from ..services.finance_service import FinanceService
from ..services.stripe_service import StripeService
from ..services.subscription_service import SubscriptionService
from ..services.user_service import UserService


@dataclass(slots=True)
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle."""

    settings: Settings
    stripe_service: StripeService
    user_service: UserService
    subscription_service: SubscriptionService
    finance_service: FinanceService
