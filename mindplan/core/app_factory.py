from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings
from .container import ApplicationContainer
from .logging import configure_logging
from ..infrastructure.persistence.sqlite import utc_now
from ..infrastructure.repositories.budget_repository import BudgetRepository
from ..infrastructure.repositories.goal_repository import GoalRepository
from ..infrastructure.repositories.subscription_repository import SubscriptionRepository
from ..infrastructure.repositories.transaction_repository import TransactionRepository
from ..infrastructure.repositories.user_repository import UserRepository
from ..presentation.api.routers import admin as admin_router
from ..presentation.api.routers import finance as finance_router
from ..presentation.api.routers import stripe_router
from ..presentation.api.routers import user_router
from ..presentation.api.routers import user_subscription_router
from ..services.finance_service import FinanceService
from ..services.stripe_service import StripeService
from ..services.subscription_service import SubscriptionService
from ..services.user_service import UserService

logger = logging.getLogger(__name__)


def create_application(
    settings: Optional[Settings] = None,
    *,
    stripe_service: Optional[StripeService] = None,
    clock: Callable[[], datetime] = utc_now,
) -> FastAPI:
    settings = settings or Settings()

    app = FastAPI(
        title="MindPlan API",
        lifespan=_create_lifespan(settings, stripe_service, clock),
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(user_router.router)
    app.include_router(user_subscription_router.router)
    app.include_router(stripe_router.router)
    app.include_router(admin_router.router)
    app.include_router(finance_router.router)

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        container: ApplicationContainer = app.state.container  # type: ignore[attr-defined]
        return {"ok": True, "stripe": container.stripe_service.is_configured}

    return app


def build_container(
    settings: Settings,
    stripe_service: Optional[StripeService] = None,
    clock: Callable[[], datetime] = utc_now,
) -> ApplicationContainer:
    db_path = str(settings.database_path)
    user_repository = UserRepository(db_path)
    subscription_repository = SubscriptionRepository(db_path)

    stripe_service = stripe_service or StripeService(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
    )
    if settings.jwt_secret == "change-me":
        logger.warning("JWT_SECRET is using the default value. Configure a secure secret in production.")

    user_service = UserService(
        user_repository,
        jwt_secret=settings.jwt_secret,
        jwt_expiration_hours=settings.jwt_expiration_hours,
    )
    subscription_service = SubscriptionService(
        subscription_repository,
        user_repository,
        stripe_service=stripe_service,
        clock=clock,
        trial_days=settings.trial_days,
        beta_days=settings.beta_days,
    )
    finance_service = FinanceService(
        TransactionRepository(db_path),
        BudgetRepository(db_path),
        GoalRepository(db_path),
        subscription_service,
        clock=clock,
        free_transaction_limit=settings.free_transaction_limit,
    )

    return ApplicationContainer(
        settings=settings,
        stripe_service=stripe_service,
        user_service=user_service,
        subscription_service=subscription_service,
        finance_service=finance_service,
    )


def _create_lifespan(
    settings: Settings,
    stripe_service: Optional[StripeService],
    clock: Callable[[], datetime],
):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging()
        app.state.container = build_container(settings, stripe_service, clock)  # type: ignore[attr-defined]
        logger.info("MindPlan API started (database: %s)", settings.database_path)
        yield

    return lifespan
