from __future__ import annotations

from datetime import date
from typing import Any, List, Optional, Protocol

from ..models import (
    Budget,
    BudgetPeriod,
    FinancialGoal,
    RecurrenceType,
    Subscription,
    Transaction,
    TransactionType,
    User,
)


class SubscriptionStore(Protocol):
    """Storage for subscription rows, one logical row per user."""

    def create(self, user_id: int, **fields: Any) -> Subscription:
        ...

    def get_by_id(self, subscription_id: int) -> Optional[Subscription]:
        ...

    def get_latest_for_user(self, user_id: int) -> Optional[Subscription]:
        ...

    def get_by_stripe_subscription_id(self, stripe_subscription_id: str) -> Optional[Subscription]:
        ...

    def update(self, subscription_id: int, **fields: Any) -> Optional[Subscription]:
        ...

    def update_by_stripe_subscription_id(self, stripe_subscription_id: str, **fields: Any) -> int:
        ...

    def list_time_boxed(self) -> List[Subscription]:
        ...

    def list_beta_testers(self) -> List[Subscription]:
        ...


class UserStore(Protocol):
    """Storage for user accounts."""

    def create(self, email: str, password_hash: str, full_name: Optional[str] = None) -> User:
        ...

    def get_by_id(self, user_id: int) -> Optional[User]:
        ...

    def get_by_email(self, email: str) -> Optional[User]:
        ...

    def set_stripe_customer_id(self, user_id: int, customer_id: str) -> None:
        ...


class TransactionStore(Protocol):
    def create(
        self,
        user_id: int,
        title: str,
        amount: float,
        type: TransactionType,
        category: str,
        date: date,
        recurrence_type: Optional[RecurrenceType] = None,
        recurrence_interval: Optional[int] = None,
        next_occurrence: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Transaction:
        ...

    def list_for_user(self, user_id: int) -> List[Transaction]:
        ...

    def count_for_user(self, user_id: int) -> int:
        ...

    def delete(self, user_id: int, transaction_id: int) -> bool:
        ...


class BudgetStore(Protocol):
    def create(self, user_id: int, category: str, amount: float, period: BudgetPeriod) -> Budget:
        ...

    def get(self, user_id: int, budget_id: int) -> Optional[Budget]:
        ...

    def list_for_user(self, user_id: int) -> List[Budget]:
        ...

    def update(
        self,
        user_id: int,
        budget_id: int,
        *,
        category: Optional[str] = None,
        amount: Optional[float] = None,
        period: Optional[BudgetPeriod] = None,
    ) -> Optional[Budget]:
        ...

    def delete(self, user_id: int, budget_id: int) -> bool:
        ...


class GoalStore(Protocol):
    def create(self, user_id: int, **fields: Any) -> FinancialGoal:
        ...

    def get(self, user_id: int, goal_id: int) -> Optional[FinancialGoal]:
        ...

    def list_for_user(self, user_id: int) -> List[FinancialGoal]:
        ...

    def update(self, user_id: int, goal_id: int, **fields: Any) -> Optional[FinancialGoal]:
        ...

    def delete(self, user_id: int, goal_id: int) -> bool:
        ...

