"""Transactions, budgets and financial goals for a single user."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from mindplan.domain.finance import (
    budget_spent,
    budget_status,
    budget_window,
    category_totals,
    goal_display_status,
    goal_progress,
    next_occurrence,
)
from mindplan.domain.models.finance import (
    Budget,
    BudgetPeriod,
    FinancialGoal,
    GoalStatus,
    RecurrenceType,
    Transaction,
    TransactionType,
)
from mindplan.domain.ports.persistence import BudgetStore, GoalStore, TransactionStore
from mindplan.infrastructure.persistence.sqlite import utc_now
from mindplan.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


class FreeTierLimitError(Exception):
    """Raised when a free user hits a premium-only quota."""


class NotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class BudgetSummary:
    budget: Budget
    spent: float
    remaining: float
    percentage: float
    status: str


@dataclass(frozen=True)
class MonthlyStats:
    period_start: date
    period_end: date
    income: float
    expenses: float
    balance: float
    budget_total: float
    budget_used: Optional[float]
    income_by_category: Dict[str, float]
    expenses_by_category: Dict[str, float]


@dataclass(frozen=True)
class GoalSummary:
    goal: FinancialGoal
    progress: float
    display_status: str


class FinanceService:
    def __init__(
        self,
        transaction_repository: TransactionStore,
        budget_repository: BudgetStore,
        goal_repository: GoalStore,
        subscription_service: SubscriptionService,
        clock: Callable[[], datetime] = utc_now,
        free_transaction_limit: int = 5,
    ) -> None:
        self._transactions = transaction_repository
        self._budgets = budget_repository
        self._goals = goal_repository
        self._subscriptions = subscription_service
        self._clock = clock
        self.free_transaction_limit = free_transaction_limit

    # Transactions --------------------------------------------------------
    def add_transaction(
        self,
        user_id: int,
        *,
        title: str,
        amount: float,
        type: TransactionType,
        category: str,
        date: date,
        recurrence_type: Optional[RecurrenceType] = None,
        recurrence_interval: int = 1,
        end_date: Optional[date] = None,
    ) -> Transaction:
        """
        Record a transaction, computing the next occurrence for recurring ones.

        Raises:
            ValueError: If the transaction is invalid
            FreeTierLimitError: If a free user already has the maximum number of transactions
        """
        title = title.strip()
        if not title:
            raise ValueError("Title is required")
        if amount <= 0:
            raise ValueError("Amount must be greater than zero")
        if not category:
            raise ValueError("Category is required")
        if recurrence_type is not None and recurrence_interval < 1:
            raise ValueError("Recurrence interval must be at least 1")
        if end_date is not None and end_date < date:
            raise ValueError("End date cannot precede the transaction date")

        if not self._subscriptions.is_premium(user_id):
            count = self._transactions.count_for_user(user_id)
            if count >= self.free_transaction_limit:
                raise FreeTierLimitError(
                    f"Free plan is limited to {self.free_transaction_limit} transactions. "
                    "Upgrade to premium for unlimited transactions."
                )

        upcoming = None
        if recurrence_type is not None:
            upcoming = next_occurrence(
                date, recurrence_type, recurrence_interval, self._clock().date(), end_date
            )

        return self._transactions.create(
            user_id=user_id,
            title=title,
            amount=round(amount, 2),
            type=type,
            category=category,
            date=date,
            recurrence_type=recurrence_type,
            recurrence_interval=recurrence_interval if recurrence_type else None,
            next_occurrence=upcoming,
            end_date=end_date if recurrence_type else None,
        )

    def list_transactions(self, user_id: int) -> List[Transaction]:
        return self._transactions.list_for_user(user_id)

    def delete_transaction(self, user_id: int, transaction_id: int) -> None:
        if not self._transactions.delete(user_id, transaction_id):
            raise NotFoundError("Transaction not found")

    # Budgets -------------------------------------------------------------
    def create_budget(self, user_id: int, category: str, amount: float, period: BudgetPeriod) -> Budget:
        if not category:
            raise ValueError("Category is required")
        if amount <= 0:
            raise ValueError("Amount must be greater than zero")
        return self._budgets.create(user_id, category, round(amount, 2), period)

    def update_budget(
        self,
        user_id: int,
        budget_id: int,
        *,
        category: Optional[str] = None,
        amount: Optional[float] = None,
        period: Optional[BudgetPeriod] = None,
    ) -> Budget:
        if amount is not None and amount <= 0:
            raise ValueError("Amount must be greater than zero")
        budget = self._budgets.update(user_id, budget_id, category=category, amount=amount, period=period)
        if budget is None:
            raise NotFoundError("Budget not found")
        return budget

    def delete_budget(self, user_id: int, budget_id: int) -> None:
        if not self._budgets.delete(user_id, budget_id):
            raise NotFoundError("Budget not found")

    def budget_summary(
        self, user_id: int, budget: Budget, transactions: Optional[List[Transaction]] = None
    ) -> BudgetSummary:
        """Spending against a budget in its current period."""
        if transactions is None:
            transactions = self._transactions.list_for_user(user_id)
        spent = budget_spent(budget, transactions, self._clock())
        return BudgetSummary(
            budget=budget,
            spent=spent,
            remaining=round(budget.amount - spent, 2),
            percentage=round(spent / budget.amount * 100, 1) if budget.amount else 0.0,
            status=budget_status(spent, budget.amount),
        )

    def budget_summaries(self, user_id: int) -> List[BudgetSummary]:
        transactions = self._transactions.list_for_user(user_id)
        return [
            self.budget_summary(user_id, budget, transactions)
            for budget in self._budgets.list_for_user(user_id)
        ]

    # Goals ---------------------------------------------------------------
    def create_goal(self, user_id: int, **fields: Any) -> FinancialGoal:
        if not (fields.get("title") or "").strip():
            raise ValueError("Title is required")
        if fields.get("target_amount") is None or fields["target_amount"] <= 0:
            raise ValueError("Target amount must be greater than zero")
        if fields.get("current_amount", 0) < 0:
            raise ValueError("Current amount cannot be negative")
        fields["title"] = fields["title"].strip()
        if fields.get("current_amount", 0) >= fields["target_amount"]:
            fields["status"] = GoalStatus.COMPLETED
        return self._goals.create(user_id, **fields)

    def update_goal(self, user_id: int, goal_id: int, **fields: Any) -> FinancialGoal:
        if "target_amount" in fields and fields["target_amount"] <= 0:
            raise ValueError("Target amount must be greater than zero")
        goal = self._goals.update(user_id, goal_id, **fields)
        if goal is None:
            raise NotFoundError("Goal not found")
        return goal

    def update_goal_progress(self, user_id: int, goal_id: int, current_amount: float) -> FinancialGoal:
        """Set the saved amount; reaching the target marks the goal completed."""
        if current_amount < 0:
            raise ValueError("Current amount cannot be negative")
        goal = self._goals.get(user_id, goal_id)
        if goal is None:
            raise NotFoundError("Goal not found")

        changes: dict = {"current_amount": round(current_amount, 2)}
        if current_amount >= goal.target_amount and goal.status != GoalStatus.COMPLETED:
            changes["status"] = GoalStatus.COMPLETED
            logger.info("Goal %s completed for user %s", goal_id, user_id)
        return self.update_goal(user_id, goal_id, **changes)

    def delete_goal(self, user_id: int, goal_id: int) -> None:
        if not self._goals.delete(user_id, goal_id):
            raise NotFoundError("Goal not found")

    def goal_summary(self, goal: FinancialGoal) -> GoalSummary:
        return GoalSummary(
            goal=goal,
            progress=round(goal_progress(goal), 1),
            display_status=goal_display_status(goal, self._clock().date()),
        )

    def goal_summaries(self, user_id: int) -> List[GoalSummary]:
        return [self.goal_summary(goal) for goal in self._goals.list_for_user(user_id)]

    # Statistics ----------------------------------------------------------
    def monthly_stats(self, user_id: int) -> MonthlyStats:
        """
        Income, expenses and category breakdowns for the current calendar month.

        ``budget_used`` is the share of the user's monthly budgets already spent,
        or None when no monthly budget exists.
        """
        start, end = budget_window(BudgetPeriod.MONTHLY, self._clock())
        transactions = self._transactions.list_for_user(user_id)
        income_by_category = category_totals(transactions, TransactionType.INCOME, start, end)
        expenses_by_category = category_totals(transactions, TransactionType.EXPENSE, start, end)
        income = round(sum(income_by_category.values()), 2)
        expenses = round(sum(expenses_by_category.values()), 2)

        budget_total = round(
            sum(b.amount for b in self._budgets.list_for_user(user_id) if b.period == BudgetPeriod.MONTHLY),
            2,
        )
        budget_used = round(expenses / budget_total * 100, 1) if budget_total else None

        return MonthlyStats(
            period_start=start,
            period_end=end,
            income=income,
            expenses=expenses,
            balance=round(income - expenses, 2),
            budget_total=budget_total,
            budget_used=budget_used,
            income_by_category=income_by_category,
            expenses_by_category=expenses_by_category,
        )
