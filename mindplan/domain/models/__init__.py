"""Domain models for the MindPlan application."""

from .finance import (
    Budget,
    BudgetPeriod,
    FinancialGoal,
    GoalStatus,
    RecurrenceType,
    Transaction,
    TransactionType,
)
from .subscription import PlanType, Subscription, SubscriptionStatus
from .user import User

__all__ = [
    "Budget",
    "BudgetPeriod",
    "FinancialGoal",
    "GoalStatus",
    "PlanType",
    "RecurrenceType",
    "Subscription",
    "SubscriptionStatus",
    "Transaction",
    "TransactionType",
    "User",
]
