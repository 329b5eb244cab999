from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class RecurrenceType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class BudgetPeriod(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class GoalStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class Transaction:
    id: int
    user_id: int
    title: str
    amount: float
    type: TransactionType
    category: str
    date: date
    is_recurring: bool
    recurrence_type: Optional[RecurrenceType]
    recurrence_interval: Optional[int]
    next_occurrence: Optional[date]
    end_date: Optional[date]
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class Budget:
    id: int
    user_id: int
    category: str
    amount: float
    period: BudgetPeriod
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class FinancialGoal:
    id: int
    user_id: int
    title: str
    description: Optional[str]
    target_amount: float
    current_amount: float
    currency: str
    target_date: Optional[date]
    category: str
    priority: str
    status: GoalStatus
    created_at: datetime
    updated_at: datetime
