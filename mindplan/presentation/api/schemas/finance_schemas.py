"""Pydantic schemas for transactions, budgets and goals."""

from datetime import date as date_type, datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field

from ....domain.models.finance import (
    BudgetPeriod,
    GoalStatus,
    RecurrenceType,
    TransactionType,
)


class TransactionCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    amount: float = Field(gt=0)
    type: TransactionType
    category: str = Field(min_length=1)
    date: date_type
    recurrence_type: Optional[RecurrenceType] = None
    recurrence_interval: int = Field(default=1, ge=1)
    end_date: Optional[date_type] = None


class TransactionResponse(BaseModel):
    id: int
    title: str
    amount: float
    type: TransactionType
    category: str
    date: date_type
    is_recurring: bool
    recurrence_type: Optional[RecurrenceType]
    recurrence_interval: Optional[int]
    next_occurrence: Optional[date_type]
    end_date: Optional[date_type]
    created_at: Optional[datetime]


class BudgetCreateRequest(BaseModel):
    category: str = Field(min_length=1)
    amount: float = Field(gt=0)
    period: BudgetPeriod = BudgetPeriod.MONTHLY


class BudgetUpdateRequest(BaseModel):
    category: Optional[str] = Field(default=None, min_length=1)
    amount: Optional[float] = Field(default=None, gt=0)
    period: Optional[BudgetPeriod] = None


class BudgetResponse(BaseModel):
    id: int
    category: str
    amount: float
    period: BudgetPeriod
    spent: float
    remaining: float
    percentage: float
    status: str


class GoalCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    target_amount: float = Field(gt=0)
    current_amount: float = Field(default=0, ge=0)
    currency: str = "EUR"
    target_date: Optional[date_type] = None
    category: str = "savings"
    priority: str = "medium"


class GoalUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    target_amount: Optional[float] = Field(default=None, gt=0)
    target_date: Optional[date_type] = None
    category: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[GoalStatus] = None


class GoalProgressRequest(BaseModel):
    current_amount: float = Field(ge=0)


class GoalResponse(BaseModel):
    id: int
    title: str
    description: Optional[str]
    target_amount: float
    current_amount: float
    currency: str
    target_date: Optional[date_type]
    category: str
    priority: str
    status: GoalStatus
    progress: float
    display_status: str


class MonthlyStatsResponse(BaseModel):
    period_start: date_type
    period_end: date_type
    income: float
    expenses: float
    balance: float
    budget_total: float
    budget_used: Optional[float]
    income_by_category: Dict[str, float]
    expenses_by_category: Dict[str, float]
