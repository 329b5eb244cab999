"""Date arithmetic and thresholds for recurring transactions, budgets and goals."""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, Optional, Tuple

from .models.finance import (
    Budget,
    BudgetPeriod,
    FinancialGoal,
    GoalStatus,
    RecurrenceType,
    Transaction,
    TransactionType,
)

URGENT_GOAL_DAYS = 30


def _add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(value.day, last_day))


def advance(value: date, recurrence: RecurrenceType, interval: int = 1) -> date:
    """Step ``value`` forward by ``interval`` recurrence units.

    Monthly and yearly steps clamp to the last day of the target month, so a
    transaction on January 31st recurs on February 28th (or 29th).
    """
    if interval < 1:
        raise ValueError("Recurrence interval must be at least 1")
    if recurrence == RecurrenceType.DAILY:
        return value + timedelta(days=interval)
    if recurrence == RecurrenceType.WEEKLY:
        return value + timedelta(weeks=interval)
    if recurrence == RecurrenceType.MONTHLY:
        return _add_months(value, interval)
    if recurrence == RecurrenceType.YEARLY:
        return _add_months(value, 12 * interval)
    raise ValueError(f"Unsupported recurrence type: {recurrence!r}")


def next_occurrence(
    start: date,
    recurrence: RecurrenceType,
    interval: int,
    today: date,
    end_date: Optional[date] = None,
) -> Optional[date]:
    """First occurrence strictly after ``today``, or ``None`` once past ``end_date``."""
    candidate = advance(start, recurrence, interval)
    while candidate <= today:
        candidate = advance(candidate, recurrence, interval)
    if end_date is not None and candidate > end_date:
        return None
    return candidate


def budget_window(period: BudgetPeriod, now: datetime) -> Tuple[date, date]:
    """Inclusive date range a budget's spend is measured over."""
    today = now.date()
    if period == BudgetPeriod.MONTHLY:
        last_day = calendar.monthrange(today.year, today.month)[1]
        return today.replace(day=1), today.replace(day=last_day)
    if period == BudgetPeriod.WEEKLY:
        return today - timedelta(days=7), today
    if period == BudgetPeriod.YEARLY:
        return date(today.year, 1, 1), date(today.year, 12, 31)
    raise ValueError(f"Unsupported budget period: {period!r}")


def budget_spent(budget: Budget, transactions: Iterable[Transaction], now: datetime) -> float:
    start, end = budget_window(budget.period, now)
    return round(
        sum(
            t.amount
            for t in transactions
            if t.type == TransactionType.EXPENSE
            and t.category == budget.category
            and start <= t.date <= end
        ),
        2,
    )


def category_totals(
    transactions: Iterable[Transaction], kind: TransactionType, start: date, end: date
) -> Dict[str, float]:
    """Sum of ``kind`` transactions per category between ``start`` and ``end`` inclusive."""
    totals: Dict[str, float] = {}
    for t in transactions:
        if t.type == kind and start <= t.date <= end:
            totals[t.category] = totals.get(t.category, 0.0) + t.amount
    return {category: round(total, 2) for category, total in totals.items()}


def budget_status(spent: float, amount: float) -> str:
    if amount <= 0:
        return "exceeded"
    percentage = spent / amount * 100
    if percentage >= 100:
        return "exceeded"
    if percentage >= 80:
        return "warning"
    if percentage >= 50:
        return "moderate"
    return "good"


def goal_progress(goal: FinancialGoal) -> float:
    if goal.target_amount <= 0:
        return 0.0
    return min(goal.current_amount / goal.target_amount * 100, 100.0)


def goal_display_status(goal: FinancialGoal, today: date) -> str:
    if goal.status == GoalStatus.COMPLETED:
        return "completed"
    if goal.status == GoalStatus.PAUSED:
        return "paused"
    progress = goal_progress(goal)
    if goal.target_date is not None and goal.target_date < today and progress < 100:
        return "overdue"
    if progress >= 100:
        return "completed"
    if goal.target_date is not None and (goal.target_date - today).days <= URGENT_GOAL_DAYS:
        return "urgent"
    return "active"
