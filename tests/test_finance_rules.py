"""
Tests for recurrence, budget and goal calculations
"""
from datetime import date, datetime, timezone

import pytest

from mindplan.domain.finance import (
    advance,
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

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


def make_transaction(amount, day, category="food", type=TransactionType.EXPENSE):
    return Transaction(
        id=1,
        user_id=1,
        title="t",
        amount=amount,
        type=type,
        category=category,
        date=day,
        is_recurring=False,
        recurrence_type=None,
        recurrence_interval=None,
        next_occurrence=None,
        end_date=None,
        created_at=NOW,
        updated_at=NOW,
    )


def make_goal(current, target=1000.0, status=GoalStatus.ACTIVE, target_date=None):
    return FinancialGoal(
        id=1,
        user_id=1,
        title="Emergency fund",
        description=None,
        target_amount=target,
        current_amount=current,
        currency="EUR",
        target_date=target_date,
        category="savings",
        priority="high",
        status=status,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.mark.parametrize(
    "start,recurrence,interval,expected",
    [
        (date(2025, 1, 1), RecurrenceType.DAILY, 3, date(2025, 1, 4)),
        (date(2025, 1, 1), RecurrenceType.WEEKLY, 2, date(2025, 1, 15)),
        (date(2025, 1, 31), RecurrenceType.MONTHLY, 1, date(2025, 2, 28)),
        (date(2024, 1, 31), RecurrenceType.MONTHLY, 1, date(2024, 2, 29)),
        (date(2025, 11, 30), RecurrenceType.MONTHLY, 3, date(2026, 2, 28)),
        (date(2024, 2, 29), RecurrenceType.YEARLY, 1, date(2025, 2, 28)),
    ],
)
def test_advance(start, recurrence, interval, expected):
    assert advance(start, recurrence, interval) == expected


def test_advance_rejects_zero_interval():
    with pytest.raises(ValueError):
        advance(date(2025, 1, 1), RecurrenceType.DAILY, 0)


def test_next_occurrence_skips_past_dates():
    upcoming = next_occurrence(date(2025, 1, 10), RecurrenceType.MONTHLY, 1, today=date(2025, 3, 15))

    assert upcoming == date(2025, 4, 10)


def test_next_occurrence_on_today_moves_forward():
    upcoming = next_occurrence(date(2025, 3, 8), RecurrenceType.WEEKLY, 1, today=date(2025, 3, 15))

    assert upcoming == date(2025, 3, 22)


def test_next_occurrence_after_end_date_is_none():
    upcoming = next_occurrence(
        date(2025, 1, 10), RecurrenceType.MONTHLY, 1, today=date(2025, 3, 15), end_date=date(2025, 3, 31)
    )

    assert upcoming is None


def test_budget_windows():
    assert budget_window(BudgetPeriod.MONTHLY, NOW) == (date(2025, 3, 1), date(2025, 3, 31))
    assert budget_window(BudgetPeriod.WEEKLY, NOW) == (date(2025, 3, 8), date(2025, 3, 15))
    assert budget_window(BudgetPeriod.YEARLY, NOW) == (date(2025, 1, 1), date(2025, 12, 31))


def test_budget_spent_counts_matching_expenses_in_window():
    budget = Budget(
        id=1, user_id=1, category="food", amount=200.0, period=BudgetPeriod.MONTHLY, created_at=NOW, updated_at=NOW
    )
    transactions = [
        make_transaction(40.10, date(2025, 3, 2)),
        make_transaction(20.05, date(2025, 3, 14)),
        make_transaction(99.0, date(2025, 2, 28)),
        make_transaction(15.0, date(2025, 3, 3), category="transport"),
        make_transaction(500.0, date(2025, 3, 1), type=TransactionType.INCOME),
    ]

    assert budget_spent(budget, transactions, NOW) == 60.15


def test_category_totals_group_one_kind_inside_the_range():
    transactions = [
        make_transaction(40.10, date(2025, 3, 2)),
        make_transaction(20.05, date(2025, 3, 14)),
        make_transaction(15.0, date(2025, 3, 3), category="transport"),
        make_transaction(99.0, date(2025, 2, 28)),
        make_transaction(500.0, date(2025, 3, 1), category="salary", type=TransactionType.INCOME),
    ]

    expenses = category_totals(transactions, TransactionType.EXPENSE, date(2025, 3, 1), date(2025, 3, 31))
    income = category_totals(transactions, TransactionType.INCOME, date(2025, 3, 1), date(2025, 3, 31))

    assert expenses == {"food": 60.15, "transport": 15.0}
    assert income == {"salary": 500.0}


@pytest.mark.parametrize(
    "spent,amount,expected",
    [
        (10, 100, "good"),
        (50, 100, "moderate"),
        (80, 100, "warning"),
        (100, 100, "exceeded"),
        (150, 100, "exceeded"),
        (0, 0, "exceeded"),
    ],
)
def test_budget_status(spent, amount, expected):
    assert budget_status(spent, amount) == expected


def test_goal_progress_is_capped():
    assert goal_progress(make_goal(250)) == 25.0
    assert goal_progress(make_goal(1500)) == 100.0


def test_goal_display_status():
    today = date(2025, 3, 15)

    assert goal_display_status(make_goal(100, status=GoalStatus.COMPLETED), today) == "completed"
    assert goal_display_status(make_goal(100, status=GoalStatus.PAUSED), today) == "paused"
    assert goal_display_status(make_goal(100, target_date=date(2025, 3, 1)), today) == "overdue"
    assert goal_display_status(make_goal(1000), today) == "completed"
    assert goal_display_status(make_goal(100, target_date=date(2025, 4, 1)), today) == "urgent"
    assert goal_display_status(make_goal(100, target_date=date(2025, 12, 1)), today) == "active"
    assert goal_display_status(make_goal(100), today) == "active"
