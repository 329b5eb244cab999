"""Transactions, budgets, goals and monthly statistics for the signed-in user."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from ..dependencies import get_current_user
from ..schemas.finance_schemas import (
    BudgetCreateRequest,
    BudgetResponse,
    BudgetUpdateRequest,
    GoalCreateRequest,
    GoalProgressRequest,
    GoalResponse,
    GoalUpdateRequest,
    MonthlyStatsResponse,
    TransactionCreateRequest,
    TransactionResponse,
)
from ....core.dependencies import get_finance_service
from ....domain.models.finance import Transaction
from ....domain.models.user import User
from ....services.finance_service import (
    BudgetSummary,
    FinanceService,
    FreeTierLimitError,
    GoalSummary,
    NotFoundError,
)

router = APIRouter(prefix="/api/finance", tags=["Finance"])


def _not_found(exc: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _bad_request(exc: ValueError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _transaction_response(transaction: Transaction) -> TransactionResponse:
    return TransactionResponse(
        id=transaction.id,
        title=transaction.title,
        amount=transaction.amount,
        type=transaction.type,
        category=transaction.category,
        date=transaction.date,
        is_recurring=transaction.is_recurring,
        recurrence_type=transaction.recurrence_type,
        recurrence_interval=transaction.recurrence_interval,
        next_occurrence=transaction.next_occurrence,
        end_date=transaction.end_date,
        created_at=transaction.created_at,
    )


def _budget_response(summary: BudgetSummary) -> BudgetResponse:
    budget = summary.budget
    return BudgetResponse(
        id=budget.id,
        category=budget.category,
        amount=budget.amount,
        period=budget.period,
        spent=summary.spent,
        remaining=summary.remaining,
        percentage=summary.percentage,
        status=summary.status,
    )


def _goal_response(summary: GoalSummary) -> GoalResponse:
    goal = summary.goal
    return GoalResponse(
        id=goal.id,
        title=goal.title,
        description=goal.description,
        target_amount=goal.target_amount,
        current_amount=goal.current_amount,
        currency=goal.currency,
        target_date=goal.target_date,
        category=goal.category,
        priority=goal.priority,
        status=goal.status,
        progress=summary.progress,
        display_status=summary.display_status,
    )


# Transactions ------------------------------------------------------------
@router.post("/transactions", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    payload: TransactionCreateRequest,
    user: User = Depends(get_current_user),
    finance_service: FinanceService = Depends(get_finance_service),
) -> TransactionResponse:
    try:
        transaction = finance_service.add_transaction(user.id, **payload.model_dump())
    except FreeTierLimitError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return _transaction_response(transaction)


@router.get("/transactions", response_model=List[TransactionResponse])
async def list_transactions(
    user: User = Depends(get_current_user),
    finance_service: FinanceService = Depends(get_finance_service),
) -> List[TransactionResponse]:
    return [_transaction_response(t) for t in finance_service.list_transactions(user.id)]


@router.delete("/transactions/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_transaction(
    transaction_id: int,
    user: User = Depends(get_current_user),
    finance_service: FinanceService = Depends(get_finance_service),
) -> Response:
    try:
        finance_service.delete_transaction(user.id, transaction_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Budgets -----------------------------------------------------------------
@router.post("/budgets", response_model=BudgetResponse, status_code=status.HTTP_201_CREATED)
async def create_budget(
    payload: BudgetCreateRequest,
    user: User = Depends(get_current_user),
    finance_service: FinanceService = Depends(get_finance_service),
) -> BudgetResponse:
    try:
        budget = finance_service.create_budget(user.id, payload.category, payload.amount, payload.period)
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return _budget_response(finance_service.budget_summary(user.id, budget))


@router.get("/budgets", response_model=List[BudgetResponse])
async def list_budgets(
    user: User = Depends(get_current_user),
    finance_service: FinanceService = Depends(get_finance_service),
) -> List[BudgetResponse]:
    """Budgets with the amount spent in their current period."""
    return [_budget_response(s) for s in finance_service.budget_summaries(user.id)]


@router.patch("/budgets/{budget_id}", response_model=BudgetResponse)
async def update_budget(
    budget_id: int,
    payload: BudgetUpdateRequest,
    user: User = Depends(get_current_user),
    finance_service: FinanceService = Depends(get_finance_service),
) -> BudgetResponse:
    try:
        budget = finance_service.update_budget(user.id, budget_id, **payload.model_dump(exclude_unset=True, exclude_none=True))
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return _budget_response(finance_service.budget_summary(user.id, budget))


@router.delete("/budgets/{budget_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_budget(
    budget_id: int,
    user: User = Depends(get_current_user),
    finance_service: FinanceService = Depends(get_finance_service),
) -> Response:
    try:
        finance_service.delete_budget(user.id, budget_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Goals -------------------------------------------------------------------
@router.post("/goals", response_model=GoalResponse, status_code=status.HTTP_201_CREATED)
async def create_goal(
    payload: GoalCreateRequest,
    user: User = Depends(get_current_user),
    finance_service: FinanceService = Depends(get_finance_service),
) -> GoalResponse:
    try:
        goal = finance_service.create_goal(user.id, **payload.model_dump())
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return _goal_response(finance_service.goal_summary(goal))


@router.get("/goals", response_model=List[GoalResponse])
async def list_goals(
    user: User = Depends(get_current_user),
    finance_service: FinanceService = Depends(get_finance_service),
) -> List[GoalResponse]:
    return [_goal_response(s) for s in finance_service.goal_summaries(user.id)]


@router.patch("/goals/{goal_id}", response_model=GoalResponse)
async def update_goal(
    goal_id: int,
    payload: GoalUpdateRequest,
    user: User = Depends(get_current_user),
    finance_service: FinanceService = Depends(get_finance_service),
) -> GoalResponse:
    try:
        goal = finance_service.update_goal(user.id, goal_id, **payload.model_dump(exclude_unset=True, exclude_none=True))
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return _goal_response(finance_service.goal_summary(goal))


@router.put("/goals/{goal_id}/progress", response_model=GoalResponse)
async def update_goal_progress(
    goal_id: int,
    payload: GoalProgressRequest,
    user: User = Depends(get_current_user),
    finance_service: FinanceService = Depends(get_finance_service),
) -> GoalResponse:
    """Set the saved amount of a goal; reaching the target completes it."""
    try:
        goal = finance_service.update_goal_progress(user.id, goal_id, payload.current_amount)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    except ValueError as exc:
        raise _bad_request(exc) from exc
    return _goal_response(finance_service.goal_summary(goal))


@router.delete("/goals/{goal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_goal(
    goal_id: int,
    user: User = Depends(get_current_user),
    finance_service: FinanceService = Depends(get_finance_service),
) -> Response:
    try:
        finance_service.delete_goal(user.id, goal_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Statistics --------------------------------------------------------------
@router.get("/stats", response_model=MonthlyStatsResponse)
async def monthly_stats(
    user: User = Depends(get_current_user),
    finance_service: FinanceService = Depends(get_finance_service),
) -> MonthlyStatsResponse:
    """Totals for the current month, split by category."""
    stats = finance_service.monthly_stats(user.id)
    return MonthlyStatsResponse(
        period_start=stats.period_start,
        period_end=stats.period_end,
        income=stats.income,
        expenses=stats.expenses,
        balance=stats.balance,
        budget_total=stats.budget_total,
        budget_used=stats.budget_used,
        income_by_category=stats.income_by_category,
        expenses_by_category=stats.expenses_by_category,
    )
