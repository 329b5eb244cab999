"""Repository for FinancialGoal persistence."""

from datetime import date
from enum import Enum
from typing import Any, List, Optional

from mindplan.domain.models.finance import FinancialGoal, GoalStatus
from mindplan.infrastructure.persistence.sqlite import (
    connect,
    ensure_parent_dir,
    format_date,
    format_datetime,
    parse_date,
    parse_datetime,
    utc_now,
)

_GOAL_COLUMNS = (
    "title",
    "description",
    "target_amount",
    "current_amount",
    "currency",
    "target_date",
    "category",
    "priority",
    "status",
)


class GoalRepository:
    """Repository for managing savings and payoff goals in SQLite."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        ensure_parent_dir(db_path)
        self._initialize_table()

    def _initialize_table(self) -> None:
        with connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS financial_goals (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    target_amount REAL NOT NULL,
                    current_amount REAL NOT NULL DEFAULT 0,
                    currency TEXT NOT NULL DEFAULT 'EUR',
                    target_date TEXT,
                    category TEXT NOT NULL DEFAULT 'savings',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    status TEXT NOT NULL DEFAULT 'active',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_financial_goals_user_id ON financial_goals(user_id)"
            )
            conn.commit()

    def create(self, user_id: int, **fields: Any) -> FinancialGoal:
        values = self._validated(fields)
        now = format_datetime(utc_now())
        columns = ["user_id", *values.keys(), "created_at", "updated_at"]
        params = [user_id, *(self._to_db(v) for v in values.values()), now, now]
        with connect(self.db_path) as conn:
            cursor = conn.execute(
                f"INSERT INTO financial_goals ({', '.join(columns)}) "
                f"VALUES ({', '.join('?' for _ in columns)})",
                params,
            )
            conn.commit()
            goal_id = cursor.lastrowid

        goal = self.get(user_id, goal_id)
        if goal is None:
            raise RuntimeError("Failed to persist financial goal.")
        return goal

    def get(self, user_id: int, goal_id: int) -> Optional[FinancialGoal]:
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM financial_goals WHERE id = ? AND user_id = ?", (goal_id, user_id)
            ).fetchone()
        return self._row_to_goal(row) if row else None

    def list_for_user(self, user_id: int) -> List[FinancialGoal]:
        with connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM financial_goals WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_goal(row) for row in rows]

    def update(self, user_id: int, goal_id: int, **fields: Any) -> Optional[FinancialGoal]:
        values = self._validated(fields)
        if values:
            columns = [*values.keys(), "updated_at"]
            params = [*(self._to_db(v) for v in values.values()), format_datetime(utc_now())]
            with connect(self.db_path) as conn:
                conn.execute(
                    f"UPDATE financial_goals SET {', '.join(f'{c} = ?' for c in columns)} "
                    "WHERE id = ? AND user_id = ?",
                    (*params, goal_id, user_id),
                )
                conn.commit()
        return self.get(user_id, goal_id)

    def delete(self, user_id: int, goal_id: int) -> bool:
        with connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM financial_goals WHERE id = ? AND user_id = ?", (goal_id, user_id)
            )
            conn.commit()
            return cursor.rowcount > 0

    @staticmethod
    def _validated(fields: dict) -> dict:
        unknown = set(fields) - set(_GOAL_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown goal fields: {', '.join(sorted(unknown))}")
        return dict(fields)

    @staticmethod
    def _to_db(value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, date):
            return format_date(value)
        return value

    def _row_to_goal(self, row) -> FinancialGoal:
        return FinancialGoal(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            description=row["description"],
            target_amount=float(row["target_amount"]),
            current_amount=float(row["current_amount"]),
            currency=row["currency"],
            target_date=parse_date(row["target_date"]),
            category=row["category"],
            priority=row["priority"],
            status=GoalStatus(row["status"]),
            created_at=parse_datetime(row["created_at"]),
            updated_at=parse_datetime(row["updated_at"]),
        )
