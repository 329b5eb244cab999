"""Repository for Budget persistence."""

from typing import List, Optional

from mindplan.domain.models.finance import Budget, BudgetPeriod
from mindplan.infrastructure.persistence.sqlite import (
    connect,
    ensure_parent_dir,
    format_datetime,
    parse_datetime,
    utc_now,
)


class BudgetRepository:
    """Repository for managing per-category budgets in SQLite."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        ensure_parent_dir(db_path)
        self._initialize_table()

    def _initialize_table(self) -> None:
        with connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS budgets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    category TEXT NOT NULL,
                    amount REAL NOT NULL,
                    period TEXT NOT NULL DEFAULT 'monthly',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_budgets_user_id ON budgets(user_id)")
            conn.commit()

    def create(self, user_id: int, category: str, amount: float, period: BudgetPeriod) -> Budget:
        now = format_datetime(utc_now())
        with connect(self.db_path) as conn:
            cursor = conn.execute(
                """
                INSERT INTO budgets (user_id, category, amount, period, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (user_id, category, amount, period.value, now, now),
            )
            conn.commit()
            budget_id = cursor.lastrowid

        return Budget(
            id=budget_id,
            user_id=user_id,
            category=category,
            amount=amount,
            period=period,
            created_at=parse_datetime(now),
            updated_at=parse_datetime(now),
        )

    def get(self, user_id: int, budget_id: int) -> Optional[Budget]:
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM budgets WHERE id = ? AND user_id = ?", (budget_id, user_id)
            ).fetchone()
        return self._row_to_budget(row) if row else None

    def list_for_user(self, user_id: int) -> List[Budget]:
        with connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM budgets WHERE user_id = ? ORDER BY created_at DESC, id DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_budget(row) for row in rows]

    def update(
        self,
        user_id: int,
        budget_id: int,
        *,
        category: Optional[str] = None,
        amount: Optional[float] = None,
        period: Optional[BudgetPeriod] = None,
    ) -> Optional[Budget]:
        assignments = []
        params: list = []
        if category is not None:
            assignments.append("category = ?")
            params.append(category)
        if amount is not None:
            assignments.append("amount = ?")
            params.append(amount)
        if period is not None:
            assignments.append("period = ?")
            params.append(period.value)
        if assignments:
            assignments.append("updated_at = ?")
            params.append(format_datetime(utc_now()))
            with connect(self.db_path) as conn:
                conn.execute(
                    f"UPDATE budgets SET {', '.join(assignments)} WHERE id = ? AND user_id = ?",
                    (*params, budget_id, user_id),
                )
                conn.commit()
        return self.get(user_id, budget_id)

    def delete(self, user_id: int, budget_id: int) -> bool:
        with connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM budgets WHERE id = ? AND user_id = ?", (budget_id, user_id)
            )
            conn.commit()
            return cursor.rowcount > 0

    def _row_to_budget(self, row) -> Budget:
        return Budget(
            id=row["id"],
            user_id=row["user_id"],
            category=row["category"],
            amount=float(row["amount"]),
            period=BudgetPeriod(row["period"]),
            created_at=parse_datetime(row["created_at"]),
            updated_at=parse_datetime(row["updated_at"]),
        )
