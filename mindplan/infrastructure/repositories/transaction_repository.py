"""Repository for Transaction persistence."""

from datetime import date
from typing import List, Optional

from mindplan.domain.models.finance import RecurrenceType, Transaction, TransactionType
from mindplan.infrastructure.persistence.sqlite import (
    connect,
    ensure_parent_dir,
    format_date,
    format_datetime,
    parse_date,
    parse_datetime,
    utc_now,
)


class TransactionRepository:
    """Repository for managing income and expense transactions in SQLite."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        ensure_parent_dir(db_path)
        self._initialize_table()

    def _initialize_table(self) -> None:
        with connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS transactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    title TEXT NOT NULL,
                    amount REAL NOT NULL,
                    type TEXT NOT NULL,
                    category TEXT NOT NULL,
                    date TEXT NOT NULL,
                    is_recurring INTEGER NOT NULL DEFAULT 0,
                    recurrence_type TEXT,
                    recurrence_interval INTEGER,
                    next_occurrence TEXT,
                    end_date TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_transactions_user_date ON transactions(user_id, date DESC)"
            )
            conn.commit()

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
        now = format_datetime(utc_now())
        with connect(self.db_path) as conn:
            cursor = conn.execute(
                """
                INSERT INTO transactions (
                    user_id, title, amount, type, category, date, is_recurring,
                    recurrence_type, recurrence_interval, next_occurrence, end_date,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    title,
                    amount,
                    type.value,
                    category,
                    format_date(date),
                    int(recurrence_type is not None),
                    recurrence_type.value if recurrence_type else None,
                    recurrence_interval,
                    format_date(next_occurrence),
                    format_date(end_date),
                    now,
                    now,
                ),
            )
            conn.commit()
            transaction_id = cursor.lastrowid
            row = conn.execute(
                "SELECT * FROM transactions WHERE id = ?", (transaction_id,)
            ).fetchone()

        if not row:
            raise RuntimeError("Failed to persist transaction.")
        return self._row_to_transaction(row)

    def list_for_user(self, user_id: int) -> List[Transaction]:
        with connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM transactions WHERE user_id = ? ORDER BY date DESC, id DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_transaction(row) for row in rows]

    def count_for_user(self, user_id: int) -> int:
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM transactions WHERE user_id = ?", (user_id,)
            ).fetchone()
        return int(row[0])

    def delete(self, user_id: int, transaction_id: int) -> bool:
        with connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM transactions WHERE id = ? AND user_id = ?",
                (transaction_id, user_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def _row_to_transaction(self, row) -> Transaction:
        return Transaction(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            amount=float(row["amount"]),
            type=TransactionType(row["type"]),
            category=row["category"],
            date=parse_date(row["date"]),
            is_recurring=bool(row["is_recurring"]),
            recurrence_type=RecurrenceType(row["recurrence_type"]) if row["recurrence_type"] else None,
            recurrence_interval=row["recurrence_interval"],
            next_occurrence=parse_date(row["next_occurrence"]),
            end_date=parse_date(row["end_date"]),
            created_at=parse_datetime(row["created_at"]),
            updated_at=parse_datetime(row["updated_at"]),
        )
