"""Repository for Subscription persistence."""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from mindplan.domain.models.subscription import PlanType, Subscription, SubscriptionStatus
from mindplan.infrastructure.persistence.sqlite import (
    connect,
    ensure_parent_dir,
    format_datetime,
    parse_datetime,
    utc_now,
)

logger = logging.getLogger(__name__)

_TIME_BOX_COLUMNS = ("trial_end", "beta_end")

_UPDATABLE_COLUMNS = (
    "plan_type",
    "status",
    "trial_end",
    "beta_end",
    "is_beta_tester",
    "stripe_customer_id",
    "stripe_subscription_id",
    "current_period_start",
    "current_period_end",
)


class SubscriptionRepository:
    """Repository for managing Subscription entities in SQLite."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        ensure_parent_dir(db_path)
        self._initialize_table()

    def _initialize_table(self) -> None:
        """Create subscriptions table if it doesn't exist and migrate schema if needed."""
        with connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS subscriptions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    plan_type TEXT NOT NULL DEFAULT 'free',
                    status TEXT NOT NULL DEFAULT 'active',
                    trial_end TEXT,
                    beta_end TEXT,
                    is_beta_tester INTEGER NOT NULL DEFAULT 0,
                    stripe_customer_id TEXT,
                    stripe_subscription_id TEXT,
                    current_period_start TEXT,
                    current_period_end TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor = conn.execute("PRAGMA table_info(subscriptions)")
            existing_columns = {row[1] for row in cursor.fetchall()}

            if "beta_end" not in existing_columns:
                conn.execute("ALTER TABLE subscriptions ADD COLUMN beta_end TEXT")

            if "is_beta_tester" not in existing_columns:
                conn.execute(
                    "ALTER TABLE subscriptions ADD COLUMN is_beta_tester INTEGER NOT NULL DEFAULT 0"
                )

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_subscriptions_user_id ON subscriptions(user_id)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_subscriptions_stripe_subscription_id "
                "ON subscriptions(stripe_subscription_id)"
            )
            conn.commit()

    def create(
        self,
        user_id: int,
        created_at: Optional[datetime] = None,
        **fields: Any,
    ) -> Subscription:
        """Insert a subscription row; unspecified fields take the free/active defaults."""
        values = {
            "plan_type": PlanType.FREE,
            "status": SubscriptionStatus.ACTIVE,
            "is_beta_tester": False,
        }
        values.update(self._validated(fields))
        created = format_datetime(created_at or utc_now())
        columns = ["user_id", *values.keys(), "created_at", "updated_at"]
        params = [
            user_id,
            *(self._to_db(value) for value in values.values()),
            created,
            created,
        ]
        placeholders = ", ".join("?" for _ in columns)

        with connect(self.db_path) as conn:
            cursor = conn.execute(
                f"INSERT INTO subscriptions ({', '.join(columns)}) VALUES ({placeholders})",
                params,
            )
            conn.commit()
            subscription_id = cursor.lastrowid

        subscription = self.get_by_id(subscription_id)
        if subscription is None:
            raise RuntimeError("Failed to persist subscription.")
        return subscription

    def get_by_id(self, subscription_id: int) -> Optional[Subscription]:
        """Get subscription by ID."""
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM subscriptions WHERE id = ?", (subscription_id,)
            ).fetchone()

        return self._row_to_subscription(row) if row else None

    def get_latest_for_user(self, user_id: int) -> Optional[Subscription]:
        """Get the most recent subscription for a user; older duplicates are ignored."""
        with connect(self.db_path) as conn:
            row = conn.execute(
                """
                SELECT * FROM subscriptions
                WHERE user_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT 1
                """,
                (user_id,),
            ).fetchone()

        return self._row_to_subscription(row) if row else None

    def get_by_stripe_subscription_id(
        self, stripe_subscription_id: str
    ) -> Optional[Subscription]:
        """Get subscription by Stripe subscription ID."""
        with connect(self.db_path) as conn:
            row = conn.execute(
                """
                SELECT * FROM subscriptions
                WHERE stripe_subscription_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT 1
                """,
                (stripe_subscription_id,),
            ).fetchone()

        return self._row_to_subscription(row) if row else None

    def update(self, subscription_id: int, **fields: Any) -> Optional[Subscription]:
        """Apply a targeted field update and return the refreshed row."""
        values = self._validated(fields)
        if values:
            assignments, params = self._assignments(values)
            with connect(self.db_path) as conn:
                conn.execute(
                    f"UPDATE subscriptions SET {assignments} WHERE id = ?",
                    (*params, subscription_id),
                )
                conn.commit()
        return self.get_by_id(subscription_id)

    def update_by_stripe_subscription_id(self, stripe_subscription_id: str, **fields: Any) -> int:
        """Update every row linked to a Stripe subscription; returns the affected row count."""
        values = self._validated(fields)
        if not values:
            return 0
        assignments, params = self._assignments(values)
        with connect(self.db_path) as conn:
            cursor = conn.execute(
                f"UPDATE subscriptions SET {assignments} WHERE stripe_subscription_id = ?",
                (*params, stripe_subscription_id),
            )
            conn.commit()
            return cursor.rowcount

    def list_time_boxed(self) -> List[Subscription]:
        """Premium rows whose entitlement depends on a trial or beta end date."""
        with connect(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM subscriptions
                WHERE plan_type = ? AND status IN (?, ?)
                ORDER BY id
                """,
                (
                    PlanType.PREMIUM.value,
                    SubscriptionStatus.TRIAL.value,
                    SubscriptionStatus.BETA.value,
                ),
            ).fetchall()

        return [self._row_to_subscription(row) for row in rows]

    def list_beta_testers(self) -> List[Subscription]:
        with connect(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT * FROM subscriptions
                WHERE status = ? AND is_beta_tester = 1
                ORDER BY created_at DESC
                """,
                (SubscriptionStatus.BETA.value,),
            ).fetchall()

        return [self._row_to_subscription(row) for row in rows]

    @staticmethod
    def _validated(fields: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(fields) - set(_UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Unknown subscription fields: {', '.join(sorted(unknown))}")
        return dict(fields)

    def _assignments(self, values: Dict[str, Any]) -> tuple[str, list]:
        columns = [*values.keys(), "updated_at"]
        params = [*(self._to_db(value) for value in values.values()), format_datetime(utc_now())]
        return ", ".join(f"{column} = ?" for column in columns), params

    @staticmethod
    def _to_db(value: Any) -> Any:
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, datetime):
            return format_datetime(value)
        return value

    def _row_to_subscription(self, row) -> Subscription:
        """Convert database row to Subscription entity."""
        try:
            plan_type = PlanType(row["plan_type"])
        except ValueError:
            logger.warning("Subscription %s has unknown plan %r", row["id"], row["plan_type"])
            plan_type = PlanType.FREE

        try:
            status = SubscriptionStatus.from_provider(row["status"])
        except ValueError:
            logger.warning("Subscription %s has unknown status %r", row["id"], row["status"])
            status = SubscriptionStatus.CANCELLED

        invalid: List[str] = []
        time_boxes = {column: self._time_box(row, column, invalid) for column in _TIME_BOX_COLUMNS}

        return Subscription(
            id=row["id"],
            user_id=row["user_id"],
            plan_type=plan_type,
            status=status,
            trial_end=time_boxes["trial_end"],
            beta_end=time_boxes["beta_end"],
            is_beta_tester=bool(row["is_beta_tester"]),
            stripe_customer_id=row["stripe_customer_id"],
            stripe_subscription_id=row["stripe_subscription_id"],
            current_period_start=parse_datetime(row["current_period_start"]),
            current_period_end=parse_datetime(row["current_period_end"]),
            created_at=parse_datetime(row["created_at"]),
            updated_at=parse_datetime(row["updated_at"]),
            invalid_timestamps=invalid,
        )

    @staticmethod
    def _time_box(row, column: str, invalid: List[str]) -> Optional[datetime]:
        try:
            return parse_datetime(row[column], strict=True)
        except ValueError:
            logger.warning(
                "Subscription %s has malformed %s %r; treating it as ended",
                row["id"],
                column,
                row[column],
            )
            invalid.append(column)
            return None
