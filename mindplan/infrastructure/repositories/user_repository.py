"""Repository for User persistence."""

from typing import Optional

from mindplan.domain.models.user import User
from mindplan.infrastructure.persistence.sqlite import (
    connect,
    ensure_parent_dir,
    format_datetime,
    parse_datetime,
    utc_now,
)


class UserRepository:
    """Repository for managing User entities in SQLite."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        ensure_parent_dir(db_path)
        self._initialize_table()

    def _initialize_table(self) -> None:
        """Create users table if it doesn't exist and migrate schema if needed."""
        with connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    email TEXT UNIQUE NOT NULL,
                    password_hash TEXT NOT NULL,
                    full_name TEXT,
                    stripe_customer_id TEXT,
                    is_active INTEGER DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            cursor = conn.execute("PRAGMA table_info(users)")
            existing_columns = {row[1] for row in cursor.fetchall()}

            if "full_name" not in existing_columns:
                conn.execute("ALTER TABLE users ADD COLUMN full_name TEXT")

            if "stripe_customer_id" not in existing_columns:
                conn.execute("ALTER TABLE users ADD COLUMN stripe_customer_id TEXT")

            conn.execute("CREATE INDEX IF NOT EXISTS idx_users_email ON users(email)")
            conn.commit()

    def create(self, email: str, password_hash: str, full_name: Optional[str] = None) -> User:
        """Create a new user."""
        now = format_datetime(utc_now())

        with connect(self.db_path) as conn:
            cursor = conn.execute(
                """
                INSERT INTO users (email, password_hash, full_name, is_active, created_at, updated_at)
                VALUES (?, ?, ?, 1, ?, ?)
                """,
                (email, password_hash, full_name, now, now),
            )
            conn.commit()
            user_id = cursor.lastrowid

        return User(
            id=user_id,
            email=email,
            password_hash=password_hash,
            full_name=full_name,
            created_at=parse_datetime(now),
            updated_at=parse_datetime(now),
        )

    def get_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        with connect(self.db_path) as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

        return self._row_to_user(row) if row else None

    def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email."""
        with connect(self.db_path) as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()

        return self._row_to_user(row) if row else None

    def set_stripe_customer_id(self, user_id: int, customer_id: str) -> None:
        """Remember the Stripe customer so later checkouts reuse it."""
        with connect(self.db_path) as conn:
            conn.execute(
                "UPDATE users SET stripe_customer_id = ?, updated_at = ? WHERE id = ?",
                (customer_id, format_datetime(utc_now()), user_id),
            )
            conn.commit()

    def _row_to_user(self, row) -> User:
        """Convert database row to User entity."""
        return User(
            id=row["id"],
            email=row["email"],
            password_hash=row["password_hash"],
            full_name=row["full_name"],
            stripe_customer_id=row["stripe_customer_id"],
            is_active=bool(row["is_active"]),
            created_at=parse_datetime(row["created_at"]),
            updated_at=parse_datetime(row["updated_at"]),
        )
