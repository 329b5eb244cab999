import os
from pathlib import Path
from typing import Optional, Set

from dotenv import load_dotenv


class Settings:
    """Centralised application configuration sourced from environment variables."""

    def __init__(self) -> None:
        load_dotenv()
        self.database_path = Path(os.getenv("DATABASE_PATH", "data/mindplan.db")).resolve()
        self.jwt_secret = os.getenv("JWT_SECRET", "change-me")
        self.jwt_expiration_hours = self._get_int("JWT_EXPIRATION_HOURS", default=24)
        self.stripe_secret_key = os.getenv("STRIPE_SECRET_KEY")
        self.stripe_webhook_secret = os.getenv("STRIPE_WEBHOOK_SECRET")
        self.stripe_price_premium_monthly = os.getenv("STRIPE_PRICE_PREMIUM_MONTHLY")
        self.frontend_base_url = os.getenv("FRONTEND_BASE_URL", "http://localhost:5173").rstrip("/")
        self.trial_days = self._get_int("TRIAL_DAYS", default=7)
        self.beta_days = self._get_int("BETA_DAYS", default=37)
        self.free_transaction_limit = self._get_int("FREE_TRANSACTION_LIMIT", default=5)
        self.admin_emails = self._get_csv_set("ADMIN_EMAILS")
        origins = os.getenv("CORS_ALLOW_ORIGINS")
        if origins:
            self.cors_allow_origins = [item.strip() for item in origins.split(",") if item.strip()]
        else:
            self.cors_allow_origins = ["*"]

    @staticmethod
    def _get_int(key: str, default: Optional[int] = None) -> int:
        value = os.getenv(key)
        if value is None:
            if default is None:
                raise RuntimeError(f"Missing required environment variable: {key}")
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise RuntimeError(f"Environment variable {key} must be an integer") from exc

    @staticmethod
    def _get_csv_set(key: str) -> Set[str]:
        raw = os.getenv(key) or ""
        return {item.strip().lower() for item in raw.split(",") if item.strip()}
