"""Service for user authentication and management."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from mindplan.domain.models.user import User
from mindplan.domain.ports.persistence import UserStore


class UserService:
    """Service for managing user authentication and registration."""

    def __init__(
        self,
        user_repository: UserStore,
        jwt_secret: str,
        jwt_algorithm: str = "HS256",
        jwt_expiration_hours: int = 24,
    ):
        self.user_repository = user_repository
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.jwt_expiration_hours = jwt_expiration_hours

    def register(self, email: str, password: str, full_name: Optional[str] = None) -> User:
        """
        Create an account; emails are stored lowercased.

        Raises:
            ValueError: If the email is already taken
        """
        email = email.strip().lower()
        if self.user_repository.get_by_email(email):
            raise ValueError("An account with this email already exists")

        password_hash = bcrypt.hashpw(
            password.encode("utf-8"), bcrypt.gensalt()
        ).decode("utf-8")

        return self.user_repository.create(
            email=email,
            password_hash=password_hash,
            full_name=full_name,
        )

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the active user matching the credentials, or None."""
        user = self.user_repository.get_by_email(email.strip().lower())
        if not user or not user.is_active:
            return None

        if not bcrypt.checkpw(
            password.encode("utf-8"), user.password_hash.encode("utf-8")
        ):
            return None

        return user

    def create_token(self, user: User) -> str:
        """Create a signed bearer token for the user."""
        now = datetime.now(tz=timezone.utc)
        payload = {
            "user_id": user.id,
            "email": user.email,
            "exp": now + timedelta(hours=self.jwt_expiration_hours),
            "iat": now,
        }

        return jwt.encode(payload, self.jwt_secret, algorithm=self.jwt_algorithm)

    def verify_token(self, token: str) -> Optional[dict]:
        """
        Verify and decode a bearer token.

        Returns:
            Decoded payload if valid, None otherwise
        """
        try:
            return jwt.decode(token, self.jwt_secret, algorithms=[self.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            return None
        except jwt.InvalidTokenError:
            return None

    def get_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID."""
        return self.user_repository.get_by_id(user_id)
