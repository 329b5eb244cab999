"""User domain model for account authentication and billing linkage."""

from datetime import datetime
from typing import Optional


class User:
    """
    User entity.

    Attributes:
        id: Unique identifier
        email: User email address (unique)
        password_hash: Hashed password
        full_name: Optional display name
        stripe_customer_id: Stripe customer created on first checkout
        is_active: Whether the account can sign in
        created_at: Account creation timestamp
        updated_at: Last update timestamp
    """

    def __init__(
        self,
        id: int,
        email: str,
        password_hash: str,
        full_name: Optional[str] = None,
        stripe_customer_id: Optional[str] = None,
        is_active: bool = True,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        self.id = id
        self.email = email
        self.password_hash = password_hash
        self.full_name = full_name
        self.stripe_customer_id = stripe_customer_id
        self.is_active = is_active
        self.created_at = created_at
        self.updated_at = updated_at

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email} active={self.is_active}>"
