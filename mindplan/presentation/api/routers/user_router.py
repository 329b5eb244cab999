"""API router for user authentication and profile."""

from fastapi import APIRouter, Depends, HTTPException, status

from mindplan.core.config import Settings
from mindplan.core.dependencies import (
    get_settings,
    get_subscription_service,
    get_user_service,
)
from mindplan.domain.models.user import User
from mindplan.presentation.api.dependencies import get_current_user
from mindplan.presentation.api.schemas.user_schemas import (
    UserLoginRequest,
    UserLoginResponse,
    UserProfileResponse,
    UserRegisterRequest,
    UserResponse,
)
from mindplan.services.subscription_service import SubscriptionService
from mindplan.services.user_service import UserService

router = APIRouter(prefix="/api/users", tags=["users"])


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        created_at=user.created_at,
    )


@router.post("/register", response_model=UserLoginResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: UserRegisterRequest,
    user_service: UserService = Depends(get_user_service),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
) -> UserLoginResponse:
    """Register a new user and sign them in."""
    try:
        user = user_service.register(
            email=request.email,
            password=request.password,
            full_name=request.full_name,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    # Every account starts on the free plan.
    subscription_service.open(user.id)

    return UserLoginResponse(
        access_token=user_service.create_token(user),
        user=_user_response(user),
    )


@router.post("/login", response_model=UserLoginResponse)
async def login(
    request: UserLoginRequest,
    user_service: UserService = Depends(get_user_service),
) -> UserLoginResponse:
    """Login and get access token."""
    user = user_service.authenticate(request.email, request.password)

    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    return UserLoginResponse(
        access_token=user_service.create_token(user),
        user=_user_response(user),
    )


@router.get("/me", response_model=UserProfileResponse)
async def get_profile(
    user: User = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
    settings: Settings = Depends(get_settings),
) -> UserProfileResponse:
    """Get current user profile."""
    return UserProfileResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        created_at=user.created_at,
        is_premium=subscription_service.is_premium(user.id),
        is_admin=user.email.lower() in settings.admin_emails,
    )
