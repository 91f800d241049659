"""
Authentication API endpoints.

WHY: These endpoints provide the authentication flow:
1. Register - Create a VIEWER account
2. Login - Authenticate user and return JWT token
3. Me - Get current user information

Security:
- Passwords are compared using constant-time comparison (bcrypt)
- Generic error messages prevent user enumeration attacks
- Failed logins are logged with the attempted email
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from arsenal.core.auth import verify_password, create_access_token, hash_password
from arsenal.core.config import settings
from arsenal.core.deps import get_current_user
from arsenal.core.exceptions import AuthenticationError
from arsenal.db.session import get_db
from arsenal.dao.user import UserDAO
from arsenal.models.user import User, UserRole
from arsenal.schemas.auth import LoginRequest, RegisterRequest, TokenResponse, UserResponse


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new user",
)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    """
    Register a new user account with the VIEWER role.

    Raises:
        ResourceAlreadyExistsError (409): If the email is taken
    """
    user = await UserDAO(User, db).create_user(
        email=data.email,
        hashed_password=hash_password(data.password),
        name=data.name,
        role=UserRole.VIEWER,
    )
    await db.commit()
    logger.info(f"User {user.id} registered")
    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    status_code=status.HTTP_200_OK,
    summary="Login user",
    description="Authenticate user with email and password, returns JWT token",
)
async def login(
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> TokenResponse:
    """
    Authenticate user and return JWT access token.

    Raises:
        AuthenticationError (401): If credentials are invalid
    """
    user = await UserDAO(User, db).get_by_email(credentials.email)

    # WHY: Same message for unknown email and wrong password
    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.warning(f"Failed login for {credentials.email}")
        raise AuthenticationError(message="Invalid email or password")

    if not user.is_active:
        logger.warning(f"Login attempt for inactive user {user.id}")
        raise AuthenticationError(message="Account is inactive", user_id=user.id)

    access_token = create_access_token({"user_id": user.id, "role": user.role.value})
    logger.info(f"User {user.id} logged in")

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.JWT_EXPIRATION_MINUTES * 60,
    )


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
)
async def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the authenticated user."""
    return UserResponse.model_validate(current_user)
