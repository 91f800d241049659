"""
Pydantic schemas for authentication endpoints.

WHY: Schemas define request/response contracts, providing:
1. Automatic validation of request data
2. API documentation (OpenAPI/Swagger)
3. Clear separation between API and database models
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from arsenal.models.user import UserRole
from arsenal.schemas.common import PageMeta


class LoginRequest(BaseModel):
    """
    Login request schema.
    """

    email: EmailStr = Field(..., description="User's email address")
    password: str = Field(
        ...,
        min_length=8,
        max_length=100,
        description="User's password",
    )

    class Config:
        json_schema_extra = {
            "example": {
                "email": "ops@example.com",
                "password": "SecurePassword123!",
            }
        }


class RegisterRequest(BaseModel):
    """
    User registration request schema.

    WHY: Self-registered accounts always start as VIEWER; an admin
    promotes them.
    """

    email: EmailStr = Field(..., description="User's email address (must be unique)")
    password: str = Field(
        ...,
        min_length=8,
        max_length=100,
        description="Password (min 8 characters)",
    )
    name: str = Field(..., min_length=1, max_length=255, description="User's full name")


class TokenResponse(BaseModel):
    """
    JWT token response schema.
    """

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type (always 'bearer')")
    expires_in: int = Field(..., description="Token expiration time in seconds")


class UserResponse(BaseModel):
    """
    User response schema (no password hash).
    """

    id: int
    email: str
    name: str
    role: UserRole
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UserListResponse(PageMeta):
    items: List[UserResponse]


class UserCreateRequest(BaseModel):
    """
    Admin-created account.

    WHY: Unlike self-registration, an admin picks the role up front, which
    is how operator accounts (OPS, ANALYST, MANAGER) come into existence.
    """

    email: EmailStr = Field(..., description="User's email address (must be unique)")
    password: str = Field(..., min_length=8, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    role: UserRole = Field(default=UserRole.VIEWER)


class UserUpdateRequest(BaseModel):
    """Partial update of a user; omitted fields are left alone."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
