"""Pydantic schemas for authentication."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.db.models import AccountType


class UserRegister(BaseModel):
    """Schema for user registration.

    Attributes:
        email: User's email address.
        password: User's password.
        password_confirm: Password confirmation.
        first_name: Given name.
        last_name: Family name.
        job_title: Optional job title.
        account_type: MEMBER, BRAND or SUPPLIER.
        invite_token: Optional organisation invite to accept on signup.
    """

    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    password_confirm: str
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field("", max_length=100)
    job_title: str | None = Field(None, max_length=255)
    account_type: AccountType = AccountType.MEMBER
    invite_token: str | None = None

    @field_validator("password_confirm")
    @classmethod
    def passwords_match(cls, v: str, info) -> str:
        """Validate that passwords match."""
        if "password" in info.data and v != info.data["password"]:
            raise ValueError("Passwords do not match")
        return v

    @field_validator("account_type")
    @classmethod
    def no_self_service_admin(cls, v: AccountType) -> AccountType:
        """Platform admin accounts are not created through signup."""
        if v == AccountType.ADMIN:
            raise ValueError("Invalid account type")
        return v


class UserLogin(BaseModel):
    """Schema for user login.

    Attributes:
        email: User's email address.
        password: User's password.
    """

    email: EmailStr
    password: str


class Token(BaseModel):
    """Schema for the issued access token."""

    access_token: str
    token_type: str = "bearer"


class UserResponse(BaseModel):
    """Schema for user information in responses."""

    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    job_title: str | None = None
    account_type: AccountType
    is_active: bool
    created_at: datetime | None = None
    last_login: datetime | None = None
    organisation_count: int = 0

    model_config = ConfigDict(from_attributes=True)


class RegisterResponse(BaseModel):
    """Response for registration endpoint."""

    success: bool = True
    message: str
    user: UserResponse
    token: Token
    organisation_id: str | None = None


class LoginResponse(BaseModel):
    """Response for login endpoint."""

    success: bool = True
    message: str
    token: Token
