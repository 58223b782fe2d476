"""Authentication API routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from app.auth.schemas import (
    LoginResponse,
    RegisterResponse,
    UserLogin,
    UserRegister,
    UserResponse,
)
from app.auth.service import AuthService, get_auth_service
from app.config import get_settings
from app.dependencies import CurrentUser, get_db
from app.organisations.schemas import SuccessResponse

router = APIRouter()


def get_service(db: Annotated[Session, Depends(get_db)]) -> AuthService:
    """Get auth service dependency."""
    return get_auth_service(db)


def _set_auth_cookie(response: Response, access_token: str) -> None:
    settings = get_settings()
    response.set_cookie(
        key="access_token",
        value=access_token,
        httponly=True,
        secure=settings.environment == "production",
        samesite="lax",
        max_age=settings.access_token_expire_minutes * 60,
        path="/",
    )


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: UserRegister,
    response: Response,
    service: Annotated[AuthService, Depends(get_service)],
):
    """Register a new user.

    With ``invite_token`` (from ``/signup?invite=<token>``) the new account
    joins the inviting organisation straight away.

    Args:
        data: Registration data.
        response: FastAPI response object.
        service: Auth service.

    Returns:
        RegisterResponse: Created user and access token.
    """
    user, token, membership = service.register(data)
    _set_auth_cookie(response, token.access_token)

    message = "Registration successful."
    if membership is not None:
        message = f"Registration successful. You have joined {membership.organisation.name}."

    return RegisterResponse(
        message=message,
        user=service.get_user_response(user),
        token=token,
        organisation_id=membership.organisation_id if membership else None,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    data: UserLogin,
    response: Response,
    service: Annotated[AuthService, Depends(get_service)],
):
    """Login and receive an access token (also set as a cookie).

    Args:
        data: Login credentials.
        response: FastAPI response object.
        service: Auth service.

    Returns:
        LoginResponse: Access token.
    """
    _user, token = service.login(data)
    _set_auth_cookie(response, token.access_token)
    return LoginResponse(message="Login successful.", token=token)


@router.post("/logout", response_model=SuccessResponse)
async def logout(response: Response):
    """Logout user by clearing the auth cookie."""
    response.delete_cookie("access_token", path="/")
    return SuccessResponse(message="Logged out")


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: CurrentUser,
    service: Annotated[AuthService, Depends(get_service)],
):
    """Get current user information.

    Args:
        current_user: Current authenticated user.
        service: Auth service.

    Returns:
        UserResponse: User information.
    """
    return service.get_user_response(current_user)
