"""Account and authentication API endpoints."""

from typing import Optional

import structlog
from fastapi import APIRouter, Cookie, Depends, Response, status

from quizhub.api.dependencies import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    get_account_manager,
    get_current_account,
    get_quiz_service,
)
from quizhub.config import Settings, get_settings
from quizhub.models.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
    UpdateAccountRequest,
)
from quizhub.models.quiz import AttemptSummary
from quizhub.models.response import ApiResponse
from quizhub.models.user import Account
from quizhub.services.account_manager import AccountManager
from quizhub.services.quiz_service import QuizService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


def _set_auth_cookies(response: Response, settings: Settings, pair: TokenPair) -> None:
    """Set both tokens as HTTP-only cookies."""
    response.set_cookie(
        key=ACCESS_COOKIE,
        value=pair.access_token,
        max_age=settings.access_token_expiry_minutes * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=pair.refresh_token,
        max_age=settings.refresh_token_expiry_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def _clear_auth_cookies(response: Response, settings: Settings) -> None:
    """Clear both token cookies (attributes match _set_auth_cookies)."""
    for key in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            key=key,
            httponly=True,
            secure=settings.cookie_secure,
            samesite="lax",
        )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    manager: AccountManager = Depends(get_account_manager),
) -> ApiResponse[Account]:
    """Register a new account.

    Raises:
        400: If a field is blank
        409: If the email or username is taken
    """
    account = await manager.register(
        full_name=request.full_name,
        email=request.email,
        username=request.username,
        password=request.password,
    )
    return ApiResponse(
        status_code=status.HTTP_201_CREATED,
        data=account,
        message="User registered successfully",
    )


@router.post("/login")
async def login(
    request: LoginRequest,
    response: Response,
    manager: AccountManager = Depends(get_account_manager),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[LoginResponse]:
    """Log in with email or username and password.

    Tokens are returned in the body and set as HTTP-only cookies.
    """
    result = await manager.login(
        password=request.password,
        email=request.email,
        username=request.username,
    )
    _set_auth_cookies(response, settings, result)
    return ApiResponse(data=result, message="User logged in successfully")


@router.post("/logout")
async def logout(
    response: Response,
    current_account: Account = Depends(get_current_account),
    manager: AccountManager = Depends(get_account_manager),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[dict]:
    """Invalidate the refresh token and clear the auth cookies."""
    await manager.logout(current_account.id)
    _clear_auth_cookies(response, settings)
    return ApiResponse(data={}, message="User logged out")


@router.post("/refresh-token")
async def refresh_token(
    response: Response,
    body: Optional[RefreshRequest] = None,
    refresh_cookie: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE),
    manager: AccountManager = Depends(get_account_manager),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[TokenPair]:
    """Rotate the refresh token and issue a new access token.

    The refresh token comes from the cookie, or from the body when no
    cookie is present.
    """
    incoming = refresh_cookie or (body.refresh_token if body else None)
    pair = await manager.refresh(incoming)
    _set_auth_cookies(response, settings, pair)
    return ApiResponse(data=pair, message="Access token refreshed")


@router.patch("/update-account")
async def update_account(
    request: UpdateAccountRequest,
    current_account: Account = Depends(get_current_account),
    manager: AccountManager = Depends(get_account_manager),
) -> ApiResponse[Account]:
    """Update the caller's full name and/or email."""
    account = await manager.update_profile(
        current_account.id,
        full_name=request.full_name,
        email=request.email,
    )
    return ApiResponse(data=account, message="Account details updated successfully")


@router.get("/current-user")
async def current_user(
    current_account: Account = Depends(get_current_account),
    manager: AccountManager = Depends(get_account_manager),
) -> ApiResponse[Account]:
    """Return the authenticated account."""
    return ApiResponse(
        data=manager.get_current_account(current_account),
        message="Current user data fetched",
    )


@router.post("/change-password")
async def change_password(
    request: ChangePasswordRequest,
    current_account: Account = Depends(get_current_account),
    manager: AccountManager = Depends(get_account_manager),
) -> ApiResponse[dict]:
    """Change the caller's password after checking the old one."""
    await manager.change_password(
        current_account.id,
        old_password=request.old_password,
        new_password=request.new_password,
    )
    return ApiResponse(data={}, message="Password changed successfully")


@router.get("/quiz-history")
async def quiz_history(
    current_account: Account = Depends(get_current_account),
    quizzes: QuizService = Depends(get_quiz_service),
) -> ApiResponse[list[AttemptSummary]]:
    """The caller's attempts, newest first."""
    attempts = await quizzes.list_attempts(current_account.id)
    return ApiResponse(data=attempts, message="Quiz history fetched successfully")
