"""FastAPI dependencies: service providers and the authentication gate."""

from typing import Optional
from uuid import UUID

import structlog
from fastapi import Cookie, Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from quizhub.config import Settings, get_settings
from quizhub.errors import TokenInvalidError, UnauthorizedError
from quizhub.models.user import Account
from quizhub.services.account_manager import AccountManager
from quizhub.services.account_store import AccountStore
from quizhub.services.quiz_service import QuizService
from quizhub.services.token_service import TokenService

logger = structlog.get_logger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

bearer_scheme = HTTPBearer(auto_error=False)


def get_token_service(settings: Settings = Depends(get_settings)) -> TokenService:
    return TokenService(settings)


def get_account_store() -> AccountStore:
    return AccountStore()


def get_account_manager(
    settings: Settings = Depends(get_settings),
    store: AccountStore = Depends(get_account_store),
    tokens: TokenService = Depends(get_token_service),
) -> AccountManager:
    return AccountManager(settings, store=store, tokens=tokens)


def get_quiz_service() -> QuizService:
    return QuizService()


async def get_current_account(
    request: Request,
    access_token: Optional[str] = Cookie(default=None, alias=ACCESS_COOKIE),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_token_service),
    store: AccountStore = Depends(get_account_store),
) -> Account:
    """Authenticate the request from the access-token cookie or Bearer header.

    The resolved account is also stored on ``request.state.account``.

    Returns:
        Account projection of the caller (no credential fields)

    Raises:
        UnauthorizedError: If the token is missing or invalid, or the
            account no longer exists
    """
    token = access_token or (credentials.credentials if credentials else None)
    if not token:
        raise UnauthorizedError("Unauthorized request")

    try:
        claims = tokens.verify_access_token(token)
    except TokenInvalidError as e:
        logger.info("access_token_rejected", reason=e.reason)
        raise UnauthorizedError(e.reason)

    account = await store.get_by_id(UUID(claims["sub"]))
    if account is None:
        raise UnauthorizedError("Invalid access token")

    request.state.account = account
    return account
