"""Account lifecycle: registration, login, refresh rotation, logout, profile.

Refresh-token contract: an account holds at most one valid refresh token.
Login and refresh overwrite it, logout clears it, and any token that no
longer matches the stored value is rejected even if its signature and
expiry are fine. This makes one active session per account.
"""

import asyncio
import base64
import hashlib
import secrets
from typing import Optional
from uuid import UUID

import bcrypt
import structlog

from quizhub.config import Settings
from quizhub.errors import (
    BadRequestError,
    ConflictError,
    NotFoundError,
    TokenInvalidError,
    UnauthorizedError,
)
from quizhub.models.auth import LoginResponse, TokenPair
from quizhub.models.user import Account
from quizhub.services.account_store import AccountStore
from quizhub.services.token_service import TokenService

logger = structlog.get_logger(__name__)

BCRYPT_MAX_BYTES = 72


def _prepare_password(password: str) -> bytes:
    """Bring a password within bcrypt's 72-byte input limit.

    Longer passwords are SHA-256 hashed and base64 encoded first.
    """
    password_bytes = password.encode("utf-8")
    if len(password_bytes) <= BCRYPT_MAX_BYTES:
        return password_bytes
    return base64.b64encode(hashlib.sha256(password_bytes).digest())


def digest_refresh_token(token: str) -> str:
    """SHA-256 hex digest under which a refresh token is stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class AccountManager:
    """Orchestrates the credential store and the token service."""

    def __init__(
        self,
        settings: Settings,
        store: Optional[AccountStore] = None,
        tokens: Optional[TokenService] = None,
    ):
        self.settings = settings
        self.store = store or AccountStore()
        self.tokens = tokens or TokenService(settings)

    async def hash_password(self, password: str) -> str:
        """Hash a password with bcrypt in a worker thread.

        Args:
            password: Plain-text password

        Returns:
            Bcrypt hash string
        """
        salt = bcrypt.gensalt(rounds=self.settings.bcrypt_rounds)
        hashed = await asyncio.to_thread(bcrypt.hashpw, _prepare_password(password), salt)
        return hashed.decode("utf-8")

    async def verify_password(self, password: str, password_hash: str) -> bool:
        """Check a password against a bcrypt hash in a worker thread."""
        return await asyncio.to_thread(
            bcrypt.checkpw,
            _prepare_password(password),
            password_hash.encode("utf-8"),
        )

    async def register(
        self,
        full_name: str,
        email: str,
        username: str,
        password: str,
    ) -> Account:
        """Create an account.

        Raises:
            BadRequestError: If any field is empty or whitespace only
            ConflictError: If the email or username is already taken
        """
        if any(_is_blank(field) for field in (full_name, email, username, password)):
            raise BadRequestError("All fields are required")

        email = email.strip().lower()
        username = username.strip().lower()

        if await self.store.exists(email, username):
            logger.info("registration_conflict", username=username)
            raise ConflictError("User with this email or username already exists")

        password_hash = await self.hash_password(password)
        account = await self.store.create_account(
            full_name=full_name.strip(),
            email=email,
            username=username,
            password_hash=password_hash,
        )

        logger.info("account_registered", account_id=str(account.id), username=username)
        return account

    async def _issue_tokens(self, account: Account) -> TokenPair:
        """Issue a token pair and make the new refresh token the only valid one."""
        access_token = self.tokens.issue_access_token(account)
        refresh_token = self.tokens.issue_refresh_token(account.id)
        await self.store.set_refresh_token_hash(account.id, digest_refresh_token(refresh_token))
        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    async def login(
        self,
        password: str,
        email: Optional[str] = None,
        username: Optional[str] = None,
    ) -> LoginResponse:
        """Authenticate with email or username and password.

        Any refresh token from an earlier session stops being valid.

        Raises:
            BadRequestError: If neither email nor username is given
            NotFoundError: If no account matches
            UnauthorizedError: If the password is wrong
        """
        email = None if _is_blank(email) else email.strip().lower()
        username = None if _is_blank(username) else username.strip().lower()

        if email is None and username is None:
            raise BadRequestError("Email or username is required")

        credentials = await self.store.get_credentials_by_login(email=email, username=username)
        if credentials is None:
            raise NotFoundError("User not found")

        if not await self.verify_password(password or "", credentials.password_hash):
            logger.warning("login_failed", account_id=str(credentials.account.id))
            raise UnauthorizedError("Invalid credentials")

        pair = await self._issue_tokens(credentials.account)

        logger.info("login_succeeded", account_id=str(credentials.account.id))
        return LoginResponse(
            user=credentials.account,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
        )

    async def logout(self, account_id: UUID) -> None:
        """Clear the stored refresh token. Clearing an absent one is fine."""
        await self.store.set_refresh_token_hash(account_id, None)
        logger.info("logout_succeeded", account_id=str(account_id))

    async def refresh(self, incoming_refresh_token: Optional[str]) -> TokenPair:
        """Exchange the current refresh token for a new pair.

        Raises:
            UnauthorizedError: If the token is missing, fails verification,
                belongs to no account, or is not the account's current token
        """
        if _is_blank(incoming_refresh_token):
            raise UnauthorizedError("Unauthorized request")

        try:
            claims = self.tokens.verify_refresh_token(incoming_refresh_token)
        except TokenInvalidError as e:
            raise UnauthorizedError(e.reason)

        account_id = UUID(claims["sub"])
        credentials = await self.store.get_credentials(account_id)
        if credentials is None:
            raise UnauthorizedError("Invalid refresh token")

        stored = credentials.refresh_token_hash
        if stored is None or not secrets.compare_digest(
            stored, digest_refresh_token(incoming_refresh_token)
        ):
            logger.warning("refresh_token_reuse_detected", account_id=str(account_id))
            raise UnauthorizedError("Refresh token is expired or used")

        pair = await self._issue_tokens(credentials.account)
        logger.info("refresh_token_rotated", account_id=str(account_id))
        return pair

    async def change_password(
        self, account_id: UUID, old_password: str, new_password: str
    ) -> None:
        """Replace the password after checking the old one.

        Raises:
            BadRequestError: If the old password is wrong or the new one is blank
            NotFoundError: If the account no longer exists
        """
        credentials = await self.store.get_credentials(account_id)
        if credentials is None:
            raise NotFoundError("User not found")

        if not await self.verify_password(old_password or "", credentials.password_hash):
            raise BadRequestError("Old password is incorrect")

        if _is_blank(new_password):
            raise BadRequestError("New password is required")

        await self.set_password(account_id, new_password)

    async def set_password(self, account_id: UUID, password: str) -> None:
        """Hash and store a new password. The only path that rewrites the hash."""
        await self.store.set_password_hash(account_id, await self.hash_password(password))

    def get_current_account(self, account: Account) -> Account:
        """Return the identity the authentication gate attached to the request.

        The gate reads the account from the store on every request, so this
        is already the freshest projection.
        """
        return account

    async def update_profile(
        self,
        account_id: UUID,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Account:
        """Merge the provided profile fields into the account.

        Raises:
            BadRequestError: If neither field is provided
            ConflictError: If the email is used by another account
            NotFoundError: If the account no longer exists
        """
        full_name = None if _is_blank(full_name) else full_name.strip()
        email = None if _is_blank(email) else email.strip().lower()

        if full_name is None and email is None:
            raise BadRequestError("All fields are required")

        if email is not None and await self.store.email_taken_by_other(email, account_id):
            raise ConflictError("Email is already in use")

        account = await self.store.update_profile(account_id, full_name=full_name, email=email)
        if account is None:
            raise NotFoundError("User not found")
        return account
