"""Signing and verification of access and refresh JWTs."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt
import structlog

from quizhub.config import Settings
from quizhub.errors import TokenInvalidError
from quizhub.models.user import Account

logger = structlog.get_logger(__name__)

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and verifies tokens from immutable settings.

    Access and refresh tokens are signed with different secrets and carry a
    ``type`` claim, so neither can be used in place of the other.
    """

    def __init__(
        self,
        settings: Settings,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self._clock = clock or _utcnow

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.settings.access_token_expiry_minutes)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(days=self.settings.refresh_token_expiry_days)

    def issue_access_token(self, account: Account) -> str:
        """Create a signed access token for an account.

        Args:
            account: Account projection whose identity goes into the claims

        Returns:
            Encoded JWT string
        """
        now = self._clock()
        payload = {
            "sub": str(account.id),
            "email": account.email,
            "username": account.username,
            "full_name": account.full_name,
            "type": ACCESS_TOKEN_TYPE,
            "iat": now,
            "exp": now + self.access_token_ttl,
        }
        token = jwt.encode(
            payload, self.settings.access_token_secret, algorithm=JWT_ALGORITHM
        )
        logger.debug(
            "access_token_issued",
            account_id=str(account.id),
            expires_minutes=self.settings.access_token_expiry_minutes,
        )
        return token

    def issue_refresh_token(self, account_id: uuid.UUID) -> str:
        """Create a signed refresh token carrying only the account id.

        A random ``jti`` keeps two tokens issued within the same second
        distinct, which rotation depends on.

        Args:
            account_id: Account the token belongs to

        Returns:
            Encoded JWT string
        """
        now = self._clock()
        payload = {
            "sub": str(account_id),
            "jti": uuid.uuid4().hex,
            "type": REFRESH_TOKEN_TYPE,
            "iat": now,
            "exp": now + self.refresh_token_ttl,
        }
        token = jwt.encode(
            payload, self.settings.refresh_token_secret, algorithm=JWT_ALGORITHM
        )
        logger.debug(
            "refresh_token_issued",
            account_id=str(account_id),
            expires_days=self.settings.refresh_token_expiry_days,
        )
        return token

    def verify(self, token: str, secret: str, expected_type: Optional[str] = None) -> dict:
        """Decode a token and check signature, expiry and shape.

        Args:
            token: Encoded JWT string
            secret: Secret the token must have been signed with
            expected_type: Required value of the ``type`` claim, if any

        Returns:
            Decoded claims

        Raises:
            TokenInvalidError: With the reason the token was rejected
        """
        try:
            claims = jwt.decode(
                token,
                secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenInvalidError("jwt expired")
        except jwt.InvalidSignatureError:
            raise TokenInvalidError("invalid signature")
        except jwt.DecodeError:
            raise TokenInvalidError("jwt malformed")
        except jwt.InvalidTokenError as e:
            raise TokenInvalidError(f"invalid token: {e}")

        if expected_type is not None and claims.get("type") != expected_type:
            raise TokenInvalidError("invalid token type")

        try:
            uuid.UUID(claims["sub"])
        except (TypeError, ValueError):
            raise TokenInvalidError("invalid token subject")

        return claims

    def verify_access_token(self, token: str) -> dict:
        """Verify a token against the access secret."""
        return self.verify(token, self.settings.access_token_secret, ACCESS_TOKEN_TYPE)

    def verify_refresh_token(self, token: str) -> dict:
        """Verify a token against the refresh secret."""
        return self.verify(token, self.settings.refresh_token_secret, REFRESH_TOKEN_TYPE)
