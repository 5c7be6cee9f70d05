"""Auth request and response models with validation."""

import re
from typing import Optional

from pydantic import field_validator

from quizhub.models.request import RequestModel
from quizhub.models.response import CamelModel
from quizhub.models.user import Account

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
USERNAME_RE = re.compile(r"^[a-zA-Z0-9_.-]+$")


class RegisterRequest(RequestModel):
    """New account registration.

    Blank fields are let through here so the account manager can answer
    with its own "All fields are required" error.

    Attributes:
        full_name: Display name
        email: Contact address, stored lowercase
        username: Login handle, stored lowercase
        password: Plain-text password (hashed before storage)
    """

    full_name: str
    email: str
    username: str
    password: str

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        """Reject obviously malformed email addresses."""
        if v.strip() and not EMAIL_RE.match(v.strip()):
            raise ValueError("Email address is not valid")
        return v

    @field_validator("username")
    @classmethod
    def username_valid_chars(cls, v: str) -> str:
        """Ensure username contains only alphanumerics, dots, underscores or hyphens."""
        if v.strip() and not USERNAME_RE.match(v.strip()):
            raise ValueError(
                "Username must contain only alphanumeric characters, "
                "dots, underscores, or hyphens"
            )
        return v


class LoginRequest(RequestModel):
    """Login credentials; either email or username identifies the account."""

    email: Optional[str] = None
    username: Optional[str] = None
    password: str


class RefreshRequest(RequestModel):
    """Body form of the refresh call. The cookie takes precedence."""

    refresh_token: Optional[str] = None


class ChangePasswordRequest(RequestModel):
    """Password change for the authenticated account."""

    old_password: str
    new_password: str


class UpdateAccountRequest(RequestModel):
    """Profile update; only provided, non-blank fields are applied."""

    full_name: Optional[str] = None
    email: Optional[str] = None

    @field_validator("email")
    @classmethod
    def email_format(cls, v: Optional[str]) -> Optional[str]:
        """Reject obviously malformed email addresses when provided."""
        if v and v.strip() and not EMAIL_RE.match(v.strip()):
            raise ValueError("Email address is not valid")
        return v


class TokenPair(CamelModel):
    """Freshly issued access and refresh tokens."""

    access_token: str
    refresh_token: str


class LoginResponse(TokenPair):
    """Successful login: the token pair plus the account projection."""

    user: Account
