"""Account models."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from quizhub.models.response import CamelModel


class Account(CamelModel):
    """Client-facing projection of an account.

    Never carries the password hash or the refresh-token state.
    """

    id: UUID
    full_name: str
    email: str
    username: str
    created_at: datetime
    updated_at: datetime


class AccountCredentials(BaseModel):
    """Account row including the secret columns. Internal only."""

    account: Account
    password_hash: str
    refresh_token_hash: Optional[str] = None
