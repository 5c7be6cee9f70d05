"""Account persistence: identity, credential hash and refresh-token state."""

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

import asyncpg
import structlog

from quizhub.database import get_pool
from quizhub.errors import ConflictError
from quizhub.models.user import Account, AccountCredentials

logger = structlog.get_logger(__name__)

_PROJECTION = "id, full_name, email, username, created_at, updated_at"


def _row_to_account(row) -> Account:
    return Account(
        id=row["id"],
        full_name=row["full_name"],
        email=row["email"],
        username=row["username"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_credentials(row) -> AccountCredentials:
    return AccountCredentials(
        account=_row_to_account(row),
        password_hash=row["password_hash"],
        refresh_token_hash=row["refresh_token_hash"],
    )


class AccountStore:
    """Credential store backed by the ``accounts`` table.

    Read paths that feed responses select only the projection columns;
    the credential columns are read only through ``get_credentials*``.
    """

    async def create_account(
        self,
        full_name: str,
        email: str,
        username: str,
        password_hash: str,
    ) -> Account:
        """Insert a new account.

        Args:
            full_name: Display name
            email: Lowercased email
            username: Lowercased username
            password_hash: Bcrypt hash of the password

        Returns:
            Created Account projection

        Raises:
            ConflictError: If the email or username is already taken
        """
        account_id = uuid4()
        now = datetime.now(timezone.utc)

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO accounts (id, full_name, email, username, password_hash, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    """,
                    account_id,
                    full_name,
                    email,
                    username,
                    password_hash,
                    now,
                    now,
                )
        except asyncpg.UniqueViolationError:
            raise ConflictError("User with this email or username already exists")

        logger.info("account_created", account_id=str(account_id), username=username)

        return Account(
            id=account_id,
            full_name=full_name,
            email=email,
            username=username,
            created_at=now,
            updated_at=now,
        )

    async def exists(self, email: str, username: str) -> bool:
        """Check whether an account already uses the email or username (case-insensitive)."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            found = await conn.fetchval(
                """
                SELECT EXISTS (
                    SELECT 1 FROM accounts
                    WHERE LOWER(email) = LOWER($1) OR LOWER(username) = LOWER($2)
                )
                """,
                email,
                username,
            )

        return bool(found)

    async def email_taken_by_other(self, email: str, account_id: UUID) -> bool:
        """Check whether another account already uses the email."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            found = await conn.fetchval(
                """
                SELECT EXISTS (
                    SELECT 1 FROM accounts WHERE LOWER(email) = LOWER($1) AND id <> $2
                )
                """,
                email,
                account_id,
            )

        return bool(found)

    async def get_by_id(self, account_id: UUID) -> Optional[Account]:
        """Get the account projection by id.

        Returns:
            Account or None if not found
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_PROJECTION} FROM accounts WHERE id = $1",
                account_id,
            )

        if row is None:
            return None
        return _row_to_account(row)

    async def get_credentials(self, account_id: UUID) -> Optional[AccountCredentials]:
        """Get an account together with its password hash and refresh-token digest."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_PROJECTION}, password_hash, refresh_token_hash
                FROM accounts
                WHERE id = $1
                """,
                account_id,
            )

        if row is None:
            return None
        return _row_to_credentials(row)

    async def get_credentials_by_login(
        self,
        email: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Optional[AccountCredentials]:
        """Find an account by email or username (case-insensitive).

        Args:
            email: Email to match, if given
            username: Username to match, if given

        Returns:
            AccountCredentials or None if no account matches
        """
        pool = await get_pool()

        async with pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_PROJECTION}, password_hash, refresh_token_hash
                FROM accounts
                WHERE ($1::text IS NOT NULL AND LOWER(email) = LOWER($1))
                   OR ($2::text IS NOT NULL AND LOWER(username) = LOWER($2))
                LIMIT 1
                """,
                email,
                username,
            )

        if row is None:
            return None
        return _row_to_credentials(row)

    async def set_refresh_token_hash(
        self, account_id: UUID, token_hash: Optional[str]
    ) -> None:
        """Overwrite (or clear, with None) the account's refresh-token digest."""
        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE accounts
                SET refresh_token_hash = $1
                WHERE id = $2
                """,
                token_hash,
                account_id,
            )

    async def set_password_hash(self, account_id: UUID, password_hash: str) -> None:
        """Overwrite the account's password hash. No other column is touched."""
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        async with pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE accounts
                SET password_hash = $1, updated_at = $2
                WHERE id = $3
                """,
                password_hash,
                now,
                account_id,
            )

        logger.info("account_password_updated", account_id=str(account_id))

    async def update_profile(
        self,
        account_id: UUID,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Optional[Account]:
        """Update profile fields that are not None.

        Args:
            account_id: Account to update
            full_name: New display name (if provided)
            email: New lowercased email (if provided)

        Returns:
            Updated Account, or None if the account does not exist

        Raises:
            ConflictError: If the email is taken by another account
        """
        set_clauses = []
        params = []
        param_idx = 1

        if full_name is not None:
            set_clauses.append(f"full_name = ${param_idx}")
            params.append(full_name)
            param_idx += 1

        if email is not None:
            set_clauses.append(f"email = ${param_idx}")
            params.append(email)
            param_idx += 1

        if not set_clauses:
            return await self.get_by_id(account_id)

        set_clauses.append(f"updated_at = ${param_idx}")
        params.append(datetime.now(timezone.utc))
        param_idx += 1

        params.append(account_id)

        query = f"""
            UPDATE accounts
            SET {', '.join(set_clauses)}
            WHERE id = ${param_idx}
            RETURNING {_PROJECTION}
        """

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(query, *params)
        except asyncpg.UniqueViolationError:
            raise ConflictError("Email is already in use")

        if row is None:
            return None

        logger.info(
            "account_profile_updated",
            account_id=str(account_id),
            fields_updated=[c.split(" = ")[0] for c in set_clauses if "updated_at" not in c],
        )

        return _row_to_account(row)
