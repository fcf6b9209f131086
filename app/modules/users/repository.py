# app/modules/users/repository.py

from __future__ import annotations

from typing import Optional, Protocol
from uuid import UUID

import asyncpg

from app.modules.users.schemas import UserRef


class UserDirectory(Protocol):
    async def find_by_email(self, email: str) -> Optional[UserRef]: ...

    async def find_by_id(self, user_id: UUID) -> Optional[UserRef]: ...


class UserRepository:
    """
    Read-only access to the users table. Accounts are owned by the
    identity service; this backend only resolves them.
    """

    def __init__(self, conn: asyncpg.Connection) -> None:
        self.conn = conn

    async def find_by_email(self, email: str) -> Optional[UserRef]:
        row = await self.conn.fetchrow(
            """
            SELECT user_id, display_name
            FROM users
            WHERE email = lower($1)
            """,
            email,
        )
        return UserRef(**dict(row)) if row else None

    async def find_by_id(self, user_id: UUID) -> Optional[UserRef]:
        row = await self.conn.fetchrow(
            """
            SELECT user_id, display_name
            FROM users
            WHERE user_id = $1
            """,
            user_id,
        )
        return UserRef(**dict(row)) if row else None
