# app/modules/matches/repository.py

from typing import List, Protocol
from uuid import UUID

from asyncpg import Connection

from app.modules.matches.schemas import WatchlistEntry


class WatchlistProvider(Protocol):
    async def list_entries(self, user_id: UUID) -> List[WatchlistEntry]: ...


class WatchlistRepository:
    """
    Personal watchlists, owned by the watchlist feature. Read-only here.
    """

    def __init__(self, conn: Connection):
        self.conn = conn

    async def list_entries(self, user_id: UUID) -> List[WatchlistEntry]:
        rows = await self.conn.fetch(
            """
            SELECT user_id,
                   tmdb_id    AS content_id,
                   media_type AS media_kind,
                   status
            FROM watchlist_entries
            WHERE user_id = $1
            ORDER BY created_at ASC
            """,
            user_id,
        )
        return [WatchlistEntry(**dict(r)) for r in rows]
