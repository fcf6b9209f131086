# app/modules/activity/repository.py

import json

from asyncpg import Connection

from app.modules.activity.schemas import GroupEvent


class ActivityRepository:
    """
    Thin wrapper around the activity_logs table.
    """

    def __init__(self, conn: Connection):
        self.conn = conn

    async def log_event(self, event: GroupEvent) -> None:
        details_json = json.dumps(event.details or {}, default=str)

        await self.conn.execute(
            """
            INSERT INTO activity_logs (
                event_type,
                actor_user_id,
                group_id,
                details,
                created_at
            )
            VALUES ($1, $2, $3, $4::jsonb, $5)
            """,
            event.event_type.value,
            event.actor_user_id,
            event.group_id,
            details_json,
            event.occurred_at,
        )
