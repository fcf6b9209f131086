# app/dependencies/database.py

from typing import AsyncGenerator
from app.core.database import db


async def get_db_connection() -> AsyncGenerator:
    """
    Request-scoped connection. The whole request runs in one transaction,
    so store-level locks hold until the response is produced.
    """
    async for conn in db.get_connection():
        yield conn
