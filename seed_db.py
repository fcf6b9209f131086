import asyncio
import logging
import sys
from pathlib import Path

import asyncpg

from app.core.config import settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("seed_db")

SCHEMA_PATH = Path(__file__).parent / "app" / "db" / "schema.sql"
MAX_RETRIES = 30
RETRY_INTERVAL = 2  # seconds


async def wait_for_postgres() -> asyncpg.Connection:
    for attempt in range(1, MAX_RETRIES + 1):
        try:
            logger.info(f"Connecting to PostgreSQL (Attempt {attempt}/{MAX_RETRIES})...")
            return await asyncpg.connect(settings.DATABASE_URL)
        except (OSError, asyncpg.PostgresError) as e:
            logger.warning(f"PostgreSQL not ready yet: {e}")
            await asyncio.sleep(RETRY_INTERVAL)
    raise RuntimeError("PostgreSQL never became reachable")


async def seed_database() -> None:
    logger.info(f"Applying schema at {settings.DATABASE_HOST}/{settings.DATABASE_NAME}...")
    sql = SCHEMA_PATH.read_text()

    conn = await wait_for_postgres()
    try:
        # schema.sql is idempotent, safe to re-run on every deploy
        await conn.execute(sql)
        logger.info("Schema applied.")
    finally:
        await conn.close()


if __name__ == "__main__":
    try:
        asyncio.run(seed_database())
    except Exception as e:
        logger.error(f"Database setup failed: {e}")
        sys.exit(1)
