import asyncio
from pathlib import Path
from typing import Dict, List, Optional
from uuid import UUID, uuid4

import asyncpg
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.core.config import settings
from app.main import app
from app.modules.activity.schemas import GroupEvent
from app.modules.activity.service import EventPublisher
from app.modules.groups.memory_store import InMemoryGroupStore
from app.modules.groups.service import GroupService
from app.modules.matches.schemas import MediaKind, WatchlistEntry
from app.modules.matches.service import MatchService
from app.modules.memberships.service import MembershipService
from app.modules.users.schemas import UserRef


SCHEMA_PATH = Path(__file__).parent.parent / "app" / "db" / "schema.sql"


# ---------------------------------------------------------------------------
# Fakes for the external collaborators
# ---------------------------------------------------------------------------
class FakeUserDirectory:
    def __init__(self) -> None:
        self.by_email: Dict[str, UserRef] = {}

    def add(self, email: str, display_name: str) -> UserRef:
        user = UserRef(user_id=uuid4(), display_name=display_name)
        self.by_email[email.lower()] = user
        return user

    async def find_by_email(self, email: str) -> Optional[UserRef]:
        return self.by_email.get(email.lower())

    async def find_by_id(self, user_id: UUID) -> Optional[UserRef]:
        for user in self.by_email.values():
            if user.user_id == user_id:
                return user
        return None


class FakeWatchlists:
    def __init__(self) -> None:
        self.entries: Dict[UUID, List[WatchlistEntry]] = {}

    def add(self, user_id: UUID, content_id: int, media_kind: str, status: str = "to_watch"):
        self.entries.setdefault(user_id, []).append(
            WatchlistEntry(
                user_id=user_id,
                content_id=content_id,
                media_kind=MediaKind(media_kind),
                status=status,
            )
        )

    async def list_entries(self, user_id: UUID) -> List[WatchlistEntry]:
        return list(self.entries.get(user_id, []))


class RecordingSink:
    def __init__(self) -> None:
        self.events: List[GroupEvent] = []

    async def emit(self, event: GroupEvent) -> None:
        self.events.append(event)

    def types(self) -> List[str]:
        return [e.event_type.value for e in self.events]


# ---------------------------------------------------------------------------
# Service fixtures (in-memory store)
# ---------------------------------------------------------------------------
@pytest.fixture
def store() -> InMemoryGroupStore:
    return InMemoryGroupStore()


@pytest.fixture
def users() -> FakeUserDirectory:
    return FakeUserDirectory()


@pytest.fixture
def watchlists() -> FakeWatchlists:
    return FakeWatchlists()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def events(sink) -> EventPublisher:
    return EventPublisher([sink])


@pytest.fixture
def group_service(store, users, events) -> GroupService:
    return GroupService(store, users, events)


@pytest.fixture
def membership_service(store, events) -> MembershipService:
    return MembershipService(store, events, allow_reinvite_after_decline=False)


@pytest.fixture
def match_service(store, watchlists, events) -> MatchService:
    return MatchService(store, watchlists, events)


@pytest.fixture
def carol(users) -> UserRef:
    return users.add("c@x.com", "Carol")


@pytest.fixture
def pat(users) -> UserRef:
    return users.add("p@x.com", "Pat")


@pytest.fixture
def quinn(users) -> UserRef:
    return users.add("q@x.com", "Quinn")


# ---------------------------------------------------------------------------
# Database (integration tests only)
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture(scope="function")
async def db_connection():
    """
    Real PostgreSQL connection inside a transaction that is always rolled
    back. Skips when no database is reachable.
    """
    try:
        conn = await asyncpg.connect(settings.DATABASE_URL, timeout=3)
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as ex:
        pytest.skip(f"PostgreSQL not available: {ex}")

    try:
        await conn.execute(SCHEMA_PATH.read_text())
        tr = conn.transaction()
        await tr.start()
        try:
            yield conn
        finally:
            await tr.rollback()
    finally:
        await conn.close()


# ---------------------------------------------------------------------------
# API Client
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture(scope="function")
async def async_client():
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
