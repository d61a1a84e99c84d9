"""
Shared fixtures for the analytics test suite.

Database tests run against an in-memory SQLite database (StaticPool keeps
the single connection alive for the whole test). Time is pinned with a
FixedClock at 2025-04-22T10:00:00Z.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from app.api.dependencies import get_clock
from app.core.cache_registry import build_cache_registry
from app.core.clock import FixedClock
from app.core.rate_limit import limiter
from app.db.models import Click, Impression, ShortURL, User
from app.db.session import build_session_maker, create_tables, get_session
from app.db.sqlite_adapter import SQLiteAdapter

NOW = datetime(2025, 4, 22, 10, 0, tzinfo=timezone.utc)

limiter.enabled = False


def at(value: str) -> datetime:
    """Parse an ISO timestamp as UTC."""
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


class Seeder:
    """Writes users, URLs and events through one session (flush only)."""

    def __init__(self, session):
        self.session = session
        self._codes = 0

    async def user(self, user_id: int, timezone_name: Optional[str] = None) -> User:
        user = User(id=user_id, email=f"user{user_id}@example.com", timezone=timezone_name)
        self.session.add(user)
        await self.session.flush()
        return user

    async def url(
        self,
        user_id: int = 1,
        title: Optional[str] = None,
        is_active: bool = True,
        expiry_date: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        deleted_at: Optional[datetime] = None,
    ) -> ShortURL:
        self._codes += 1
        url = ShortURL(
            user_id=user_id,
            short_code=f"code{self._codes:03d}",
            original_url=f"https://example.com/page/{self._codes}",
            title=title,
            is_active=is_active,
            expiry_date=expiry_date,
            created_at=created_at or NOW - timedelta(days=60) + timedelta(minutes=self._codes),
            deleted_at=deleted_at,
        )
        self.session.add(url)
        await self.session.flush()
        return url

    async def impressions(
        self,
        url_id: int,
        when: datetime,
        count: int = 1,
        unique: Optional[int] = None,
        source: str = "",
    ) -> None:
        """Add ``count`` impressions, the first ``unique`` of them unique (default all)."""
        if unique is None:
            unique = count
        for index in range(count):
            self.session.add(Impression(
                url_id=url_id,
                timestamp=when,
                ip_address=f"10.0.0.{index}",
                is_unique=index < unique,
                source=source,
                referrer=f"https://{source}/" if source else None,
            ))
        await self.session.flush()

    async def clicks(
        self,
        url_id: int,
        when: datetime,
        count: int = 1,
        referrer: Optional[str] = None,
    ) -> None:
        for index in range(count):
            self.session.add(Click(
                url_id=url_id,
                clicked_at=when,
                ip_address=f"10.0.1.{index}",
                referrer=referrer,
            ))
        await self.session.flush()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest_asyncio.fixture
async def engine():
    engine = SQLiteAdapter().create_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def seed(session):
    return Seeder(session)


@pytest_asyncio.fixture
async def client(session_maker, clock):
    """HTTP client against the app, sharing the in-memory database."""
    from app.main import app

    async def override_get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_clock] = lambda: clock
    app.state.caches = build_cache_registry()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client

    app.dependency_overrides.clear()
    app.state.caches.shutdown()
    app.state.caches = None
