"""
Global test configuration for SeriesHub.

Every test gets its own SQLite database file. Async tests use the ``db``
session fixture; route and client tests use ``api``, which wires the FastAPI
app to the same kind of database through a dependency override.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from serieshub.core.database import Base, get_db
from serieshub.core.events import change_feed
from serieshub.main import app
from serieshub.models.models import Comment, Episode, Series, SeriesStatus

BASE_TIME = datetime(2025, 8, 14, 12, 0, tzinfo=timezone.utc)


def make_engine(path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


async def create_schema(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_catalog(session: AsyncSession) -> SimpleNamespace:
    """Three series; the first has numbered episodes plus an unnumbered special."""
    saga = Series(
        title="Alpha Saga",
        description="A long-running adventure",
        dailymotion_playlist_id="https://www.dailymotion.com/playlist/x6hynp?ref=home",
        rating_sum=9,
        rating_count=2,
    )
    chronicles = Series(
        title="Beta Chronicles",
        youtube_playlist_id="https://www.youtube.com/playlist?list=PLbeta123",
    )
    finished = Series(title="Gamma Tales", status=SeriesStatus.COMPLETED)

    pilot = Episode(series=saga, title="Pilot", season_number=1, episode_number=1,
                    dailymotion_video_id="x8pilot")
    second = Episode(series=saga, title="Second", season_number=1, episode_number=2,
                     youtube_video_id="dQw4w9WgXcQ")
    special = Episode(series=saga, title="Special")
    season_two = Episode(series=saga, title="Return", season_number=2, episode_number=1)
    other = Episode(series=chronicles, title="Beta Pilot", season_number=1, episode_number=1)
    gamma_first = Episode(series=finished, title="Gamma One", season_number=1, episode_number=1,
                          youtube_video_id="https://youtu.be/gammaOne01")

    session.add_all([saga, chronicles, finished, season_two, pilot, second, special, other, gamma_first])
    await session.commit()

    return SimpleNamespace(
        series_id=saga.id,
        other_series_id=chronicles.id,
        completed_series_id=finished.id,
        pilot_id=pilot.id,
        second_id=second.id,
        special_id=special.id,
        season_two_id=season_two.id,
        other_episode_id=other.id,
    )


async def add_comment(session: AsyncSession, series_id, content="A comment", minutes=0, **fields) -> Comment:
    """Insert a comment directly, with a controlled creation time."""
    created = BASE_TIME + timedelta(minutes=minutes)
    comment = Comment(
        content=content,
        author_name=fields.pop("author_name", "Viewer"),
        series_id=series_id,
        created_at=created,
        updated_at=created,
        **fields,
    )
    session.add(comment)
    await session.commit()
    return comment


@pytest.fixture(autouse=True)
def _reset_change_feed():
    change_feed.reset()
    yield
    change_feed.reset()


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    engine = make_engine(tmp_path / "serieshub-test.db")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(db_engine):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def catalog(db):
    return await seed_catalog(db)


@pytest.fixture
def api(tmp_path):
    """TestClient bound to a fresh seeded database; yields (client, catalog ids)."""
    engine = make_engine(tmp_path / "serieshub-api.db")
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async def _prepare():
        await create_schema(engine)
        async with factory() as session:
            return await seed_catalog(session)

    ids = asyncio.run(_prepare())

    async def _override_get_db():
        async with factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app), ids
    finally:
        app.dependency_overrides.clear()
        asyncio.run(engine.dispose())
