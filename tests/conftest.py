"""Shared fixtures: a throwaway SQLite database per test and a seeded catalog."""

import asyncio
from datetime import date
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import NullPool

from airtime.database import create_engine_for, create_session_factory, get_session, init_db
from airtime.main import app
from airtime.models import (
    Content, Episode, QueueEntry, RotationContent, RotationGroup, ScheduleEntry
)
from airtime.services.catalog import DatabaseCatalog
from airtime.services.generator import ScheduleGenerator, get_generator


def make_session_factory(path):
    # NullPool: no connection outlives the event loop that opened it
    engine = create_engine_for(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)
    return engine, create_session_factory(engine)


class Seeder:
    """Writes catalog, queue and rotation rows the generator reads."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def add_show(self, content_id: str, seasons: list[int], duration: Optional[int] = 24):
        async with self.session_factory() as session:
            session.add(Content(id=content_id, title=content_id, content_type="show", default_duration=duration))
            for season, count in enumerate(seasons, start=1):
                for number in range(1, count + 1):
                    session.add(Episode(content_id=content_id, season=season, episode_number=number, duration=duration))
            await session.commit()

    async def add_movie(self, content_id: str, duration: int = 120):
        async with self.session_factory() as session:
            session.add(Content(id=content_id, title=content_id, content_type="movie", default_duration=duration))
            await session.commit()

    async def queue(self, user_id: str, content_ids: list[str]):
        async with self.session_factory() as session:
            for position, content_id in enumerate(content_ids):
                session.add(QueueEntry(user_id=user_id, content_id=content_id, position=position))
            await session.commit()

    async def rotation_group(
        self,
        group_id: str,
        user_id: str,
        items: list[tuple[str, int]],
        rotation_type: str = "round_robin"
    ):
        async with self.session_factory() as session:
            session.add(RotationGroup(id=group_id, user_id=user_id, name=group_id, rotation_type=rotation_type))
            for position, (content_id, weight) in enumerate(items):
                session.add(RotationContent(
                    rotation_id=group_id, content_id=content_id, position=position, weight=weight
                ))
            await session.commit()

    async def manual_entry(
        self,
        user_id: str,
        content_id: str,
        slot_date: date,
        start_time: str,
        end_time: str
    ) -> str:
        async with self.session_factory() as session:
            entry = ScheduleEntry(
                user_id=user_id,
                content_id=content_id,
                slot_date=slot_date,
                track=0,
                start_time=start_time,
                end_time=end_time,
                duration_minutes=30,
                source_type="manual"
            )
            session.add(entry)
            await session.commit()
            return entry.id


@pytest.fixture
async def session_factory(tmp_path):
    engine, factory = make_session_factory(tmp_path / "airtime-test.db")
    await init_db(engine)
    yield factory
    await engine.dispose()


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def generator(session_factory) -> ScheduleGenerator:
    return ScheduleGenerator(session_factory=session_factory, catalog_factory=DatabaseCatalog)


@pytest.fixture
def api_session_factory(tmp_path):
    engine, factory = make_session_factory(tmp_path / "airtime-api.db")
    asyncio.run(init_db(engine))
    return factory


@pytest.fixture
def api_seed(api_session_factory) -> Seeder:
    return Seeder(api_session_factory)


@pytest.fixture
def client(api_session_factory):
    """TestClient against the app, without the startup hooks."""
    test_generator = ScheduleGenerator(session_factory=api_session_factory, catalog_factory=DatabaseCatalog)

    async def override_session():
        async with api_session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_generator] = lambda: test_generator
    yield TestClient(app)
    app.dependency_overrides.clear()
