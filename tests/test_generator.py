"""Tests for the generation orchestrator against a real SQLite database."""

import asyncio
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from airtime.errors import (
    ConflictResolutionError, GenerationTimeoutError, InvalidRangeError, SourceNotFoundError,
    ValidationError
)
from airtime.models import ContentCursorRecord, GenerationRun, ScheduleEntry
from airtime.schemas import GenerateRequest, SourceType
from airtime.services.generator import ScheduleGenerator

USER = "viewer-1"


def request(**overrides) -> GenerateRequest:
    values = dict(
        start_date=date(2024, 3, 1),
        end_date=date(2024, 3, 1),
        daily_start_time="18:00",
        daily_end_time="20:00",
        slot_duration_minutes=30
    )
    values.update(overrides)
    return GenerateRequest(**values)


async def stored_entries(session_factory, user_id: str = USER) -> list[ScheduleEntry]:
    async with session_factory() as session:
        result = await session.execute(
            select(ScheduleEntry)
            .where(ScheduleEntry.user_id == user_id)
            .order_by(ScheduleEntry.slot_date, ScheduleEntry.start_time, ScheduleEntry.track)
        )
        return list(result.scalars().all())


async def stored_cursors(session_factory, user_id: str = USER) -> dict:
    async with session_factory() as session:
        result = await session.execute(
            select(ContentCursorRecord).where(ContentCursorRecord.user_id == user_id)
        )
        return {
            (r.scope, r.content_id): (r.next_season, r.next_episode, r.new_airings, r.reruns_aired)
            for r in result.scalars().all()
        }


async def stored_runs(session_factory) -> list[GenerationRun]:
    async with session_factory() as session:
        result = await session.execute(select(GenerationRun).order_by(GenerationRun.id))
        return list(result.scalars().all())


def airings(entries) -> list[tuple]:
    return [(e.slot_date, e.start_time, e.track, e.content_id, e.season, e.episode, e.is_rerun) for e in entries]


async def test_generates_show_and_movie_scenario(seed, generator, session_factory) -> None:
    await seed.add_show("A", [3], duration=24)
    await seed.add_movie("B", duration=120)
    await seed.queue(USER, ["A", "B"])

    result = await generator.generate(USER, request())

    assert result.created_count == 4
    assert [(e.content_id, e.season, e.episode) for e in result.entries] == [
        ("A", 1, 1), ("B", None, None), ("A", 1, 2), ("A", 1, 3)
    ]
    stored = await stored_entries(session_factory)
    assert airings(stored) == airings(result.entries)
    assert all(e.source_type == "auto" for e in stored)
    assert stored[1].end_time == "19:00"

    cursors = await stored_cursors(session_factory)
    assert cursors[("queue", "A")] == (1, 4, 3, 0)
    assert cursors[("queue", "B")] == (1, 2, 1, 0)

    runs = await stored_runs(session_factory)
    assert [(r.status, r.created_count, r.trigger) for r in runs] == [("completed", 4, "manual")]


async def test_empty_queue_creates_nothing(generator, session_factory) -> None:
    result = await generator.generate(USER, request())

    assert result.created_count == 0
    assert result.warnings
    assert await stored_entries(session_factory) == []
    assert await stored_runs(session_factory) == []


async def test_invalid_range_fails_before_anything_is_written(seed, generator, session_factory) -> None:
    await seed.add_show("A", [3])
    await seed.queue(USER, ["A"])

    with pytest.raises(InvalidRangeError):
        await generator.generate(USER, request(start_date=date(2024, 3, 2), end_date=date(2024, 3, 1)))

    assert await stored_entries(session_factory) == []
    assert await stored_cursors(session_factory) == {}
    assert await stored_runs(session_factory) == []


async def test_invalid_parameters_are_rejected(generator) -> None:
    with pytest.raises(ValidationError):
        await generator.generate(USER, request(slot_duration_minutes=0))
    with pytest.raises(ValidationError):
        await generator.generate(USER, request(timezone_offset="EST"))
    with pytest.raises(ValidationError):
        await generator.generate(USER, request(source_type=SourceType.ROTATION_GROUP))
    with pytest.raises(ValidationError):
        await generator.generate(USER, request(rotation_weights={"A": 0}))


async def test_regenerating_same_range_is_idempotent(seed, generator, session_factory) -> None:
    await seed.add_show("A", [2, 4])
    await seed.add_show("C", [6])
    await seed.queue(USER, ["A", "C"])
    req = request(end_date=date(2024, 3, 2), include_reruns=True, rerun_frequency="often")

    await generator.generate(USER, req)
    first_entries = airings(await stored_entries(session_factory))
    first_cursors = await stored_cursors(session_factory)

    second = await generator.generate(USER, req)

    assert second.superseded_count == len(first_entries)
    assert airings(await stored_entries(session_factory)) == first_entries
    assert await stored_cursors(session_factory) == first_cursors


async def test_following_range_continues_where_previous_left_off(seed, generator, session_factory) -> None:
    await seed.add_show("A", [10])
    await seed.queue(USER, ["A"])

    await generator.generate(USER, request())
    second = await generator.generate(USER, request(start_date=date(2024, 3, 2), end_date=date(2024, 3, 2)))

    assert [e.episode for e in second.entries] == [5, 6, 7, 8]


async def test_manual_entries_are_kept_and_block_their_slot(seed, generator, session_factory) -> None:
    await seed.add_show("A", [10])
    await seed.queue(USER, ["A"])
    manual_id = await seed.manual_entry(USER, "Z", date(2024, 3, 1), "18:30", "19:00")

    await generator.generate(USER, request())
    await generator.generate(USER, request())

    stored = await stored_entries(session_factory)
    assert [(e.start_time, e.source_type, e.episode) for e in stored] == [
        ("18:00", "auto", 1), ("18:30", "manual", None), ("19:00", "auto", 2), ("19:30", "auto", 3)
    ]
    assert stored[1].id == manual_id


async def test_no_overlapping_entries_on_a_track(seed, generator, session_factory) -> None:
    await seed.add_show("A", [40], duration=45)
    await seed.add_movie("M", duration=100)
    await seed.queue(USER, ["A", "M"])

    await generator.generate(USER, request(end_date=date(2024, 3, 3), daily_end_time="24:00", slot_duration_minutes=40))

    stored = await stored_entries(session_factory)
    for previous, current in zip(stored, stored[1:]):
        if previous.slot_date == current.slot_date:
            assert previous.end_time <= current.start_time


async def test_unknown_content_is_skipped_and_reported(seed, generator, session_factory) -> None:
    await seed.add_show("A", [3])
    await seed.queue(USER, ["missing", "A"])

    result = await generator.generate(USER, request())

    assert [s.content_id for s in result.skipped] == ["missing"]
    assert result.skipped[0].reason
    assert {e.content_id for e in result.entries} == {"A"}
    runs = await stored_runs(session_factory)
    assert runs[0].skipped_count == 1


async def test_cursor_ahead_of_catalog_is_reported_and_treated_as_exhausted(seed, generator, session_factory) -> None:
    await seed.add_show("A", [3])
    await seed.add_show("B", [5])
    await seed.queue(USER, ["A", "B"])
    async with session_factory() as session:
        session.add(ContentCursorRecord(
            user_id=USER, scope="queue", content_id="A", next_season=1, next_episode=9, new_airings=8
        ))
        await session.commit()

    result = await generator.generate(USER, request())

    assert any("A" in warning for warning in result.warnings)
    assert {e.content_id for e in result.entries} == {"B"}


async def test_derived_slot_duration(seed, generator) -> None:
    await seed.add_show("A", [10], duration=45)
    await seed.queue(USER, ["A"])

    result = await generator.generate(USER, request(slot_duration_minutes=None, daily_end_time="21:00"))

    assert [e.start_time for e in result.entries] == ["18:00", "18:45", "19:30", "20:15"]


async def test_rotation_group_uses_its_own_cursors_and_policy(seed, generator, session_factory) -> None:
    await seed.add_show("A", [10])
    await seed.add_show("B", [10])
    await seed.queue(USER, ["A"])
    await seed.rotation_group("weeknights", USER, [("A", 2), ("B", 1)], rotation_type="weighted")

    await generator.generate(USER, request())
    result = await generator.generate(
        USER,
        request(
            start_date=date(2024, 3, 2),
            end_date=date(2024, 3, 2),
            source_type=SourceType.ROTATION_GROUP,
            source_id="weeknights"
        )
    )

    assert [(e.content_id, e.episode) for e in result.entries] == [("A", 1), ("B", 1), ("A", 2), ("A", 3)]
    assert all(e.source_type == "rotation" and e.source_id == "weeknights" for e in result.entries)
    cursors = await stored_cursors(session_factory)
    assert cursors[("queue", "A")][:2] == (1, 5)
    assert cursors[("rotation:weeknights", "A")][:2] == (1, 4)


async def test_unknown_rotation_group(generator) -> None:
    with pytest.raises(SourceNotFoundError):
        await generator.generate(
            USER, request(source_type=SourceType.ROTATION_GROUP, source_id="nope")
        )


async def test_concurrent_requests_for_one_user_leave_a_single_batch(seed, generator, session_factory) -> None:
    await seed.add_show("A", [20])
    await seed.add_show("B", [20])
    await seed.queue(USER, ["A", "B"])

    results = await asyncio.gather(
        generator.generate(USER, request()),
        generator.generate(USER, request())
    )

    stored = await stored_entries(session_factory)
    assert len(stored) == 4
    assert airings(stored) == airings(results[0].entries) == airings(results[1].entries)
    assert (await stored_cursors(session_factory))[("queue", "A")] == (1, 3, 2, 0)


async def test_persistence_failure_rolls_back_everything(seed, generator, session_factory) -> None:
    await seed.add_show("A", [10])
    await seed.queue(USER, ["A"])
    await generator.generate(USER, request())
    before_entries = airings(await stored_entries(session_factory))
    before_cursors = await stored_cursors(session_factory)

    failure = OperationalError("INSERT INTO schedule", {}, Exception("disk I/O error"))
    with patch.object(generator.writer, "persist", new_callable=AsyncMock, side_effect=failure):
        with pytest.raises(ConflictResolutionError) as excinfo:
            await generator.generate(USER, request())

    assert excinfo.value.retryable
    assert airings(await stored_entries(session_factory)) == before_entries
    assert await stored_cursors(session_factory) == before_cursors
    runs = await stored_runs(session_factory)
    assert runs[-1].status == "failed"


class SlowCatalog:
    def __init__(self, session):
        pass

    async def get_episode_inventory(self, content_id: str):
        await asyncio.sleep(5)


async def test_deadline_expiry_writes_nothing(seed, session_factory) -> None:
    await seed.queue(USER, ["A"])
    slow = ScheduleGenerator(session_factory=session_factory, catalog_factory=SlowCatalog)

    with pytest.raises(GenerationTimeoutError):
        await slow.generate(USER, request(), timeout=0.05)

    assert await stored_entries(session_factory) == []


async def test_regenerating_an_earlier_day_never_repeats_later_episodes(seed, generator, session_factory) -> None:
    await seed.add_show("A", [20])
    await seed.queue(USER, ["A"])

    await generator.generate(USER, request(end_date=date(2024, 3, 2)))
    await generator.generate(USER, request())
    await generator.generate(USER, request(start_date=date(2024, 3, 3), end_date=date(2024, 3, 3)))

    new_airings = [e.episode for e in await stored_entries(session_factory) if not e.is_rerun]
    assert len(new_airings) == 12
    assert len(set(new_airings)) == len(new_airings)
    assert [e.episode for e in await stored_entries(session_factory) if e.slot_date == date(2024, 3, 2)] == [5, 6, 7, 8]
    assert (await stored_cursors(session_factory))[("queue", "A")][:2] == (1, 17)


async def test_regenerating_the_last_day_still_replays_it(seed, generator, session_factory) -> None:
    await seed.add_show("A", [20])
    await seed.queue(USER, ["A"])

    await generator.generate(USER, request(end_date=date(2024, 3, 2)))
    result = await generator.generate(USER, request(start_date=date(2024, 3, 2), end_date=date(2024, 3, 2)))

    assert [e.episode for e in result.entries] == [5, 6, 7, 8]


class BrokenCatalog:
    def __init__(self, session):
        pass

    async def get_episode_inventory(self, content_id: str):
        raise OperationalError("SELECT content", {}, Exception("database is locked"))


async def test_database_error_while_reading_source_is_retryable(seed, session_factory) -> None:
    await seed.queue(USER, ["A"])
    broken = ScheduleGenerator(session_factory=session_factory, catalog_factory=BrokenCatalog)

    with pytest.raises(ConflictResolutionError) as excinfo:
        await broken.generate(USER, request())

    assert excinfo.value.retryable
    assert await stored_runs(session_factory) == []
