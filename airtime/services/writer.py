import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import AsyncIterator, Iterable, Mapping, Optional
import logging

from sqlalchemy import and_, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from airtime.database import async_session
from airtime.engine import Assignment, ContentCursor
from airtime.errors import ConflictResolutionError, GenerationTimeoutError
from airtime.models import ContentCursorRecord, OwnerLock, ScheduleEntry

logger = logging.getLogger(__name__)

# Entries regeneration may replace; "manual" entries are never touched
GENERATED_SOURCE_TYPES = ("auto", "rotation")


def cursor_scope(source_type: str, source_id: Optional[str]) -> str:
    """Cursor key for a schedule source: rotation groups advance independently."""
    if source_type == "rotation":
        return f"rotation:{source_id}"
    return "queue"


@dataclass
class ExistingSchedule:
    """Entries already in the target range, split by whether regeneration owns them."""
    superseded: list[ScheduleEntry] = field(default_factory=list)
    manual: list[ScheduleEntry] = field(default_factory=list)


class ScheduleWriter:
    """Serializes generation per owner and persists batches atomically.

    Two layers of exclusion: an asyncio lock per owner inside this process,
    and a row lock on the owner's ``owner_locks`` row inside the database
    transaction for other processes sharing the database.
    """

    def __init__(self, session_factory=async_session):
        self.session_factory = session_factory
        self._locks: dict[str, asyncio.Lock] = {}

    def _owner_lock(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    @asynccontextmanager
    async def owner_transaction(
        self,
        user_id: str,
        timeout: Optional[float] = None
    ) -> AsyncIterator[AsyncSession]:
        """Hold the owner's lock and an open transaction for the duration of the block.

        Anything raised inside rolls the transaction back; database errors
        come out as ConflictResolutionError.
        """
        lock = self._owner_lock(user_id)
        if timeout is not None and timeout <= 0:
            raise GenerationTimeoutError("Deadline expired before the schedule lock was acquired")
        try:
            await asyncio.wait_for(lock.acquire(), timeout)
        except asyncio.TimeoutError:
            raise GenerationTimeoutError(
                f"Timed out waiting for another generation for {user_id} to finish"
            )

        try:
            async with self.session_factory() as session:
                try:
                    await self._lock_owner_row(session, user_id)
                    yield session
                except SQLAlchemyError as e:
                    await session.rollback()
                    logger.error(f"Schedule write failed for {user_id}, rolled back: {e}")
                    raise ConflictResolutionError(
                        "Could not save the generated schedule; nothing was changed. Try again.",
                        cause=e
                    ) from e
                except BaseException:
                    await session.rollback()
                    raise
        finally:
            lock.release()

    async def _lock_owner_row(self, session: AsyncSession, user_id: str):
        result = await session.execute(
            select(OwnerLock).where(OwnerLock.user_id == user_id).with_for_update()
        )
        row = result.scalar_one_or_none()
        if row is None:
            session.add(OwnerLock(user_id=user_id))
        else:
            row.locked_at = datetime.now()
        # Writing the row takes the database write lock on backends without row locks
        await session.flush()

    async def load_existing(
        self,
        session: AsyncSession,
        user_id: str,
        start_date: date,
        end_date: date
    ) -> ExistingSchedule:
        """Get the owner's entries in the date range, earliest first."""
        result = await session.execute(
            select(ScheduleEntry)
            .where(
                ScheduleEntry.user_id == user_id,
                ScheduleEntry.slot_date >= start_date,
                ScheduleEntry.slot_date <= end_date
            )
            .order_by(ScheduleEntry.slot_date, ScheduleEntry.start_time, ScheduleEntry.track)
        )
        existing = ExistingSchedule()
        for entry in result.scalars().all():
            if entry.source_type in GENERATED_SOURCE_TYPES:
                existing.superseded.append(entry)
            else:
                existing.manual.append(entry)
        return existing

    async def rewind_cursors(
        self,
        session: AsyncSession,
        user_id: str,
        superseded: Iterable[ScheduleEntry],
        end_date: Optional[date] = None
    ) -> int:
        """Undo the cursor movement of entries that are about to be replaced.

        Each affected cursor goes back to the earliest superseded new airing
        and its counters drop by what the superseded entries had added, so
        regenerating a range replays the same episodes. A cursor whose item
        still has generated entries after ``end_date`` is left where it is:
        those later airings stay on the calendar and must not air again.
        """
        groups: dict[tuple[str, str], list[ScheduleEntry]] = {}
        for entry in superseded:
            key = (cursor_scope(entry.source_type, entry.source_id), entry.content_id)
            groups.setdefault(key, []).append(entry)

        rewound = 0
        for (scope, content_id), entries in groups.items():
            record = await self.get_cursor(session, user_id, scope, content_id)
            if record is None:
                continue
            if end_date is not None and await self._has_later_entries(
                session, user_id, scope, content_id, end_date
            ):
                logger.info(
                    f"Keeping cursor for {content_id} ({scope}): it already airs after {end_date}"
                )
                continue

            new_airings = [e for e in entries if not e.is_rerun]
            reruns = len(entries) - len(new_airings)

            if new_airings:
                first = new_airings[0]
                record.next_season = first.season if first.season is not None else 1
                record.next_episode = first.episode if first.episode is not None else 1

            record.new_airings = max(0, record.new_airings - len(new_airings))
            record.reruns_aired = max(0, record.reruns_aired - reruns)
            rewound += 1

        if rewound:
            logger.info(f"Rewound {rewound} cursor(s) for {user_id}")
        return rewound

    async def _has_later_entries(
        self,
        session: AsyncSession,
        user_id: str,
        scope: str,
        content_id: str,
        end_date: date
    ) -> bool:
        if scope == "queue":
            source_filter = ScheduleEntry.source_type == "auto"
        else:
            source_filter = and_(
                ScheduleEntry.source_type == "rotation",
                ScheduleEntry.source_id == scope[len("rotation:"):]
            )
        result = await session.execute(
            select(ScheduleEntry.id)
            .where(
                ScheduleEntry.user_id == user_id,
                ScheduleEntry.content_id == content_id,
                ScheduleEntry.slot_date > end_date,
                source_filter
            )
            .limit(1)
        )
        return result.first() is not None

    async def get_cursor(
        self,
        session: AsyncSession,
        user_id: str,
        scope: str,
        content_id: str
    ) -> Optional[ContentCursorRecord]:
        result = await session.execute(
            select(ContentCursorRecord).where(
                ContentCursorRecord.user_id == user_id,
                ContentCursorRecord.scope == scope,
                ContentCursorRecord.content_id == content_id
            )
        )
        return result.scalar_one_or_none()

    async def load_cursors(
        self,
        session: AsyncSession,
        user_id: str,
        scope: str,
        content_ids: list[str]
    ) -> dict[str, ContentCursorRecord]:
        """Get persisted cursors for a scope, keyed by content id."""
        if not content_ids:
            return {}
        result = await session.execute(
            select(ContentCursorRecord).where(
                ContentCursorRecord.user_id == user_id,
                ContentCursorRecord.scope == scope,
                ContentCursorRecord.content_id.in_(content_ids)
            )
        )
        return {record.content_id: record for record in result.scalars().all()}

    async def supersede(self, session: AsyncSession, entries: list[ScheduleEntry]) -> int:
        """Delete previously generated entries in the target range."""
        if not entries:
            return 0
        await session.execute(
            delete(ScheduleEntry).where(ScheduleEntry.id.in_([e.id for e in entries]))
        )
        return len(entries)

    async def persist(
        self,
        session: AsyncSession,
        user_id: str,
        assignments: list[Assignment],
        cursors: Mapping[str, ContentCursor],
        records: dict[str, ContentCursorRecord],
        scope: str,
        source_type: str,
        source_id: Optional[str]
    ) -> list[ScheduleEntry]:
        """Insert the new batch, store cursors, and commit."""
        entries = [
            ScheduleEntry(
                user_id=user_id,
                content_id=a.content_id,
                season=a.season,
                episode=a.episode,
                slot_date=a.slot.date,
                track=a.slot.track,
                start_time=a.slot.start_time,
                end_time=a.end_time,
                duration_minutes=a.duration_minutes,
                timezone_offset=a.slot.timezone_offset,
                source_type=source_type,
                source_id=source_id,
                watched=False,
                is_rerun=a.is_rerun
            )
            for a in assignments
        ]
        session.add_all(entries)

        for content_id, cursor in cursors.items():
            record = records.get(content_id)
            if record is None:
                # Cursors are created lazily, on first airing
                if cursor.new_airings == 0 and cursor.reruns_aired == 0:
                    continue
                record = ContentCursorRecord(user_id=user_id, scope=scope, content_id=content_id)
                session.add(record)

            record.next_season = cursor.next_season
            record.next_episode = cursor.next_episode
            record.total_episodes = cursor.total_episodes
            record.default_duration_minutes = cursor.default_duration_minutes
            record.new_airings = cursor.new_airings
            record.reruns_aired = cursor.reruns_aired

        await session.commit()
        return entries

    async def reset_cursor(self, user_id: str, scope: str, content_id: str) -> bool:
        """Delete a cursor so the item starts again from its first episode."""
        async with self.owner_transaction(user_id) as session:
            result = await session.execute(
                delete(ContentCursorRecord).where(
                    ContentCursorRecord.user_id == user_id,
                    ContentCursorRecord.scope == scope,
                    ContentCursorRecord.content_id == content_id
                )
            )
            await session.commit()
            return result.rowcount > 0
