import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
import logging

from sqlalchemy.exc import SQLAlchemyError

from airtime.config import settings
from airtime.database import async_session
from airtime.engine import (
    ContentCursor, GenerationState, RerunPolicy, RotationType, Slot, SlotGrid,
    build_slot_grid, optimal_slot_duration, plan
)
from airtime.engine.grid import parse_time, validate_offset
from airtime.errors import (
    CatalogLookupError, ConflictResolutionError, CursorInconsistencyError, EmptySourceError,
    GenerationTimeoutError, InvalidDurationError, ValidationError
)
from airtime.models import ContentCursorRecord, GenerationRun, ScheduleEntry
from airtime.schemas import GenerateRequest, SkippedItem, SourceType
from airtime.services.catalog import EpisodeInventory, get_catalog
from airtime.services.sources import SourceOrder, get_queue_order, get_rotation_group
from airtime.services.writer import ScheduleWriter, cursor_scope

logger = logging.getLogger(__name__)


class GenerationPhase(str, Enum):
    VALIDATING = "validating"
    BUILDING_GRID = "building_grid"
    ASSIGNING = "assigning"
    RESOLVING_CONFLICTS = "resolving_conflicts"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class GenerationResult:
    """Outcome of one generation run."""
    entries: list[ScheduleEntry] = field(default_factory=list)
    skipped: list[SkippedItem] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    superseded_count: int = 0

    @property
    def created_count(self) -> int:
        return len(self.entries)


def validate_request(request: GenerateRequest) -> str:
    """Check every generation parameter; returns the effective timezone offset."""
    offset = validate_offset(request.timezone_offset or settings.default_timezone_offset)

    if request.slot_duration_minutes is not None and request.slot_duration_minutes <= 0:
        raise InvalidDurationError(
            f"slot_duration_minutes must be positive, got {request.slot_duration_minutes}"
        )

    # Bounds are checked now even when the slot length is derived later
    build_slot_grid(
        request.start_date,
        request.end_date,
        request.daily_start_time,
        request.daily_end_time,
        request.slot_duration_minutes or 1,
        request.max_tracks_per_slot,
        offset
    )

    if request.source_type == SourceType.ROTATION_GROUP and not request.source_id:
        raise ValidationError("source_id is required when source_type is rotation_group")

    for content_id, weight in (request.rotation_weights or {}).items():
        if weight < 1:
            raise ValidationError(f"Weight for {content_id} must be at least 1, got {weight}")

    return offset


class ScheduleGenerator:
    """Turns a queue or rotation group into persisted schedule entries.

    Runs validating -> building_grid -> assigning -> resolving_conflicts ->
    persisting -> done, or ends in failed. Validation failures leave no trace;
    anything after that is logged as a GenerationRun.
    """

    def __init__(
        self,
        session_factory=async_session,
        writer: Optional[ScheduleWriter] = None,
        catalog_factory=get_catalog
    ):
        self.session_factory = session_factory
        self.writer = writer or ScheduleWriter(session_factory)
        self.catalog_factory = catalog_factory

    async def generate(
        self,
        user_id: str,
        request: GenerateRequest,
        timeout: Optional[float] = None,
        trigger: str = "manual"
    ) -> GenerationResult:
        loop = asyncio.get_running_loop()
        if timeout is None:
            timeout = settings.generation_timeout_seconds
        deadline = loop.time() + timeout

        self._log_phase(user_id, GenerationPhase.VALIDATING)
        offset = validate_request(request)

        result = GenerationResult()
        try:
            source, inventories = await self._resolve(user_id, request, result, deadline)
        except EmptySourceError as e:
            logger.info(f"[{user_id}] Nothing to schedule: {e.message}")
            result.warnings.append(e.message)
            return result
        except SQLAlchemyError as e:
            logger.error(f"[{user_id}] Could not read the schedule source: {e}")
            raise ConflictResolutionError(
                "Could not read the schedule source; nothing was changed. Try again.",
                cause=e
            ) from e

        try:
            run_id = await self._start_run(user_id, request, trigger)
        except SQLAlchemyError as e:
            logger.error(f"[{user_id}] Could not record the generation run: {e}")
            raise ConflictResolutionError(
                "Could not start the generation; nothing was changed. Try again.",
                cause=e
            ) from e

        try:
            await self._build_and_persist(
                user_id, request, offset, source, inventories, result, deadline
            )
        except Exception as e:
            logger.error(f"[{user_id}] Generation failed: {e}")
            self._log_phase(user_id, GenerationPhase.FAILED)
            await self._finish_run(run_id, result, status="failed", error=str(e))
            raise

        self._log_phase(user_id, GenerationPhase.DONE)
        await self._finish_run(run_id, result, status="completed")

        logger.info(
            f"[{user_id}] Generated {result.created_count} entries "
            f"({result.superseded_count} replaced, {len(result.skipped)} item(s) skipped)"
        )
        return result

    async def _resolve(
        self,
        user_id: str,
        request: GenerateRequest,
        result: GenerationResult,
        deadline: float
    ) -> tuple[SourceOrder, dict[str, EpisodeInventory]]:
        """Read the source order and look up every item in the catalog.

        Items the catalog cannot describe are skipped and reported. Raises
        EmptySourceError when nothing is left.
        """
        async with self.session_factory() as session:
            if request.source_type == SourceType.ROTATION_GROUP:
                source = await get_rotation_group(session, request.source_id)
            else:
                source = await get_queue_order(session, user_id)

            catalog = self.catalog_factory(session)
            inventories = {}
            for content_id in source.content_ids:
                try:
                    inventories[content_id] = await asyncio.wait_for(
                        catalog.get_episode_inventory(content_id),
                        self._remaining(deadline)
                    )
                except CatalogLookupError as e:
                    logger.warning(f"[{user_id}] Skipping {content_id}: {e.message}")
                    result.skipped.append(SkippedItem(content_id=content_id, reason=e.message))
                except asyncio.TimeoutError:
                    raise GenerationTimeoutError("Timed out looking up content in the catalog")

        if not inventories:
            raise EmptySourceError("No content in the source could be scheduled")

        source.content_ids = [c for c in source.content_ids if c in inventories]
        return source, inventories

    async def _build_and_persist(
        self,
        user_id: str,
        request: GenerateRequest,
        offset: str,
        source: SourceOrder,
        inventories: dict[str, EpisodeInventory],
        result: GenerationResult,
        deadline: float
    ):
        self._log_phase(user_id, GenerationPhase.BUILDING_GRID)
        slot_duration = request.slot_duration_minutes
        if slot_duration is None:
            slot_duration = optimal_slot_duration(
                [i.default_duration_minutes for i in inventories.values() if not i.is_movie],
                [i.default_duration_minutes for i in inventories.values() if i.is_movie]
            )
            logger.info(f"[{user_id}] Using derived slot duration of {slot_duration} minutes")

        grid = build_slot_grid(
            request.start_date,
            request.end_date,
            request.daily_start_time,
            request.daily_end_time,
            slot_duration,
            request.max_tracks_per_slot,
            offset
        )

        if request.source_type == SourceType.ROTATION_GROUP:
            source_type, source_id = "rotation", request.source_id
        else:
            source_type, source_id = "auto", None
        scope = cursor_scope(source_type, source_id)

        rotation_type = request.rotation_type or source.rotation_type or RotationType.ROUND_ROBIN
        weights = dict(source.weights)
        weights.update(request.rotation_weights or {})
        policy = RerunPolicy(request.include_reruns, request.rerun_frequency)

        async with self.writer.owner_transaction(user_id, self._remaining(deadline)) as session:
            self._log_phase(user_id, GenerationPhase.ASSIGNING)
            existing = await self.writer.load_existing(
                session, user_id, request.start_date, request.end_date
            )
            await self.writer.rewind_cursors(session, user_id, existing.superseded, request.end_date)
            records = await self.writer.load_cursors(session, user_id, scope, source.content_ids)

            cursors = {
                content_id: self._starting_cursor(content_id, inventories[content_id], records.get(content_id), result)
                for content_id in source.content_ids
            }
            state = GenerationState.start(source.content_ids, cursors, rotation_type, weights)
            assignments, state = plan(state, grid, policy, self._blocked_slots(grid, existing.manual))

            # Last point at which the caller's deadline can still cancel
            if self._remaining(deadline) <= 0:
                raise GenerationTimeoutError("Deadline expired before the schedule was saved")

            self._log_phase(user_id, GenerationPhase.RESOLVING_CONFLICTS)
            result.superseded_count = await self.writer.supersede(session, existing.superseded)

            self._log_phase(user_id, GenerationPhase.PERSISTING)
            result.entries = await self.writer.persist(
                session, user_id, assignments, state.cursors, records, scope, source_type, source_id
            )

    def _starting_cursor(
        self,
        content_id: str,
        inventory: EpisodeInventory,
        record: Optional[ContentCursorRecord],
        result: GenerationResult
    ) -> ContentCursor:
        cursor = ContentCursor(
            content_id=content_id,
            next_season=record.next_season if record else 1,
            next_episode=record.next_episode if record else 1,
            total_episodes=inventory.total_episodes,
            season_boundaries=inventory.season_boundaries,
            default_duration_minutes=inventory.default_duration_minutes,
            new_airings=record.new_airings if record else 0,
            reruns_aired=record.reruns_aired if record else 0
        )
        try:
            return cursor.reconciled()
        except CursorInconsistencyError as e:
            logger.warning(f"{e.message}; treating as exhausted")
            result.warnings.append(e.message)
            return cursor.clamped()

    def _blocked_slots(self, grid: SlotGrid, manual: list[ScheduleEntry]) -> list[Slot]:
        """Grid slots already overlapped by manual entries."""
        spans = []
        for entry in manual:
            try:
                spans.append((entry.slot_date, entry.track, parse_time(entry.start_time), parse_time(entry.end_time)))
            except ValidationError:
                logger.warning(f"Ignoring manual entry {entry.id} with unreadable times")
        if not spans:
            return []
        return [slot for slot in grid if any(slot.overlaps(*span) for span in spans)]

    def _remaining(self, deadline: float) -> float:
        return deadline - asyncio.get_running_loop().time()

    def _log_phase(self, user_id: str, phase: GenerationPhase):
        logger.debug(f"[{user_id}] Generation phase: {phase.value}")

    async def _start_run(self, user_id: str, request: GenerateRequest, trigger: str) -> int:
        async with self.session_factory() as session:
            run = GenerationRun(
                user_id=user_id,
                trigger=trigger,
                source_type=request.source_type.value,
                source_id=request.source_id,
                status="running"
            )
            session.add(run)
            await session.commit()
            await session.refresh(run)
            return run.id

    async def _finish_run(
        self,
        run_id: int,
        result: GenerationResult,
        status: str,
        error: Optional[str] = None
    ):
        async with self.session_factory() as session:
            run = await session.get(GenerationRun, run_id)
            if not run:
                return
            run.completed_at = datetime.now()
            run.status = status
            run.created_count = result.created_count
            run.skipped_count = len(result.skipped)
            run.error_message = error
            await session.commit()


# Shared instance so per-owner locks cover every request in this process
schedule_generator = ScheduleGenerator()


def get_generator() -> ScheduleGenerator:
    """Dependency for getting the schedule generator."""
    return schedule_generator
