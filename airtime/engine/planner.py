from dataclasses import dataclass
from typing import Iterable, Optional

from airtime.engine.grid import Slot, format_time
from airtime.engine.reruns import RerunPolicy
from airtime.engine.selector import select_next
from airtime.engine.state import GenerationState


@dataclass(frozen=True)
class Assignment:
    """One airing placed into a slot."""
    slot: Slot
    content_id: str
    season: Optional[int]
    episode: Optional[int]
    is_rerun: bool
    duration_minutes: int

    @property
    def end_minute(self) -> int:
        return self.slot.start_minute + self.duration_minutes

    @property
    def end_time(self) -> str:
        return format_time(self.end_minute)


def assign_slot(
    state: GenerationState,
    slot: Slot,
    policy: RerunPolicy
) -> tuple[Optional[Assignment], GenerationState]:
    """Fill a single slot. Pure: the input state is never modified."""
    content_id, state = select_next(state, policy)
    if content_id is None:
        return None, state

    cursor = state.cursor(content_id)
    is_rerun = policy.is_rerun(cursor)

    if is_rerun:
        season, episode = cursor.last_aired
        state = state.with_cursor(cursor.with_rerun())
    else:
        season, episode = cursor.next_airing
        state = state.with_cursor(cursor.advanced())

    # Longer content is cut at the slot boundary rather than overrunning
    duration = min(slot.duration_minutes, cursor.default_duration_minutes)

    assignment = Assignment(
        slot=slot,
        content_id=content_id,
        season=season,
        episode=episode,
        is_rerun=is_rerun,
        duration_minutes=duration
    )
    return assignment, state


def plan(
    state: GenerationState,
    slots: Iterable[Slot],
    policy: RerunPolicy,
    blocked: Iterable[Slot] = ()
) -> tuple[list[Assignment], GenerationState]:
    """Walk the grid in order, skipping blocked slots without consuming rotation."""
    blocked = set(blocked)
    assignments = []

    for slot in slots:
        if slot in blocked:
            continue
        assignment, state = assign_slot(state, slot, policy)
        if assignment is not None:
            assignments.append(assignment)

    return assignments, state
