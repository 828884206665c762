from dataclasses import replace
from typing import Optional

from airtime.engine.reruns import RerunPolicy
from airtime.engine.state import GenerationState, RotationType


def select_next(
    state: GenerationState,
    policy: RerunPolicy
) -> tuple[Optional[str], GenerationState]:
    """Choose the content for the next slot.

    Returns (None, state) when nothing in the rotation can air; the caller
    leaves that slot empty.
    """
    if not state.order:
        return None, state

    if state.rotation_type == RotationType.SEQUENTIAL:
        return _select_sequential(state, policy)
    if state.rotation_type == RotationType.WEIGHTED:
        return _select_weighted(state, policy)
    return _select_round_robin(state, policy)


def _select_round_robin(
    state: GenerationState,
    policy: RerunPolicy
) -> tuple[Optional[str], GenerationState]:
    size = len(state.order)
    for attempt in range(size):
        index = (state.pointer + attempt) % size
        content_id = state.order[index]
        if policy.is_eligible(state.cursor(content_id)):
            return content_id, replace(state, pointer=(index + 1) % size)
    return None, state


def _select_sequential(
    state: GenerationState,
    policy: RerunPolicy
) -> tuple[Optional[str], GenerationState]:
    size = len(state.order)
    for attempt in range(size):
        index = (state.pointer + attempt) % size
        content_id = state.order[index]
        if not state.cursor(content_id).exhausted:
            # Pointer stays put so the item keeps its run of consecutive slots
            return content_id, replace(state, pointer=index)

    # Everything has aired; cycle through reruns
    return _select_round_robin(state, policy)


def _select_weighted(
    state: GenerationState,
    policy: RerunPolicy
) -> tuple[Optional[str], GenerationState]:
    eligible = [
        index for index, content_id in enumerate(state.order)
        if policy.is_eligible(state.cursor(content_id))
    ]
    if not eligible:
        return None, state

    credits = list(state.credits)
    total = 0
    for index in eligible:
        weight = state.weight_of(state.order[index])
        credits[index] += weight
        total += weight

    # max() keeps the first index on ties, i.e. queue order
    chosen = max(eligible, key=lambda index: credits[index])
    credits[chosen] -= total

    return state.order[chosen], replace(state, credits=tuple(credits))
