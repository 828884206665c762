from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Mapping, Optional

from airtime.engine.cursors import ContentCursor


class RotationType(str, Enum):
    """Strategy for picking the next item."""

    ROUND_ROBIN = "round_robin"
    SEQUENTIAL = "sequential"
    WEIGHTED = "weighted"


@dataclass(frozen=True)
class GenerationState:
    """Everything that carries from one slot to the next during assignment.

    Treated as immutable: every step returns a new state, so planning is
    reentrant and a partially walked grid can be replayed from any state.
    """
    order: tuple[str, ...]
    cursors: Mapping[str, ContentCursor]
    rotation_type: RotationType = RotationType.ROUND_ROBIN
    weights: Mapping[str, int] = field(default_factory=dict)
    pointer: int = 0
    credits: tuple[int, ...] = ()

    @classmethod
    def start(
        cls,
        order: list[str],
        cursors: Mapping[str, ContentCursor],
        rotation_type: RotationType = RotationType.ROUND_ROBIN,
        weights: Optional[Mapping[str, int]] = None
    ) -> "GenerationState":
        order = tuple(order)
        return cls(
            order=order,
            cursors=dict(cursors),
            rotation_type=rotation_type,
            weights=dict(weights or {}),
            credits=tuple(0 for _ in order)
        )

    def weight_of(self, content_id: str) -> int:
        return self.weights.get(content_id, 1)

    def cursor(self, content_id: str) -> ContentCursor:
        return self.cursors[content_id]

    def with_cursor(self, cursor: ContentCursor) -> "GenerationState":
        cursors = dict(self.cursors)
        cursors[cursor.content_id] = cursor
        return replace(self, cursors=cursors)
