from dataclasses import dataclass
from enum import Enum
from typing import Optional

from airtime.engine.cursors import ContentCursor


class RerunFrequency(str, Enum):
    """How often reruns are mixed in."""

    NEVER = "never"
    RARELY = "rarely"
    SOMETIMES = "sometimes"
    OFTEN = "often"


# One rerun per this many new airings
RERUN_INTERVALS = {
    RerunFrequency.NEVER: None,
    RerunFrequency.RARELY: 10,
    RerunFrequency.SOMETIMES: 5,
    RerunFrequency.OFTEN: 2,
}


@dataclass(frozen=True)
class RerunPolicy:
    enabled: bool = False
    frequency: RerunFrequency = RerunFrequency.RARELY

    @property
    def interval(self) -> Optional[int]:
        if not self.enabled:
            return None
        return RERUN_INTERVALS[self.frequency]

    @property
    def active(self) -> bool:
        return self.interval is not None

    def is_rerun(self, cursor: ContentCursor) -> bool:
        """Whether the next airing of this item should repeat its last episode."""
        if not cursor.has_aired or not self.active:
            return False
        if cursor.exhausted:
            return True
        return cursor.reruns_aired < cursor.new_airings // self.interval

    def is_eligible(self, cursor: ContentCursor) -> bool:
        """Whether the item can fill a slot at all."""
        if not cursor.exhausted:
            return True
        return self.active and cursor.has_aired
