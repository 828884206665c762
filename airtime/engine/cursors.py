from dataclasses import dataclass, replace
from typing import Optional

from airtime.errors import CursorInconsistencyError

Episode = tuple[Optional[int], Optional[int]]


@dataclass(frozen=True)
class ContentCursor:
    """Per-content pointer to the next unseen episode.

    Positions are tracked as (season, episode-within-season); the absolute
    ordinal is derived from ``season_boundaries`` (episode count per season).
    Movies have ``total_episodes = None`` and count as a single unit.
    """
    content_id: str
    next_season: int = 1
    next_episode: int = 1
    total_episodes: Optional[int] = None
    season_boundaries: tuple[int, ...] = ()
    default_duration_minutes: int = 30
    new_airings: int = 0
    reruns_aired: int = 0

    @property
    def is_movie(self) -> bool:
        return self.total_episodes is None

    @property
    def total(self) -> int:
        return 1 if self.is_movie else self.total_episodes

    @property
    def _boundaries(self) -> tuple[int, ...]:
        if self.is_movie:
            return (1,)
        return self.season_boundaries or (self.total,)

    @property
    def ordinal(self) -> int:
        """1-based absolute position of the next unseen episode."""
        return ordinal_for(self._boundaries, self.next_season, self.next_episode)

    @property
    def exhausted(self) -> bool:
        return self.ordinal > self.total

    @property
    def has_aired(self) -> bool:
        return self.ordinal > 1

    def episode_at(self, ordinal: int) -> Episode:
        """Season/episode pair for an ordinal; (None, None) for movies."""
        if self.is_movie:
            return None, None
        return position_for(self._boundaries, ordinal)

    @property
    def next_airing(self) -> Episode:
        return self.episode_at(self.ordinal)

    @property
    def last_aired(self) -> Optional[Episode]:
        if not self.has_aired:
            return None
        return self.episode_at(self.ordinal - 1)

    def advanced(self) -> "ContentCursor":
        """Cursor after airing the next unseen episode."""
        if self.exhausted:
            return self
        season, episode = position_for(self._boundaries, self.ordinal + 1)
        return replace(
            self,
            next_season=season,
            next_episode=episode,
            new_airings=self.new_airings + 1
        )

    def with_rerun(self) -> "ContentCursor":
        return replace(self, reruns_aired=self.reruns_aired + 1)

    def reconciled(self) -> "ContentCursor":
        """Check the cursor against its catalog totals.

        Raises CursorInconsistencyError when more episodes were consumed than
        the catalog lists; ``clamped`` gives the exhausted replacement.
        """
        consumed = self.ordinal - 1
        if consumed > self.total:
            raise CursorInconsistencyError(self.content_id, consumed, self.total)
        return self

    def clamped(self) -> "ContentCursor":
        season, episode = position_for(self._boundaries, self.total + 1)
        return replace(self, next_season=season, next_episode=episode)


def ordinal_for(boundaries: tuple[int, ...], season: int, episode: int) -> int:
    season = max(1, season)
    if season > len(boundaries):
        return sum(boundaries) + episode
    return sum(boundaries[:season - 1]) + episode


def position_for(boundaries: tuple[int, ...], ordinal: int) -> tuple[int, int]:
    """Map a 1-based ordinal to (season, episode), rolling over season ends.

    Ordinals past the last season stay in the last season, so the
    exhausted position is (last season, last episode + 1).
    """
    remaining = ordinal
    for season, count in enumerate(boundaries, start=1):
        if remaining <= count or season == len(boundaries):
            return season, remaining
        remaining -= count
    return 1, remaining
