import httpx
from dataclasses import dataclass
from typing import Optional
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from airtime.config import settings
from airtime.errors import CatalogLookupError
from airtime.models import Content, Episode

logger = logging.getLogger(__name__)

DEFAULT_EPISODE_DURATION = 30


@dataclass(frozen=True)
class EpisodeInventory:
    """What the generator needs to know about a content item."""
    content_id: str
    total_episodes: Optional[int]  # None for movies
    season_boundaries: tuple[int, ...]
    default_duration_minutes: int

    @property
    def is_movie(self) -> bool:
        return self.total_episodes is None


class DatabaseCatalog:
    """Reads inventories from the locally cached content and episodes tables."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_episode_inventory(self, content_id: str) -> EpisodeInventory:
        content = await self.session.get(Content, content_id)
        if not content:
            raise CatalogLookupError(content_id, "Not found in catalog")

        if content.content_type == "movie":
            if not content.default_duration or content.default_duration <= 0:
                raise CatalogLookupError(
                    content_id, f"Invalid movie duration: {content.default_duration}"
                )
            return EpisodeInventory(content_id, None, (), content.default_duration)

        # Season 0 holds specials, which are never part of the rotation
        result = await self.session.execute(
            select(Episode.season, func.count(Episode.id), func.max(Episode.duration))
            .where(Episode.content_id == content_id, Episode.season >= 1)
            .group_by(Episode.season)
            .order_by(Episode.season)
        )
        rows = result.all()
        if not rows:
            raise CatalogLookupError(content_id, "No episodes cached for show")

        counts = {season: count for season, count, _ in rows}
        boundaries = tuple(counts.get(season, 0) for season in range(1, max(counts) + 1))

        duration = content.default_duration
        if not duration or duration <= 0:
            episode_durations = [d for _, _, d in rows if d]
            duration = max(episode_durations) if episode_durations else DEFAULT_EPISODE_DURATION

        return EpisodeInventory(content_id, sum(boundaries), boundaries, duration)


class CatalogClient:
    """Client for a remote catalog service."""

    def __init__(self, url: str, api_key: str):
        self.base_url = url.rstrip("/")
        self.api_key = api_key
        self.headers = {
            "X-Api-Key": api_key,
            "Content-Type": "application/json"
        }

    async def get_episode_inventory(self, content_id: str) -> EpisodeInventory:
        """Fetch episode counts and default runtime for one content item."""
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(
                    f"{self.base_url}/content/{content_id}/inventory",
                    headers=self.headers,
                    timeout=10.0
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise CatalogLookupError(content_id, f"Catalog request failed: {e}") from e

        duration = data.get("default_duration_minutes") or 0
        if duration <= 0:
            raise CatalogLookupError(content_id, f"Invalid duration: {duration}")

        total = data.get("total_episodes")
        boundaries = tuple(data.get("season_boundaries") or ())
        if total is not None and total <= 0:
            raise CatalogLookupError(content_id, "Catalog lists no episodes")

        return EpisodeInventory(content_id, total, boundaries, duration)


def get_catalog(session: AsyncSession):
    """Remote catalog when configured, else the local cache."""
    if settings.catalog_url:
        return CatalogClient(settings.catalog_url, settings.catalog_api_key)
    return DatabaseCatalog(session)
