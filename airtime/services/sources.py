from dataclasses import dataclass, field
from typing import Optional
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from airtime.engine import RotationType
from airtime.errors import EmptySourceError, SourceNotFoundError, ValidationError
from airtime.models import QueueEntry, RotationGroup, RotationContent

logger = logging.getLogger(__name__)


@dataclass
class SourceOrder:
    """Ordered content ids to rotate through, with optional policy defaults."""
    content_ids: list[str]
    weights: dict[str, int] = field(default_factory=dict)
    rotation_type: Optional[RotationType] = None
    name: Optional[str] = None


def _unique(content_ids: list[str]) -> list[str]:
    """Drop repeated ids, keeping the first position."""
    seen = set()
    ordered = []
    for content_id in content_ids:
        if content_id not in seen:
            seen.add(content_id)
            ordered.append(content_id)
    return ordered


async def get_queue_order(session: AsyncSession, user_id: str) -> SourceOrder:
    """Get the user's queue as an ordered list of content ids."""
    result = await session.execute(
        select(QueueEntry.content_id)
        .where(QueueEntry.user_id == user_id)
        .order_by(QueueEntry.position, QueueEntry.id)
    )
    content_ids = _unique(list(result.scalars().all()))

    if not content_ids:
        raise EmptySourceError("Queue is empty")

    return SourceOrder(content_ids=content_ids, name="queue")


async def get_rotation_group(session: AsyncSession, group_id: str) -> SourceOrder:
    """Get a rotation group's content in position order, with weights."""
    group = await session.get(RotationGroup, group_id)
    if not group:
        raise SourceNotFoundError(f"Rotation group not found: {group_id}")

    result = await session.execute(
        select(RotationContent)
        .where(RotationContent.rotation_id == group_id)
        .order_by(RotationContent.position, RotationContent.id)
    )
    items = result.scalars().all()

    content_ids = _unique([item.content_id for item in items])
    if not content_ids:
        raise EmptySourceError(f"Rotation group '{group.name or group_id}' has no content")

    weights = {}
    for item in items:
        weights.setdefault(item.content_id, max(1, item.weight or 1))

    try:
        rotation_type = RotationType(group.rotation_type) if group.rotation_type else None
    except ValueError:
        raise ValidationError(
            f"Rotation group {group_id} has unsupported rotation type '{group.rotation_type}'"
        )

    return SourceOrder(
        content_ids=content_ids,
        weights=weights,
        rotation_type=rotation_type,
        name=group.name
    )
