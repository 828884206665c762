from sqlalchemy import String, Integer, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from airtime.database import Base


class ContentCursorRecord(Base):
    """Persisted episode cursor per (user, scope, content).

    Scope is "queue" for the personal queue or "rotation:<group id>".
    """

    __tablename__ = "content_cursors"
    __table_args__ = (UniqueConstraint("user_id", "scope", "content_id"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    scope: Mapped[str] = mapped_column(String(150))
    content_id: Mapped[str] = mapped_column(String(100))

    next_season: Mapped[int] = mapped_column(Integer, default=1)
    next_episode: Mapped[int] = mapped_column(Integer, default=1)
    total_episodes: Mapped[int] = mapped_column(Integer, nullable=True)  # NULL for movies
    default_duration_minutes: Mapped[int] = mapped_column(Integer, default=30)

    new_airings: Mapped[int] = mapped_column(Integer, default=0)
    reruns_aired: Mapped[int] = mapped_column(Integer, default=0)

    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, onupdate=datetime.now)
