import uuid
from sqlalchemy import String, Integer, Boolean, Date, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from datetime import date, datetime
from airtime.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class ScheduleEntry(Base):
    """A scheduled airing on a user's calendar."""

    __tablename__ = "schedule"
    __table_args__ = (Index("idx_schedule_user_date", "user_id", "slot_date"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(100))
    content_id: Mapped[str] = mapped_column(String(100))
    season: Mapped[int] = mapped_column(Integer, nullable=True)  # NULL for movies
    episode: Mapped[int] = mapped_column(Integer, nullable=True)  # NULL for movies

    # Nominal local time, never combined with the offset
    slot_date: Mapped[date] = mapped_column(Date)
    track: Mapped[int] = mapped_column(Integer, default=0)
    start_time: Mapped[str] = mapped_column(String(5))  # HH:MM
    end_time: Mapped[str] = mapped_column(String(5))  # HH:MM, 24:00 at end of day
    duration_minutes: Mapped[int] = mapped_column(Integer)
    timezone_offset: Mapped[str] = mapped_column(String(6), default="+00:00")

    # "manual", "auto" or "rotation"
    source_type: Mapped[str] = mapped_column(String(20))
    source_id: Mapped[str] = mapped_column(String(100), nullable=True)  # rotation group id

    watched: Mapped[bool] = mapped_column(Boolean, default=False)
    is_rerun: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)


class OwnerLock(Base):
    """One row per schedule owner, row-locked while a generation persists."""

    __tablename__ = "owner_locks"

    user_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    locked_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
