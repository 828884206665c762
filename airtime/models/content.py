from sqlalchemy import String, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from airtime.database import Base


class Content(Base):
    """Cached catalog entry for a show or movie."""

    __tablename__ = "content"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    title: Mapped[str] = mapped_column(String(500))
    content_type: Mapped[str] = mapped_column(String(20))  # 'show' or 'movie'
    default_duration: Mapped[int] = mapped_column(Integer, nullable=True)  # minutes


class Episode(Base):
    """Cached episode listing for a show."""

    __tablename__ = "episodes"
    __table_args__ = (UniqueConstraint("content_id", "season", "episode_number"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    content_id: Mapped[str] = mapped_column(String(100), ForeignKey("content.id"), index=True)
    season: Mapped[int] = mapped_column(Integer)
    episode_number: Mapped[int] = mapped_column(Integer)
    duration: Mapped[int] = mapped_column(Integer, nullable=True)
