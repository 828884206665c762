from sqlalchemy import String, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from airtime.database import Base


class RotationGroup(Base):
    """Named, ordered set of content with its own rotation policy."""

    __tablename__ = "rotation_groups"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=True)

    # "round_robin", "sequential" or "weighted"
    rotation_type: Mapped[str] = mapped_column(String(20), default="round_robin")


class RotationContent(Base):
    """Content in a rotation group."""

    __tablename__ = "rotation_content"
    __table_args__ = (UniqueConstraint("rotation_id", "content_id"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    rotation_id: Mapped[str] = mapped_column(String(100), ForeignKey("rotation_groups.id"), index=True)
    content_id: Mapped[str] = mapped_column(String(100), ForeignKey("content.id"))
    position: Mapped[int] = mapped_column(Integer)
    weight: Mapped[int] = mapped_column(Integer, default=1)
