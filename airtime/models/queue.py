from sqlalchemy import String, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from airtime.database import Base


class QueueEntry(Base):
    """A user's queued content; position defines order."""

    __tablename__ = "queue"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    content_id: Mapped[str] = mapped_column(String(100), ForeignKey("content.id"))
    position: Mapped[int] = mapped_column(Integer)
