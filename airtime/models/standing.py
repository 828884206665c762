from sqlalchemy import String, Integer, Boolean, Text
from sqlalchemy.orm import Mapped, mapped_column
from airtime.database import Base


class StandingRequest(Base):
    """Generation parameters re-run nightly for a user."""

    __tablename__ = "standing_requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), unique=True)

    # Window regenerated each night, starting today
    days_ahead: Mapped[int] = mapped_column(Integer, default=7)

    # GenerateRequest fields (without dates) as JSON
    parameters: Mapped[str] = mapped_column(Text)

    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
