from sqlalchemy import Integer, Float
from sqlalchemy.orm import Mapped, mapped_column
from airtime.database import Base


class AppSettings(Base):
    """Stores application settings."""

    __tablename__ = "app_settings"

    id: Mapped[int] = mapped_column(primary_key=True)
    refresh_hour: Mapped[int] = mapped_column(Integer, default=3)
    refresh_minute: Mapped[int] = mapped_column(Integer, default=0)
    generation_timeout_seconds: Mapped[float] = mapped_column(Float, default=30.0)
