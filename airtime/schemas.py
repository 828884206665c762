"""Request and response models for the HTTP API."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from airtime.engine import RerunFrequency, RotationType


class SourceType(str, Enum):
    """Where the content order comes from."""

    QUEUE = "queue"
    ROTATION_GROUP = "rotation_group"


class GenerationParameters(BaseModel):
    """Everything about a generation except the date range."""

    source_type: SourceType = SourceType.QUEUE
    source_id: Optional[str] = None
    daily_start_time: str = "18:00"
    daily_end_time: str = "24:00"
    slot_duration_minutes: Optional[int] = None  # derived from content when omitted
    max_tracks_per_slot: int = 1
    timezone_offset: Optional[str] = None
    include_reruns: bool = False
    rerun_frequency: RerunFrequency = RerunFrequency.RARELY
    rotation_type: Optional[RotationType] = None
    rotation_weights: Optional[dict[str, int]] = None


class GenerateRequest(GenerationParameters):
    """Request to generate a schedule over a date range."""

    start_date: date
    end_date: date


class ScheduleEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    content_id: str
    season: Optional[int] = None
    episode: Optional[int] = None
    slot_date: date
    track: int
    start_time: str
    end_time: str
    duration_minutes: int
    timezone_offset: str
    source_type: str
    source_id: Optional[str] = None
    watched: bool
    is_rerun: bool


class SkippedItem(BaseModel):
    """A requested content item left out of the run, with the reason."""

    content_id: str
    reason: str


class GenerateResponse(BaseModel):
    created_count: int
    schedule_entries: list[ScheduleEntryOut]
    skipped: list[SkippedItem] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class StandingRequestIn(BaseModel):
    """Nightly regeneration settings for the current user."""

    days_ahead: int = Field(7, ge=1, le=60)
    enabled: bool = True
    parameters: GenerationParameters


class StandingRequestOut(StandingRequestIn):
    user_id: str


class GenerationRunOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    trigger: str
    source_type: str
    source_id: Optional[str] = None
    status: str
    created_count: int
    skipped_count: int
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None


class SettingsUpdate(BaseModel):
    refresh_hour: int = Field(ge=0, le=23)
    refresh_minute: int = Field(ge=0, le=59)
    generation_timeout_seconds: float = Field(gt=0)
