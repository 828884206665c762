import re
from collections import Counter
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator

from airtime.errors import InvalidDurationError, InvalidRangeError, ValidationError

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")
_OFFSET_RE = re.compile(r"^[+-](\d{2}):(\d{2})$")


def parse_time(value: str) -> int:
    """Parse an HH:MM wall-clock time into minutes past midnight.

    24:00 is accepted as the end of the day.
    """
    match = _TIME_RE.match(value or "")
    if not match:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59 or hours > 24 or (hours == 24 and minutes != 0):
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")
    return hours * 60 + minutes


def format_time(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def validate_offset(value: str) -> str:
    """Check a ±HH:MM timezone offset and return it unchanged."""
    match = _OFFSET_RE.match(value or "")
    if not match or int(match.group(1)) > 14 or int(match.group(2)) > 59:
        raise ValidationError(f"Invalid timezone offset '{value}', expected ±HH:MM")
    return value


def offset_minutes(value: str) -> int:
    validate_offset(value)
    sign = -1 if value[0] == "-" else 1
    return sign * (int(value[1:3]) * 60 + int(value[4:6]))


@dataclass(frozen=True)
class Slot:
    """A window on one date and track into which one airing may go."""
    date: date
    track: int
    start_minute: int
    end_minute: int
    timezone_offset: str

    @property
    def start_time(self) -> str:
        return format_time(self.start_minute)

    @property
    def end_time(self) -> str:
        return format_time(self.end_minute)

    @property
    def duration_minutes(self) -> int:
        return self.end_minute - self.start_minute

    def overlaps(self, slot_date: date, track: int, start_minute: int, end_minute: int) -> bool:
        return (
            self.date == slot_date
            and self.track == track
            and self.start_minute < end_minute
            and start_minute < self.end_minute
        )


class SlotGrid:
    """Ordered, restartable sequence of slots: date, then start time, then track."""

    def __init__(
        self,
        start_date: date,
        end_date: date,
        daily_start: int,
        daily_end: int,
        slot_duration_minutes: int,
        max_tracks: int,
        timezone_offset: str
    ):
        self.start_date = start_date
        self.end_date = end_date
        self.daily_start = daily_start
        self.daily_end = daily_end
        self.slot_duration_minutes = slot_duration_minutes
        self.max_tracks = max_tracks
        self.timezone_offset = timezone_offset

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    @property
    def slots_per_track(self) -> int:
        window = self.daily_end - self.daily_start
        return -(-window // self.slot_duration_minutes)

    def __len__(self) -> int:
        return self.days * self.slots_per_track * self.max_tracks

    def __iter__(self) -> Iterator[Slot]:
        for day in range(self.days):
            current = self.start_date + timedelta(days=day)
            start = self.daily_start
            while start < self.daily_end:
                # Last slot of the day is cut short at the window end
                end = min(start + self.slot_duration_minutes, self.daily_end)
                for track in range(self.max_tracks):
                    yield Slot(current, track, start, end, self.timezone_offset)
                start = end


def build_slot_grid(
    start_date: date,
    end_date: date,
    daily_start_time: str,
    daily_end_time: str,
    slot_duration_minutes: int,
    max_tracks: int = 1,
    timezone_offset: str = "+00:00"
) -> SlotGrid:
    """Validate the window parameters and return the slot grid."""
    if start_date > end_date:
        raise InvalidRangeError(
            f"start_date {start_date.isoformat()} is after end_date {end_date.isoformat()}"
        )

    daily_start = parse_time(daily_start_time)
    daily_end = parse_time(daily_end_time)
    if daily_start >= daily_end:
        raise InvalidRangeError(
            f"daily_start_time {daily_start_time} must be before daily_end_time {daily_end_time}"
        )

    if slot_duration_minutes is None or slot_duration_minutes <= 0:
        raise InvalidDurationError(
            f"slot_duration_minutes must be positive, got {slot_duration_minutes}"
        )

    if max_tracks < 1:
        raise ValidationError(f"max_tracks_per_slot must be at least 1, got {max_tracks}")

    validate_offset(timezone_offset)

    return SlotGrid(
        start_date,
        end_date,
        daily_start,
        daily_end,
        slot_duration_minutes,
        max_tracks,
        timezone_offset
    )


def optimal_slot_duration(show_durations: list[int], movie_durations: list[int]) -> int:
    """Pick a slot length that fits the content being scheduled.

    Shows win: the most common episode duration (smallest on ties). With only
    movies, a quarter of their average runtime. Rounded up to 15 minutes.
    """
    show_durations = [d for d in show_durations if d and d > 0]
    movie_durations = [d for d in movie_durations if d and d > 0]

    if show_durations:
        counts = Counter(show_durations)
        target = min(counts, key=lambda d: (-counts[d], d))
    elif movie_durations:
        target = int(sum(movie_durations) / len(movie_durations)) // 4
    else:
        target = 30

    return max(15, -(-target // 15) * 15)
