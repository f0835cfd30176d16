import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, time, timedelta
from typing import List, NamedTuple, Optional
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config import DEFAULT_EASE, MAX_NOTIFICATION_MINUTES
from .enums import DifficultyLevel, NotificationKind, Priority, Quality
from .errors import InvalidFeedbackError, InvalidSettingsError

HHMM = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


@dataclass(frozen=True)
class ReviewSchedule:
    schedule_id: UUID
    student_id: UUID
    item_id: UUID
    next_review_at: datetime
    interval: timedelta = timedelta(0)
    ease_factor: float = DEFAULT_EASE
    review_count: int = 0
    consecutive_failures: int = 0
    difficulty_level: DifficultyLevel = DifficultyLevel.BEGINNER
    last_reviewed_at: Optional[datetime] = None

    @property
    def current_interval_days(self) -> float:
        return max(self.interval, timedelta(0)) / timedelta(days=1)

    @property
    def interval_set_at(self) -> datetime:
        if self.last_reviewed_at is not None:
            return self.last_reviewed_at
        return self.next_review_at - max(self.interval, timedelta(0))


@dataclass(frozen=True)
class ReviewFeedback:
    quality: Quality
    response_time_seconds: Optional[float] = None
    confidence: Optional[int] = None

    @classmethod
    def create(cls, quality, response_time_seconds=None, confidence=None):
        """Validate raw input and build feedback, raising InvalidFeedbackError."""
        quality = Quality.parse(quality)
        if response_time_seconds is not None and response_time_seconds < 0:
            raise InvalidFeedbackError("response_time_seconds must be non-negative")
        if confidence is not None and (
            isinstance(confidence, bool) or not isinstance(confidence, int) or not 1 <= confidence <= 5
        ):
            raise InvalidFeedbackError("confidence must be an integer between 1 and 5")
        return cls(quality, response_time_seconds, confidence)


def parse_hhmm(value) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    match = HHMM.match(value) if isinstance(value, str) else None
    if not match:
        raise InvalidSettingsError(f"Invalid time {value!r}, expected HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


@dataclass(frozen=True)
class QuietHours:
    start: time = time(22, 0)
    end: time = time(8, 0)
    enabled: bool = False

    def __post_init__(self):
        if not (isinstance(self.start, time) and isinstance(self.end, time)):
            raise InvalidSettingsError("quiet hours need start and end times")

    @property
    def duration(self) -> timedelta:
        start = self.start.hour * 60 + self.start.minute
        end = self.end.hour * 60 + self.end.minute
        if start <= end:
            return timedelta(minutes=end - start)
        return timedelta(minutes=24 * 60 - start + end)

    def to_dict(self):
        return {
            "start": self.start.strftime("%H:%M"),
            "end": self.end.strftime("%H:%M"),
            "enabled": self.enabled,
        }


def _check_minutes(name, value):
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidSettingsError(f"{name} must be an integer")
    if not 0 <= value <= MAX_NOTIFICATION_MINUTES:
        raise InvalidSettingsError(
            f"{name} must be between 0 and {MAX_NOTIFICATION_MINUTES}, got {value}"
        )


@dataclass(frozen=True)
class NotificationSettings:
    overdue_enabled: bool = True
    reminder_enabled: bool = True
    overdue_delay_minutes: int = 30
    reminder_advance_minutes: int = 60
    quiet_hours: QuietHours = field(default_factory=QuietHours)
    timezone: str = "UTC"

    def __post_init__(self):
        _check_minutes("overdue_delay_minutes", self.overdue_delay_minutes)
        _check_minutes("reminder_advance_minutes", self.reminder_advance_minutes)
        if not isinstance(self.quiet_hours, QuietHours):
            raise InvalidSettingsError("quiet_hours must be a QuietHours window")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError, TypeError):
            raise InvalidSettingsError(f"Unknown timezone {self.timezone!r}")

    @classmethod
    def from_dict(cls, data):
        """Parse a settings record, raising InvalidSettingsError when malformed.

        Accepts either a nested ``quiet_hours`` mapping or the flat
        ``quiet_start``/``quiet_end``/``quiet_enabled`` columns of the store.
        """
        data = dict(data or {})
        quiet = data.get("quiet_hours")
        if quiet is None:
            quiet = {
                "start": data.get("quiet_start", "22:00"),
                "end": data.get("quiet_end", "08:00"),
                "enabled": data.get("quiet_enabled", False),
            }
        elif isinstance(quiet, QuietHours):
            quiet = quiet.to_dict()
        return cls(
            overdue_enabled=bool(data.get("overdue_enabled", True)),
            reminder_enabled=bool(data.get("reminder_enabled", True)),
            overdue_delay_minutes=data.get("overdue_delay_minutes", 30),
            reminder_advance_minutes=data.get("reminder_advance_minutes", 60),
            quiet_hours=QuietHours(
                start=parse_hhmm(quiet.get("start", "22:00")),
                end=parse_hhmm(quiet.get("end", "08:00")),
                enabled=bool(quiet.get("enabled", False)),
            ),
            timezone=data.get("timezone") or "UTC",
        )

    @property
    def tzinfo(self):
        return ZoneInfo(self.timezone)

    @property
    def any_enabled(self) -> bool:
        return self.overdue_enabled or self.reminder_enabled

    def enabled_for(self, kind: NotificationKind) -> bool:
        if kind is NotificationKind.OVERDUE:
            return self.overdue_enabled
        return self.reminder_enabled

    def to_dict(self):
        return {
            "overdue_enabled": self.overdue_enabled,
            "reminder_enabled": self.reminder_enabled,
            "overdue_delay_minutes": self.overdue_delay_minutes,
            "reminder_advance_minutes": self.reminder_advance_minutes,
            "quiet_hours": self.quiet_hours.to_dict(),
            "timezone": self.timezone,
        }


@dataclass(frozen=True)
class NotificationEvent:
    schedule_id: UUID
    student_id: UUID
    kind: NotificationKind
    triggered_at: datetime
    next_review_at: datetime

    def to_dict(self):
        return {
            "schedule_id": str(self.schedule_id),
            "student_id": str(self.student_id),
            "kind": self.kind.value,
            "triggered_at": self.triggered_at.isoformat(),
            "next_review_at": self.next_review_at.isoformat(),
        }


@dataclass(frozen=True)
class QueueItem:
    schedule_id: UUID
    student_id: UUID
    item_id: UUID
    next_review_at: datetime
    current_interval_days: float
    ease_factor: float
    review_count: int
    consecutive_failures: int
    priority: Priority
    is_overdue: bool
    minutes_until_due: float
    difficulty_level: DifficultyLevel
    retention_probability: float

    def to_dict(self):
        data = asdict(self)
        data.update(
            schedule_id=str(self.schedule_id),
            student_id=str(self.student_id),
            item_id=str(self.item_id),
            next_review_at=self.next_review_at.isoformat(),
            priority=self.priority.value,
            difficulty_level=self.difficulty_level.value,
            minutes_until_due=round(self.minutes_until_due, 2),
            retention_probability=round(self.retention_probability, 4),
        )
        return data


@dataclass(frozen=True)
class DueQueue:
    reviews: List[QueueItem]
    total_count: int
    high_priority_count: int
    overdue_count: int
    upcoming_count: int

    def to_dict(self):
        return {
            "reviews": [item.to_dict() for item in self.reviews],
            "total_count": self.total_count,
            "high_priority_count": self.high_priority_count,
            "overdue_count": self.overdue_count,
            "upcoming_count": self.upcoming_count,
        }


class NotificationKey(NamedTuple):
    schedule_id: UUID
    kind: NotificationKind
    next_review_at: datetime
