from enum import Enum

from .errors import InvalidFeedbackError


class Quality(str, Enum):
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidFeedbackError(f"Unknown feedback quality: {value!r}")


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return PRIORITY_ORDER[self]


PRIORITY_ORDER = {
    Priority.HIGH: 0,
    Priority.MEDIUM: 1,
    Priority.LOW: 2,
}


class DifficultyLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class NotificationKind(str, Enum):
    OVERDUE = "overdue"
    REMINDER = "reminder"


class SessionState(str, Enum):
    AWAITING_REVEAL = "awaiting_reveal"
    AWAITING_FEEDBACK = "awaiting_feedback"
    SUBMITTED = "submitted"


QUALITY_LABELS = {
    Quality.AGAIN: "Again",
    Quality.HARD: "Hard",
    Quality.GOOD: "Good",
    Quality.EASY: "Easy",
}
