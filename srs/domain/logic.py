import dataclasses
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..config import (
    AGAIN_EASE_PENALTY,
    DEFAULT_CONFIG,
    EASE_FLOOR,
    EASY_EASE_BONUS,
    HARD_EASE_PENALTY,
    SchedulerConfig,
)
from .enums import Quality
from .errors import InvalidFeedbackError
from .retention import estimate
from .types import ReviewFeedback, ReviewSchedule


@dataclass(frozen=True)
class ReviewOutcome:
    schedule: ReviewSchedule
    quality: Quality
    previous_interval: timedelta
    previous_ease_factor: float
    retention_at_review: float

    @property
    def previous_interval_days(self) -> float:
        return self.previous_interval / timedelta(days=1)


def _ease(value: float) -> float:
    return max(EASE_FLOOR, value)


def next_interval(quality: Quality, interval: timedelta, ease_factor: float,
                  config: SchedulerConfig = DEFAULT_CONFIG) -> timedelta:
    if quality is Quality.AGAIN:
        return config.again_interval
    if quality is Quality.HARD:
        return config.hard_interval

    interval = max(interval, timedelta(0))
    if quality is Quality.GOOD:
        # Sub-day intervals only exist before the first success or while relearning
        proposed = interval if interval >= config.seed_interval else config.seed_interval
    else:
        days = round(interval / timedelta(days=1) * ease_factor)
        proposed = max(timedelta(days=days), config.seed_interval)
    if config.max_interval is None:
        return proposed
    return min(proposed, max(interval, config.max_interval))


def apply(schedule: ReviewSchedule, feedback: ReviewFeedback, now: datetime,
          config: SchedulerConfig = DEFAULT_CONFIG) -> ReviewSchedule:
    """Return ``schedule`` updated with the learner's feedback.

    The input record is left untouched. Raises InvalidFeedbackError for an
    unknown quality or an ease factor that is already below the floor.
    """
    quality = Quality.parse(feedback.quality)
    if schedule.ease_factor < EASE_FLOOR:
        raise InvalidFeedbackError(
            f"Schedule {schedule.schedule_id} has corrupt ease factor {schedule.ease_factor}"
        )

    ease = schedule.ease_factor
    if quality is Quality.AGAIN:
        ease = _ease(ease - AGAIN_EASE_PENALTY)
    elif quality is Quality.HARD:
        ease = _ease(ease - HARD_EASE_PENALTY)
    elif quality is Quality.EASY:
        ease = _ease(ease + EASY_EASE_BONUS)

    # EASY grows from the ease factor in effect before this review
    interval = next_interval(quality, schedule.interval, schedule.ease_factor, config)
    failures = schedule.consecutive_failures + 1 if quality is Quality.AGAIN else 0

    return dataclasses.replace(
        schedule,
        interval=interval,
        ease_factor=ease,
        consecutive_failures=failures,
        review_count=schedule.review_count + 1,
        next_review_at=now + interval,
        last_reviewed_at=now,
    )


def review(schedule: ReviewSchedule, feedback: ReviewFeedback, now: datetime,
           config: SchedulerConfig = DEFAULT_CONFIG) -> ReviewOutcome:
    updated = apply(schedule, feedback, now, config)
    return ReviewOutcome(
        schedule=updated,
        quality=Quality.parse(feedback.quality),
        previous_interval=max(schedule.interval, timedelta(0)),
        previous_ease_factor=schedule.ease_factor,
        retention_at_review=estimate(schedule, now),
    )
