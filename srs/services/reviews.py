from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from django.db import transaction
from django.utils import timezone
import structlog

from ..config import SchedulerConfig, get_scheduler_config
from ..data.repos import (
    clear_stale_deferrals,
    get_existing_idempotent,
    get_schedule_for_update,
    list_schedules,
    persist_review,
    save_schedule,
    to_domain,
)
from ..domain.logic import review
from ..domain.ranking import rank
from ..domain.types import DueQueue, ReviewFeedback, ReviewSchedule

logger = structlog.get_logger()


@dataclass(frozen=True)
class SubmitResult:
    schedule: ReviewSchedule
    previous_interval_days: float
    previous_ease_factor: float
    quality: str
    idempotent: bool


def submit_feedback(student_id, schedule_id, feedback: ReviewFeedback, idempotency_key=None,
                    now: datetime = None, config: SchedulerConfig = None) -> SubmitResult:
    """Apply a learner's feedback to one schedule and persist it atomically.

    Raises InvalidFeedbackError for bad feedback or a corrupt schedule and
    ScheduleNotFoundError when the learner has no such schedule.
    """
    config = config or get_scheduler_config()
    logger.info("review_received",
        student_id=str(student_id),
        schedule_id=str(schedule_id),
        quality=str(getattr(feedback.quality, "value", feedback.quality)),
        idempotency_key=idempotency_key,
    )

    with transaction.atomic():
        # Serialize updates per schedule
        row = get_schedule_for_update(student_id, schedule_id)

        # Fast path: return previous result if same idempotency_key
        existing = get_existing_idempotent(row.id, idempotency_key)
        if existing:
            logger.info("idempotent_reuse",
                student_id=str(student_id),
                schedule_id=str(schedule_id),
                next_review_utc=existing.next_review_at.isoformat(),
            )
            return _from_log(row, existing)

        now = now or timezone.now()
        outcome = review(to_domain(row), feedback, now, config)
        save_schedule(row, outcome.schedule)
        # the due cycle moved on; deferred notifications for the old one are moot
        cleared = clear_stale_deferrals(row.id, outcome.schedule.next_review_at)
        log, was_idempotent = persist_review(row, outcome, feedback, idempotency_key, now)

    logger.info("review_scheduled",
        student_id=str(student_id),
        schedule_id=str(schedule_id),
        quality=outcome.quality.value,
        interval_seconds=int(outcome.schedule.interval.total_seconds()),
        ease_factor=outcome.schedule.ease_factor,
        consecutive_failures=outcome.schedule.consecutive_failures,
        next_review_utc=outcome.schedule.next_review_at.isoformat(),
        cleared_deferrals=cleared,
    )

    return SubmitResult(
        schedule=outcome.schedule,
        previous_interval_days=outcome.previous_interval_days,
        previous_ease_factor=outcome.previous_ease_factor,
        quality=outcome.quality.value,
        idempotent=was_idempotent,
    )


def _from_log(row, log) -> SubmitResult:
    # The row may have moved on since; report the state recorded with the key
    return SubmitResult(
        schedule=replace(
            to_domain(row),
            next_review_at=log.next_review_at,
            interval=timedelta(seconds=log.next_interval_seconds),
            ease_factor=log.ease_factor,
            last_reviewed_at=log.created_at,
        ),
        previous_interval_days=log.previous_interval_seconds / 86400,
        previous_ease_factor=log.previous_ease_factor,
        quality=log.quality,
        idempotent=True,
    )


def get_due_queue(student_id, now: datetime = None, until: datetime = None,
                  config: SchedulerConfig = None) -> DueQueue:
    config = config or get_scheduler_config()
    now = now or timezone.now()
    until = until or now + config.due_horizon
    queue = rank(list_schedules(student_id, until=until), now)
    logger.info("due_queue_built",
        student_id=str(student_id),
        until_utc=until.isoformat(),
        total=queue.total_count,
        high_priority=queue.high_priority_count,
        overdue=queue.overdue_count,
        upcoming=queue.upcoming_count,
    )
    return queue


def get_overdue_reviews(student_id, now: datetime = None):
    """Overdue queue items, most overdue first."""
    now = now or timezone.now()
    items = rank(list_schedules(student_id, until=now), now).reviews
    return sorted((i for i in items if i.is_overdue), key=lambda i: (i.next_review_at, str(i.schedule_id)))
