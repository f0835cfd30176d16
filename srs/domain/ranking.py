from datetime import datetime
from typing import Iterable

from ..config import HIGH_PRIORITY_FAILURES, MEDIUM_PRIORITY_MINUTES
from ..utils.time import minutes_between
from .enums import Priority
from .retention import estimate
from .types import DueQueue, QueueItem, ReviewSchedule


def classify(schedule: ReviewSchedule, now: datetime) -> QueueItem:
    minutes_until_due = minutes_between(schedule.next_review_at, now)
    is_overdue = schedule.next_review_at < now

    if is_overdue or schedule.consecutive_failures >= HIGH_PRIORITY_FAILURES:
        priority = Priority.HIGH
    elif minutes_until_due <= MEDIUM_PRIORITY_MINUTES:
        priority = Priority.MEDIUM
    else:
        priority = Priority.LOW

    return QueueItem(
        schedule_id=schedule.schedule_id,
        student_id=schedule.student_id,
        item_id=schedule.item_id,
        next_review_at=schedule.next_review_at,
        current_interval_days=schedule.current_interval_days,
        ease_factor=schedule.ease_factor,
        review_count=schedule.review_count,
        consecutive_failures=schedule.consecutive_failures,
        priority=priority,
        is_overdue=is_overdue,
        minutes_until_due=minutes_until_due,
        difficulty_level=schedule.difficulty_level,
        retention_probability=estimate(schedule, now),
    )


def sort_key(item: QueueItem):
    return (item.priority.rank, item.minutes_until_due, str(item.schedule_id))


def rank(schedules: Iterable[ReviewSchedule], now: datetime) -> DueQueue:
    """Order schedules into the review queue: tier, then most overdue, then id."""
    items = sorted((classify(s, now) for s in schedules), key=sort_key)
    return DueQueue(
        reviews=items,
        total_count=len(items),
        high_priority_count=sum(1 for i in items if i.priority is Priority.HIGH),
        overdue_count=sum(1 for i in items if i.is_overdue),
        upcoming_count=sum(
            1 for i in items if 0 < i.minutes_until_due <= MEDIUM_PRIORITY_MINUTES
        ),
    )
