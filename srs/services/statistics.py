from dataclasses import asdict, dataclass
from datetime import datetime, time, timedelta
from zoneinfo import ZoneInfo

from django.utils import timezone
import structlog

from ..data import repos
from ..domain.retention import estimate

logger = structlog.get_logger()

STREAK_LOOKBACK = timedelta(days=366)


@dataclass(frozen=True)
class ReviewStatistics:
    total_scheduled: int
    due_today: int
    overdue: int
    completed_today: int
    streak_days: int
    average_retention: float

    def to_dict(self):
        return asdict(self)


def streak_length(review_dates, today) -> int:
    """Consecutive days with a review, ending today or yesterday."""
    day = today if today in review_dates else today - timedelta(days=1)
    streak = 0
    while day in review_dates:
        streak += 1
        day -= timedelta(days=1)
    return streak


def get_review_statistics(student_id, now: datetime = None) -> ReviewStatistics:
    now = now or timezone.now()
    tz = ZoneInfo(repos.learner_timezone(student_id))
    local_now = now.astimezone(tz)
    start_of_day = datetime.combine(local_now.date(), time.min, tzinfo=tz)
    end_of_day = start_of_day + timedelta(days=1)

    schedules = repos.list_schedules(student_id)
    retention = [estimate(s, now) for s in schedules]

    stats = ReviewStatistics(
        total_scheduled=len(schedules),
        due_today=sum(1 for s in schedules if s.next_review_at < end_of_day),
        overdue=sum(1 for s in schedules if s.next_review_at < now),
        completed_today=repos.count_reviews_between(student_id, start_of_day, end_of_day),
        streak_days=streak_length(
            repos.review_log_dates(student_id, now - STREAK_LOOKBACK, tz),
            local_now.date(),
        ),
        average_retention=round(sum(retention) / len(retention), 4) if retention else 0.0,
    )
    logger.info("review_statistics_built", student_id=str(student_id), **stats.to_dict())
    return stats
