import math
from datetime import datetime, timedelta

from ..config import EASE_FLOOR
from .types import ReviewSchedule


def estimate(schedule: ReviewSchedule, now: datetime) -> float:
    """Probability the learner still recalls the item at ``now``.

    Exponential forgetting curve ``exp(-elapsed / interval / ease)``. Never
    raises: negative intervals count as zero and an ease below the floor is
    read as the floor.
    """
    interval = max(schedule.interval, timedelta(0))
    elapsed = max(now - schedule.interval_set_at, timedelta(0))
    ease = max(schedule.ease_factor, EASE_FLOOR)

    if elapsed <= timedelta(0):
        return 1.0
    if interval <= timedelta(0):
        return 0.0

    probability = math.exp(-(elapsed / interval) / ease)
    return min(1.0, max(0.0, probability))
