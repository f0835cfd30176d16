from datetime import datetime, timedelta
from typing import Optional

from ..utils.time import local_minute_of_day, minute_of_day
from .types import NotificationSettings


def is_quiet(settings: NotificationSettings, now: datetime) -> bool:
    """Whether ``now`` falls in the learner's do-not-disturb window.

    The window is ``[start, end)`` in the learner's local time and wraps
    midnight when ``start > end``.
    """
    quiet = settings.quiet_hours
    if not quiet.enabled:
        return False

    current = local_minute_of_day(now, settings.tzinfo)
    start = minute_of_day(quiet.start)
    end = minute_of_day(quiet.end)
    if start <= end:
        return start <= current < end
    return current >= start or current < end


def quiet_hours_end(settings: NotificationSettings, now: datetime) -> Optional[datetime]:
    """Next instant the quiet window closes, or None when not in it."""
    if not is_quiet(settings, now):
        return None

    local = now.astimezone(settings.tzinfo)
    end = local.replace(
        hour=settings.quiet_hours.end.hour,
        minute=settings.quiet_hours.end.minute,
        second=0,
        microsecond=0,
    )
    if end <= local:
        end += timedelta(days=1)
    return end.astimezone(now.tzinfo)
