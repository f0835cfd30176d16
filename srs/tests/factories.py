import uuid
from datetime import datetime, timedelta, timezone

from srs.domain.types import NotificationSettings, ReviewSchedule

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_schedule(now=NOW, due_in=timedelta(days=1), interval=timedelta(days=1), **overrides):
    """Build a domain schedule due ``due_in`` from ``now``."""
    values = dict(
        schedule_id=uuid.uuid4(),
        student_id=uuid.uuid4(),
        item_id=uuid.uuid4(),
        next_review_at=now + due_in,
        interval=interval,
        last_reviewed_at=now + due_in - interval,
    )
    values.update(overrides)
    return ReviewSchedule(**values)


def make_settings(**overrides):
    return NotificationSettings.from_dict(overrides)
