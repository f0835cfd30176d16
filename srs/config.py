from dataclasses import dataclass, fields
from datetime import timedelta
from typing import Optional

EASE_FLOOR = 1.3
DEFAULT_EASE = 2.5
AGAIN_EASE_PENALTY = 0.2
HARD_EASE_PENALTY = 0.15
EASY_EASE_BONUS = 0.15

AGAIN_INTERVAL = timedelta(minutes=1)
HARD_INTERVAL = timedelta(minutes=6)
SEED_INTERVAL = timedelta(days=1)      # first successful review

HIGH_PRIORITY_FAILURES = 2
MEDIUM_PRIORITY_MINUTES = 60

MAX_NOTIFICATION_MINUTES = 24 * 60


@dataclass(frozen=True)
class SchedulerConfig:
    """Explicit configuration handed to the services composing the scheduler."""

    srs_enabled: bool = True
    notifications_enabled: bool = True
    again_interval: timedelta = AGAIN_INTERVAL
    hard_interval: timedelta = HARD_INTERVAL
    seed_interval: timedelta = SEED_INTERVAL
    max_interval: Optional[timedelta] = None
    due_horizon: timedelta = timedelta(days=1)
    sweep_interval_seconds: int = 60
    shard_timeout_seconds: float = 30.0
    dispatcher: str = "srs.services.dispatch.log_dispatcher"

    @classmethod
    def from_mapping(cls, values):
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in (values or {}).items():
            name = key.lower()
            if name not in known:
                continue
            if name.endswith("_interval") or name == "due_horizon":
                if value is not None and not isinstance(value, timedelta):
                    value = timedelta(seconds=value)
            kwargs[name] = value
        return cls(**kwargs)


DEFAULT_CONFIG = SchedulerConfig()


def get_scheduler_config() -> SchedulerConfig:
    """Build the config from ``settings.SRS``; intervals may be given in seconds."""
    from django.conf import settings

    return SchedulerConfig.from_mapping(getattr(settings, "SRS", None))
