from datetime import timedelta

import structlog

from ..data import repos
from ..domain.types import NotificationSettings

logger = structlog.get_logger()

SHORT_REMINDER_MINUTES = 30
LONG_QUIET_WINDOW = timedelta(hours=12)


def settings_warnings(settings: NotificationSettings):
    """Advisory messages for settings that are valid but likely unhelpful."""
    warnings = []
    if settings.reminder_enabled and settings.reminder_advance_minutes < SHORT_REMINDER_MINUTES:
        warnings.append(
            f"Reminders less than {SHORT_REMINDER_MINUTES} minutes ahead may arrive too late to plan a session."
        )
    if settings.quiet_hours.enabled and settings.quiet_hours.duration > LONG_QUIET_WINDOW:
        warnings.append("Quiet hours longer than 12 hours suppress most notifications.")
    if not settings.any_enabled:
        warnings.append("All review notifications are disabled.")
    return warnings


def get_settings(student_id) -> NotificationSettings:
    return repos.load_settings(student_id)


def update_settings(student_id, data):
    """Validate and store a learner's settings; returns (settings, warnings)."""
    settings = NotificationSettings.from_dict(data)
    repos.save_settings(student_id, settings)
    warnings = settings_warnings(settings)
    logger.info("notification_settings_updated",
        student_id=str(student_id),
        warnings=len(warnings),
        **settings.to_dict(),
    )
    return settings, warnings
