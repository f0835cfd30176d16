from .data.models import NotificationLog, NotificationSettings, ReviewLog, ReviewSchedule

__all__ = ["NotificationLog", "NotificationSettings", "ReviewLog", "ReviewSchedule"]
