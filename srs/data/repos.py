from datetime import timedelta

from django.db import IntegrityError, transaction
from django.db.models import Count, Q
from django.forms.models import model_to_dict
from django.utils import timezone

from ..config import HIGH_PRIORITY_FAILURES, MAX_NOTIFICATION_MINUTES
from ..domain import types
from ..domain.enums import DifficultyLevel
from ..domain.errors import ScheduleNotFoundError
from .models import NotificationLog, NotificationSettings, ReviewLog, ReviewSchedule


def to_domain(row: ReviewSchedule) -> types.ReviewSchedule:
    return types.ReviewSchedule(
        schedule_id=row.id,
        student_id=row.student_id,
        item_id=row.item_id,
        next_review_at=row.next_review_at,
        interval=timedelta(seconds=row.interval_seconds),
        ease_factor=row.ease_factor,
        review_count=row.review_count,
        consecutive_failures=row.consecutive_failures,
        difficulty_level=DifficultyLevel(row.difficulty_level),
        last_reviewed_at=row.last_reviewed_at,
    )


def get_or_create_schedule(student_id, item_id, difficulty_level=DifficultyLevel.BEGINNER,
                           next_review_at=None):
    row, _ = ReviewSchedule.objects.get_or_create(
        student_id=student_id,
        item_id=item_id,
        defaults={
            "difficulty_level": DifficultyLevel(difficulty_level).value,
            "next_review_at": next_review_at or timezone.now(),
        },
    )
    return row


def get_schedule_for_update(student_id, schedule_id) -> ReviewSchedule:
    """
    Fetch the schedule row and lock it until the surrounding transaction ends.
    Rows owned by another learner are reported as missing.
    """
    try:
        return (ReviewSchedule.objects
                .select_for_update()
                .get(id=schedule_id, student_id=student_id))
    except ReviewSchedule.DoesNotExist:
        raise ScheduleNotFoundError(f"Review schedule {schedule_id} not found")


def save_schedule(row: ReviewSchedule, schedule: types.ReviewSchedule) -> None:
    row.next_review_at = schedule.next_review_at
    row.interval_seconds = int(schedule.interval.total_seconds())
    row.ease_factor = schedule.ease_factor
    row.review_count = schedule.review_count
    row.consecutive_failures = schedule.consecutive_failures
    row.last_reviewed_at = schedule.last_reviewed_at
    row.save(update_fields=[
        "next_review_at", "interval_seconds", "ease_factor", "review_count",
        "consecutive_failures", "last_reviewed_at", "updated_at",
    ])


def list_schedules(student_id, until=None):
    """Schedules due by ``until`` plus any the learner keeps failing."""
    qs = ReviewSchedule.objects.filter(student_id=student_id)
    if until is not None:
        qs = qs.filter(
            Q(next_review_at__lte=until)
            | Q(consecutive_failures__gte=HIGH_PRIORITY_FAILURES)
        )
    return [to_domain(row) for row in qs]


def count_schedules(student_id, **filters):
    return ReviewSchedule.objects.filter(student_id=student_id, **filters).count()


def get_existing_idempotent(schedule_id, idem_key):
    if not idem_key:
        return None
    return ReviewLog.objects.filter(schedule_id=schedule_id, idempotency_key=idem_key).first()


def persist_review(row, outcome, feedback, idem_key, reviewed_at):
    """
    Insert ReviewLog; if a concurrent duplicate slips in, return the existing one.
    """
    updated = outcome.schedule
    try:
        with transaction.atomic():
            return ReviewLog.objects.create(
                schedule=row,
                student_id=row.student_id,
                quality=outcome.quality.value,
                response_time_seconds=feedback.response_time_seconds,
                confidence=feedback.confidence,
                idempotency_key=idem_key or None,
                created_at=reviewed_at,
                previous_interval_seconds=int(outcome.previous_interval.total_seconds()),
                previous_ease_factor=outcome.previous_ease_factor,
                retention_at_review=outcome.retention_at_review,
                next_review_at=updated.next_review_at,
                next_interval_seconds=int(updated.interval.total_seconds()),
                ease_factor=updated.ease_factor,
            ), False
    except IntegrityError:
        # Duplicate idempotency key safeguard
        existing = get_existing_idempotent(row.id, idem_key)
        if existing is None:
            raise
        return existing, True


def review_log_dates(student_id, since, tz):
    """Distinct local dates on which the learner reviewed anything since ``since``."""
    stamps = (ReviewLog.objects
              .filter(student_id=student_id, created_at__gte=since)
              .values_list("created_at", flat=True))
    return {timezone.localtime(stamp, tz).date() for stamp in stamps}


def count_reviews_between(student_id, start, end):
    return ReviewLog.objects.filter(
        student_id=student_id, created_at__gte=start, created_at__lt=end
    ).count()


def load_settings_record(student_id):
    """Raw settings columns, or None when the learner never saved any."""
    row = NotificationSettings.objects.filter(student_id=student_id).first()
    if row is None:
        return None
    return model_to_dict(row, exclude=["id", "student_id"])


def load_settings(student_id) -> types.NotificationSettings:
    """Settings validated into the domain type; raises InvalidSettingsError."""
    return types.NotificationSettings.from_dict(load_settings_record(student_id))


def save_settings(student_id, settings: types.NotificationSettings):
    row, _ = NotificationSettings.objects.update_or_create(
        student_id=student_id,
        defaults={
            "overdue_enabled": settings.overdue_enabled,
            "reminder_enabled": settings.reminder_enabled,
            "overdue_delay_minutes": settings.overdue_delay_minutes,
            "reminder_advance_minutes": settings.reminder_advance_minutes,
            "quiet_start": settings.quiet_hours.start.strftime("%H:%M"),
            "quiet_end": settings.quiet_hours.end.strftime("%H:%M"),
            "quiet_enabled": settings.quiet_hours.enabled,
            "timezone": settings.timezone,
        },
    )
    return row


def learner_timezone(student_id) -> str:
    tz = (NotificationSettings.objects
          .filter(student_id=student_id)
          .values_list("timezone", flat=True)
          .first())
    return tz or "UTC"


def clear_stale_deferrals(schedule_id, next_review_at):
    """Drop deferred notifications left over from earlier due cycles."""
    deleted, _ = (NotificationLog.objects
                  .filter(schedule_id=schedule_id, status=NotificationLog.DEFERRED)
                  .exclude(next_review_at=next_review_at)
                  .delete())
    return deleted


def notification_counts(student_id, status, since=None):
    """``{kind: count}`` of ledger entries with ``status``."""
    qs = NotificationLog.objects.filter(student_id=student_id, status=status)
    if since is not None:
        qs = qs.filter(recorded_at__gte=since)
    return dict(qs.order_by().values_list("kind").annotate(n=Count("id")))


def recent_notifications(student_id, since, limit=50):
    return list(NotificationLog.objects
                .filter(student_id=student_id, recorded_at__gte=since)
                .order_by("-recorded_at", "-id")[:limit])


def learners_with_pending(now):
    """Learners with anything due or coming due inside the widest reminder window."""
    horizon = now + timedelta(minutes=MAX_NOTIFICATION_MINUTES)
    return list(
        ReviewSchedule.objects
        .filter(next_review_at__lte=horizon)
        .order_by("student_id")
        .values_list("student_id", flat=True)
        .distinct()
    )


class DatabaseSentLog:
    """Sent/deferred notification ledger for one learner, stored in NotificationLog."""

    def __init__(self, student_id):
        self.student_id = student_id

    def _lookup(self, key):
        return NotificationLog.objects.filter(
            schedule_id=key.schedule_id,
            kind=key.kind.value,
            next_review_at=key.next_review_at,
        )

    def was_sent(self, key) -> bool:
        return self._lookup(key).filter(status=NotificationLog.SENT).exists()

    def is_deferred(self, key) -> bool:
        return self._lookup(key).filter(status=NotificationLog.DEFERRED).exists()

    def defer(self, key, at) -> None:
        NotificationLog.objects.get_or_create(
            schedule_id=key.schedule_id,
            kind=key.kind.value,
            next_review_at=key.next_review_at,
            defaults={
                "student_id": self.student_id,
                "status": NotificationLog.DEFERRED,
                "recorded_at": at,
            },
        )

    def mark_sent(self, key, at) -> bool:
        """
        Claim the key inside the caller's transaction. A concurrent sweep that
        wrote the same key first makes this return False once it commits.
        """
        promoted = self._lookup(key).filter(status=NotificationLog.DEFERRED).update(
            status=NotificationLog.SENT, recorded_at=at,
        )
        if promoted:
            return True
        try:
            with transaction.atomic():
                NotificationLog.objects.create(
                    schedule_id=key.schedule_id,
                    kind=key.kind.value,
                    next_review_at=key.next_review_at,
                    student_id=self.student_id,
                    status=NotificationLog.SENT,
                    recorded_at=at,
                )
        except IntegrityError:
            return False
        return True
