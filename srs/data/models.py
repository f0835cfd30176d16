import uuid

from django.db import models
from django.utils import timezone

from ..config import DEFAULT_EASE
from ..domain.enums import DifficultyLevel, NotificationKind, Quality


class ReviewSchedule(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    student_id = models.UUIDField()
    item_id = models.UUIDField()
    next_review_at = models.DateTimeField(default=timezone.now)  # UTC
    interval_seconds = models.PositiveIntegerField(default=0)
    ease_factor = models.FloatField(default=DEFAULT_EASE)
    review_count = models.PositiveIntegerField(default=0)
    consecutive_failures = models.PositiveIntegerField(default=0)
    difficulty_level = models.CharField(
        max_length=16,
        choices=[(level.value, level.value) for level in DifficultyLevel],
        default=DifficultyLevel.BEGINNER.value,
    )
    last_reviewed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = (("student_id", "item_id"),)
        indexes = [
            models.Index(fields=["student_id", "next_review_at"]),
        ]


class ReviewLog(models.Model):
    schedule = models.ForeignKey(ReviewSchedule, on_delete=models.CASCADE, related_name="logs")
    student_id = models.UUIDField()
    quality = models.CharField(max_length=8, choices=[(q.value, q.value) for q in Quality])
    response_time_seconds = models.FloatField(null=True, blank=True)
    confidence = models.PositiveSmallIntegerField(null=True, blank=True)
    idempotency_key = models.CharField(max_length=64, null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    previous_interval_seconds = models.PositiveIntegerField(default=0)
    previous_ease_factor = models.FloatField(default=DEFAULT_EASE)
    retention_at_review = models.FloatField(default=1.0)
    next_review_at = models.DateTimeField()
    next_interval_seconds = models.PositiveIntegerField()
    ease_factor = models.FloatField()

    class Meta:
        unique_together = (("schedule", "idempotency_key"),)
        indexes = [
            models.Index(fields=["student_id", "created_at"]),
        ]


class NotificationSettings(models.Model):
    # Raw columns; validated into the domain type on every load
    student_id = models.UUIDField(unique=True)
    overdue_enabled = models.BooleanField(default=True)
    reminder_enabled = models.BooleanField(default=True)
    overdue_delay_minutes = models.PositiveIntegerField(default=30)
    reminder_advance_minutes = models.PositiveIntegerField(default=60)
    quiet_start = models.CharField(max_length=5, default="22:00")
    quiet_end = models.CharField(max_length=5, default="08:00")
    quiet_enabled = models.BooleanField(default=False)
    timezone = models.CharField(max_length=64, default="UTC")
    updated_at = models.DateTimeField(auto_now=True)


class NotificationLog(models.Model):
    SENT = "sent"
    DEFERRED = "deferred"

    schedule_id = models.UUIDField()
    student_id = models.UUIDField()
    kind = models.CharField(max_length=16, choices=[(k.value, k.value) for k in NotificationKind])
    next_review_at = models.DateTimeField()
    status = models.CharField(max_length=16, choices=[(SENT, SENT), (DEFERRED, DEFERRED)])
    recorded_at = models.DateTimeField(default=timezone.now)

    class Meta:
        unique_together = (("schedule_id", "kind", "next_review_at"),)
        indexes = [
            models.Index(fields=["student_id", "status"]),
        ]
