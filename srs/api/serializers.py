from rest_framework import serializers

from ..config import MAX_NOTIFICATION_MINUTES
from ..domain.types import HHMM


class ReviewInSerializer(serializers.Serializer):
    student_id = serializers.UUIDField()
    schedule_id = serializers.UUIDField()
    quality = serializers.CharField(max_length=16)
    response_time_seconds = serializers.FloatField(min_value=0, required=False, allow_null=True)
    confidence = serializers.IntegerField(min_value=1, max_value=5, required=False, allow_null=True)
    idempotency_key = serializers.CharField(max_length=64, required=False, allow_blank=True)

    def validate_quality(self, value):
        # Unknown values are rejected by the calculator with InvalidFeedbackError
        return value.strip().lower()


class DueQuerySerializer(serializers.Serializer):
    until = serializers.DateTimeField(required=False)  # ISO-8601


class NotificationStatusQuerySerializer(serializers.Serializer):
    days = serializers.IntegerField(min_value=1, max_value=90, default=7)


class QuietHoursSerializer(serializers.Serializer):
    start = serializers.RegexField(HHMM, default="22:00")
    end = serializers.RegexField(HHMM, default="08:00")
    enabled = serializers.BooleanField(default=False)


class NotificationSettingsSerializer(serializers.Serializer):
    overdue_enabled = serializers.BooleanField(default=True)
    reminder_enabled = serializers.BooleanField(default=True)
    overdue_delay_minutes = serializers.IntegerField(
        min_value=0, max_value=MAX_NOTIFICATION_MINUTES, default=30
    )
    reminder_advance_minutes = serializers.IntegerField(
        min_value=0, max_value=MAX_NOTIFICATION_MINUTES, default=60
    )
    quiet_hours = QuietHoursSerializer(required=False)
    timezone = serializers.CharField(max_length=64, default="UTC")
