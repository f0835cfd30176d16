from rest_framework import views, status
from rest_framework.exceptions import NotFound
from rest_framework.response import Response
import structlog
import uuid
from ..config import get_scheduler_config
from ..data.repos import learner_timezone
from ..domain.enums import QUALITY_LABELS, Quality
from ..domain.errors import InvalidFeedbackError, InvalidSettingsError, ScheduleNotFoundError
from ..domain.types import ReviewFeedback
from ..services.notifications import get_notification_status
from ..services.reviews import get_due_queue, get_overdue_reviews, submit_feedback
from ..services.settings import get_settings, update_settings
from ..services.statistics import get_review_statistics
from ..utils.time import to_local_iso
from .serializers import (
    DueQuerySerializer,
    NotificationSettingsSerializer,
    NotificationStatusQuerySerializer,
    ReviewInSerializer,
)

base_logger = structlog.get_logger()


class SrsView(views.APIView):
    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        self.config = get_scheduler_config()
        if not self.config.srs_enabled:
            raise NotFound("Spaced repetition is disabled")
        # Create a unique request_id
        self.logger = base_logger.bind(request_id=str(uuid.uuid4()))


class ReviewView(SrsView):
    def post(self, request):
        s = ReviewInSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        student_id = s.validated_data["student_id"]
        schedule_id = s.validated_data["schedule_id"]
        idem = s.validated_data.get("idempotency_key") or None

        try:
            feedback = ReviewFeedback.create(
                s.validated_data["quality"],
                response_time_seconds=s.validated_data.get("response_time_seconds"),
                confidence=s.validated_data.get("confidence"),
            )
            result = submit_feedback(student_id, schedule_id, feedback, idem, config=self.config)
        except InvalidFeedbackError as e:
            self.logger.warning("review_rejected", schedule_id=str(schedule_id), error=str(e))
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except ScheduleNotFoundError as e:
            return Response({"error": str(e)}, status=status.HTTP_404_NOT_FOUND)

        status_code = status.HTTP_200_OK if result.idempotent else status.HTTP_201_CREATED
        schedule = result.schedule

        # Log with request_id & relevant context
        self.logger.info(
            "review_api_response",
            student_id=str(student_id),
            schedule_id=str(schedule_id),
            quality=result.quality,
            idempotent=result.idempotent,
            interval_seconds=int(schedule.interval.total_seconds()),
            status=status_code,
        )

        return Response(
            {
                "schedule_id": str(schedule.schedule_id),
                "next_review_utc": schedule.next_review_at.isoformat(),
                "next_review_local": to_local_iso(
                    schedule.next_review_at, learner_timezone(student_id)
                ),
                "interval_seconds": int(schedule.interval.total_seconds()),
                "interval_days": schedule.current_interval_days,
                "previous_interval_days": result.previous_interval_days,
                "ease_factor": schedule.ease_factor,
                "previous_ease_factor": result.previous_ease_factor,
                "review_count": schedule.review_count,
                "consecutive_failures": schedule.consecutive_failures,
                "quality_label": QUALITY_LABELS[Quality(result.quality)],
                "idempotent": result.idempotent,
            },
            status=status_code,
        )


class DueQueueView(SrsView):
    def get(self, request, student_id):
        qs = DueQuerySerializer(data=request.query_params)
        qs.is_valid(raise_exception=True)

        queue = get_due_queue(student_id, until=qs.validated_data.get("until"), config=self.config)

        self.logger.info(
            "due_queue_api_response",
            student_id=str(student_id),
            total=queue.total_count,
        )
        return Response({"student_id": str(student_id), **queue.to_dict()})


class OverdueReviewsView(SrsView):
    def get(self, request, student_id):
        items = get_overdue_reviews(student_id)
        return Response({
            "student_id": str(student_id),
            "reviews": [item.to_dict() for item in items],
            "total_count": len(items),
        })


class StatisticsView(SrsView):
    def get(self, request, student_id):
        stats = get_review_statistics(student_id)
        return Response({"student_id": str(student_id), **stats.to_dict()})


class NotificationStatusView(SrsView):
    def get(self, request, student_id):
        qs = NotificationStatusQuerySerializer(data=request.query_params)
        qs.is_valid(raise_exception=True)

        summary = get_notification_status(student_id, days=qs.validated_data["days"])
        return Response({"student_id": str(student_id), **summary.to_dict()})


class NotificationSettingsView(SrsView):
    def get(self, request, student_id):
        try:
            settings = get_settings(student_id)
        except InvalidSettingsError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({"student_id": str(student_id), **settings.to_dict()})

    def put(self, request, student_id):
        s = NotificationSettingsSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        try:
            settings, warnings = update_settings(student_id, s.validated_data)
        except InvalidSettingsError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        self.logger.info(
            "notification_settings_api_response",
            student_id=str(student_id),
            warnings=len(warnings),
        )
        return Response({
            "student_id": str(student_id),
            **settings.to_dict(),
            "warnings": warnings,
        })
