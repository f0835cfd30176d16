from django.urls import path
from .views import (
    DueQueueView,
    NotificationSettingsView,
    NotificationStatusView,
    OverdueReviewsView,
    ReviewView,
    StatisticsView,
)

urlpatterns = [
    path("reviews", ReviewView.as_view(), name="review"),
    path("students/<uuid:student_id>/due-queue", DueQueueView.as_view(), name="due-queue"),
    path("students/<uuid:student_id>/overdue-reviews", OverdueReviewsView.as_view(), name="overdue-reviews"),
    path("students/<uuid:student_id>/statistics", StatisticsView.as_view(), name="review-statistics"),
    path(
        "students/<uuid:student_id>/notification-settings",
        NotificationSettingsView.as_view(),
        name="notification-settings",
    ),
    path(
        "students/<uuid:student_id>/notifications",
        NotificationStatusView.as_view(),
        name="notification-status",
    ),
]
