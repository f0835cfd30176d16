import itertools
import uuid
from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone
from structlog.testing import capture_logs

from srs.config import SchedulerConfig
from srs.data.models import NotificationLog, NotificationSettings, ReviewSchedule
from srs.data.repos import DatabaseSentLog, to_domain
from srs.domain.enums import NotificationKind
from srs.domain.types import NotificationKey, ReviewFeedback
from srs.services.notifications import NotificationScheduler, get_notification_status
from srs.services.reviews import submit_feedback


def create_schedule(student_id, due_in, **fields):
    return ReviewSchedule.objects.create(
        student_id=student_id,
        item_id=uuid.uuid4(),
        next_review_at=timezone.now() + due_in,
        interval_seconds=86400,
        **fields,
    )


class Collect:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)


@pytest.mark.django_db
def test_sweep_sends_overdue_once():
    student = uuid.uuid4()
    row = create_schedule(student, timedelta(minutes=-45))
    dispatcher = Collect()
    scheduler = NotificationScheduler()

    report = scheduler.sweep(dispatcher=dispatcher)

    assert [(e.schedule_id, e.kind) for e in dispatcher.events] == [(row.id, NotificationKind.OVERDUE)]
    assert report.processed == [student]
    log = NotificationLog.objects.get()
    assert log.status == NotificationLog.SENT
    assert log.next_review_at == row.next_review_at

    # a fresh scheduler reads the ledger from the store
    again = NotificationScheduler().sweep(dispatcher=dispatcher)
    assert again.events == []
    assert len(dispatcher.events) == 1


@pytest.mark.django_db
def test_invalid_settings_skip_only_that_learner():
    good, bad = uuid.uuid4(), uuid.uuid4()
    create_schedule(good, timedelta(hours=-2))
    create_schedule(bad, timedelta(hours=-2))
    NotificationSettings.objects.create(student_id=bad, overdue_delay_minutes=5000)
    dispatcher = Collect()

    with capture_logs() as logs:
        report = NotificationScheduler().sweep(dispatcher=dispatcher, student_ids=[bad, good])

    assert report.invalid == [bad]
    assert report.processed == [good]
    assert [e.student_id for e in dispatcher.events] == [good]
    errors = [entry for entry in logs if entry["event"] == "notification_settings_invalid"]
    assert errors and errors[0]["student_id"] == str(bad)
    assert errors[0]["log_level"] == "error"


@pytest.mark.django_db
def test_dispatch_failure_is_retried_next_sweep():
    student = uuid.uuid4()
    create_schedule(student, timedelta(hours=-1))

    def broken(event):
        raise ConnectionError("push gateway down")

    scheduler = NotificationScheduler()
    report = scheduler.sweep(dispatcher=broken, student_ids=[student])

    assert report.failed == [student]
    assert not NotificationLog.objects.exists()

    dispatcher = Collect()
    report = scheduler.sweep(dispatcher=dispatcher, student_ids=[student])
    assert report.processed == [student]
    assert len(dispatcher.events) == 1


@pytest.mark.django_db
def test_quiet_hours_are_deferred_in_store():
    student = uuid.uuid4()
    now = timezone.now()
    NotificationSettings.objects.create(
        student_id=student,
        quiet_start=(now - timedelta(hours=1)).strftime("%H:%M"),
        quiet_end=(now + timedelta(hours=1)).strftime("%H:%M"),
        quiet_enabled=True,
    )
    create_schedule(student, timedelta(minutes=20))
    dispatcher = Collect()
    scheduler = NotificationScheduler()

    scheduler.sweep(now=now, dispatcher=dispatcher, student_ids=[student])
    assert dispatcher.events == []
    assert NotificationLog.objects.get().status == NotificationLog.DEFERRED

    NotificationSettings.objects.filter(student_id=student).update(quiet_enabled=False)
    scheduler.sweep(now=now + timedelta(minutes=1), dispatcher=dispatcher, student_ids=[student])

    assert [e.kind for e in dispatcher.events] == [NotificationKind.REMINDER]
    assert NotificationLog.objects.get().status == NotificationLog.SENT


@pytest.mark.django_db
def test_shard_timeout_leaves_learners_for_next_sweep():
    first, second, third = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    for student in (first, second, third):
        create_schedule(student, timedelta(hours=-1))
    ticks = itertools.chain([0, 0, 100], itertools.repeat(100))
    scheduler = NotificationScheduler(SchedulerConfig(shard_timeout_seconds=30))
    dispatcher = Collect()

    report = scheduler.sweep(dispatcher=dispatcher, student_ids=[first, second, third],
                             clock=lambda: next(ticks))

    assert report.processed == [first]
    assert report.unfinished == [second, third]
    assert [e.student_id for e in dispatcher.events] == [first]


@pytest.mark.django_db
def test_sweep_is_noop_when_notifications_disabled():
    create_schedule(uuid.uuid4(), timedelta(hours=-1))
    dispatcher = Collect()

    report = NotificationScheduler(SchedulerConfig(notifications_enabled=False)).sweep(dispatcher=dispatcher)

    assert report.events == [] and report.processed == []
    assert dispatcher.events == []


@pytest.mark.django_db
def test_sweep_only_visits_learners_with_pending_reviews():
    active, idle = uuid.uuid4(), uuid.uuid4()
    create_schedule(active, timedelta(hours=-1))
    create_schedule(idle, timedelta(days=30))

    report = NotificationScheduler().sweep(dispatcher=Collect())

    assert report.processed == [active]


@pytest.mark.django_db
def test_notification_sweep_command():
    create_schedule(uuid.uuid4(), timedelta(hours=-1))
    out = StringIO()

    call_command("notification_sweep", stdout=out)

    assert "Sweep finished: 1 notifications" in out.getvalue()
    assert NotificationLog.objects.count() == 1


class StaleReadSentLog(DatabaseSentLog):
    """Ledger of a sweep that checked the key before another sweep committed it."""

    def was_sent(self, key):
        return False


@pytest.mark.django_db
def test_overlapping_sweeps_send_once():
    student = uuid.uuid4()
    row = create_schedule(student, timedelta(hours=-1))
    now = timezone.now()
    first = NotificationScheduler().tick(student, [to_domain(row)], None, now, DatabaseSentLog(student))

    second = NotificationScheduler().tick(student, [to_domain(row)], None, now, StaleReadSentLog(student))

    assert len(first) == 1
    assert second == []
    assert NotificationLog.objects.get().status == NotificationLog.SENT


@pytest.mark.django_db
def test_deferred_entry_is_promoted_once():
    student = uuid.uuid4()
    row = create_schedule(student, timedelta(hours=-1))
    key = NotificationKey(row.id, NotificationKind.OVERDUE, row.next_review_at)
    log = DatabaseSentLog(student)
    log.defer(key, timezone.now())

    assert log.mark_sent(key, timezone.now()) is True
    assert log.mark_sent(key, timezone.now()) is False
    assert NotificationLog.objects.get().status == NotificationLog.SENT


@pytest.mark.django_db
def test_review_clears_deferrals_of_past_cycles():
    student = uuid.uuid4()
    row = create_schedule(student, timedelta(minutes=-10))
    log = DatabaseSentLog(student)
    log.defer(NotificationKey(row.id, NotificationKind.REMINDER, row.next_review_at), timezone.now())
    log.mark_sent(NotificationKey(row.id, NotificationKind.OVERDUE, row.next_review_at), timezone.now())

    submit_feedback(student, row.id, ReviewFeedback.create("good"))

    # sent entries stay as history
    assert list(NotificationLog.objects.values_list("status", flat=True)) == [NotificationLog.SENT]


@pytest.mark.django_db
def test_notification_status_counts_by_kind():
    student = uuid.uuid4()
    overdue = create_schedule(student, timedelta(hours=-2))
    soon = create_schedule(student, timedelta(minutes=20))
    now = timezone.now()
    log = DatabaseSentLog(student)
    log.mark_sent(NotificationKey(overdue.id, NotificationKind.OVERDUE, overdue.next_review_at), now)
    log.defer(NotificationKey(soon.id, NotificationKind.REMINDER, soon.next_review_at), now)
    NotificationLog.objects.create(
        schedule_id=uuid.uuid4(),
        student_id=student,
        kind=NotificationKind.REMINDER.value,
        next_review_at=now - timedelta(days=20),
        status=NotificationLog.SENT,
        recorded_at=now - timedelta(days=20),
    )

    status = get_notification_status(student, days=7, now=now)

    assert status.sent_by_kind == {"overdue": 1, "reminder": 0}
    assert status.pending_by_kind == {"overdue": 0, "reminder": 1}
    assert status.total_sent == 1
    assert status.pending_count == 1
    assert {entry["status"] for entry in status.recent} == {"sent", "deferred"}

    wide = get_notification_status(student, days=30, now=now)
    assert wide.sent_by_kind == {"overdue": 1, "reminder": 1}
