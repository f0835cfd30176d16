import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List

import structlog
from django.db import transaction
from django.utils import timezone
from django.utils.module_loading import import_string

from ..config import SchedulerConfig, get_scheduler_config
from ..data import repos
from ..data.models import NotificationLog
from ..domain.enums import NotificationKind
from ..domain.errors import InvalidSettingsError
from ..domain.quiet_hours import is_quiet, quiet_hours_end
from ..domain.ranking import rank
from ..domain.types import NotificationEvent, NotificationKey, NotificationSettings, QueueItem

logger = structlog.get_logger()


class SentLog:
    """In-memory sent/deferred ledger for one learner."""

    SENT = "sent"
    DEFERRED = "deferred"

    def __init__(self):
        self._entries: Dict[NotificationKey, str] = {}

    def __len__(self):
        return len(self._entries)

    def was_sent(self, key: NotificationKey) -> bool:
        return self._entries.get(key) == self.SENT

    def is_deferred(self, key: NotificationKey) -> bool:
        return self._entries.get(key) == self.DEFERRED

    def defer(self, key: NotificationKey, at: datetime) -> None:
        self._entries.setdefault(key, self.DEFERRED)

    def mark_sent(self, key: NotificationKey, at: datetime) -> bool:
        """Claim ``key`` for sending; False when it was already sent."""
        if self._entries.get(key) == self.SENT:
            return False
        self._entries[key] = self.SENT
        return True

    def prune(self, current_cycles) -> None:
        """Drop entries for due cycles that are no longer current."""
        self._entries = {
            key: status for key, status in self._entries.items()
            if (key.schedule_id, key.next_review_at) in current_cycles
        }


def threshold_met(kind: NotificationKind, item: QueueItem, settings: NotificationSettings) -> bool:
    if kind is NotificationKind.OVERDUE:
        return item.is_overdue and -item.minutes_until_due >= settings.overdue_delay_minutes
    return 0 < item.minutes_until_due <= settings.reminder_advance_minutes


@dataclass
class SweepReport:
    events: List[NotificationEvent] = field(default_factory=list)
    processed: list = field(default_factory=list)
    invalid: list = field(default_factory=list)
    failed: list = field(default_factory=list)
    unfinished: list = field(default_factory=list)


class NotificationScheduler:
    """Decides which overdue/reminder notifications to raise for each learner.

    The scheduler owns one sent log and one lock per learner, so two ticks
    for the same learner never interleave while different learners proceed
    independently.
    """

    def __init__(self, config: SchedulerConfig = None):
        self.config = config or SchedulerConfig()
        self._registry = threading.Lock()
        self._locks: Dict[object, threading.Lock] = {}
        self._logs: Dict[object, SentLog] = {}

    def lock_for(self, student_id) -> threading.Lock:
        with self._registry:
            return self._locks.setdefault(student_id, threading.Lock())

    def sent_log_for(self, student_id) -> SentLog:
        with self._registry:
            return self._logs.setdefault(student_id, SentLog())

    def tick(self, student_id, schedules, settings, now: datetime,
             sent_log=None) -> List[NotificationEvent]:
        """Evaluate one learner's schedules and return the notifications to send.

        Every event is recorded in ``sent_log`` under
        ``(schedule_id, kind, next_review_at)`` so a due cycle fires each kind
        at most once. Candidates found during quiet hours are deferred and
        fire on the first tick after the window closes. ``settings`` may also be
        a raw settings record; a malformed one skips the tick with a logged
        validation error.
        """
        if not isinstance(settings, NotificationSettings):
            try:
                settings = NotificationSettings.from_dict(settings)
            except InvalidSettingsError as exc:
                logger.error("notification_settings_invalid",
                    student_id=str(student_id),
                    error=str(exc),
                )
                return []

        own_log = sent_log is None
        if own_log:
            sent_log = self.sent_log_for(student_id)

        with self.lock_for(student_id):
            schedules = list(schedules)
            if own_log:
                sent_log.prune({(s.schedule_id, s.next_review_at) for s in schedules})
            return self._evaluate(student_id, schedules, settings, now, sent_log)

    def _evaluate(self, student_id, schedules, settings, now, sent_log):
        if not settings.any_enabled:
            return []

        quiet = is_quiet(settings, now)
        events = []
        deferred = 0
        for item in rank(schedules, now).reviews:
            for kind in NotificationKind:
                if not settings.enabled_for(kind):
                    continue
                key = NotificationKey(item.schedule_id, kind, item.next_review_at)
                if sent_log.was_sent(key):
                    continue
                if not (threshold_met(kind, item, settings) or sent_log.is_deferred(key)):
                    continue
                if quiet:
                    sent_log.defer(key, now)
                    deferred += 1
                    continue

                if not sent_log.mark_sent(key, now):
                    # claimed by a concurrent sweep
                    continue
                events.append(NotificationEvent(
                    schedule_id=item.schedule_id,
                    student_id=student_id,
                    kind=kind,
                    triggered_at=now,
                    next_review_at=item.next_review_at,
                ))
                logger.info("notification_emitted",
                    student_id=str(student_id),
                    schedule_id=str(item.schedule_id),
                    kind=kind.value,
                    priority=item.priority.value,
                    minutes_until_due=round(item.minutes_until_due, 2),
                )

        if deferred:
            resume_at = quiet_hours_end(settings, now)
            logger.info("notification_deferred",
                student_id=str(student_id),
                count=deferred,
                resume_at=resume_at.isoformat() if resume_at else None,
            )
        return events

    def sweep(self, now=None, dispatcher=None, student_ids=None,
              clock=time.monotonic) -> SweepReport:
        """One pass over every learner with due or near-due reviews.

        A learner with malformed settings is skipped with a logged validation
        error. A store or dispatch failure rolls back that learner's ledger
        writes so the next sweep retries it. Learners not reached before
        ``shard_timeout_seconds`` are reported as unfinished.
        """
        report = SweepReport()
        if not self.config.notifications_enabled:
            logger.info("notification_sweep_disabled")
            return report

        now = now or timezone.now()
        dispatcher = dispatcher or import_string(self.config.dispatcher)
        if student_ids is None:
            student_ids = repos.learners_with_pending(now)
        student_ids = list(student_ids)

        started = clock()
        for index, student_id in enumerate(student_ids):
            if clock() - started > self.config.shard_timeout_seconds:
                report.unfinished = student_ids[index:]
                logger.warning("notification_sweep_timeout",
                    remaining=len(report.unfinished),
                    timeout_seconds=self.config.shard_timeout_seconds,
                )
                break

            try:
                settings = repos.load_settings(student_id)
            except InvalidSettingsError as exc:
                logger.error("notification_settings_invalid",
                    student_id=str(student_id),
                    error=str(exc),
                )
                report.invalid.append(student_id)
                continue

            try:
                with transaction.atomic():
                    events = self.tick(
                        student_id,
                        repos.list_schedules(student_id),
                        settings,
                        now,
                        repos.DatabaseSentLog(student_id),
                    )
                    for event in events:
                        dispatcher(event)
            except Exception:
                # isolate the learner; nothing was committed, retried next sweep
                logger.exception("notification_tick_failed", student_id=str(student_id))
                report.failed.append(student_id)
                continue

            report.events.extend(events)
            report.processed.append(student_id)

        logger.info("notification_sweep_finished",
            learners=len(student_ids),
            events=len(report.events),
            invalid=len(report.invalid),
            failed=len(report.failed),
            unfinished=len(report.unfinished),
        )
        return report


@dataclass(frozen=True)
class NotificationStatus:
    student_id: object
    time_range_days: int
    retrieved_at: datetime
    sent_by_kind: Dict[str, int]
    pending_by_kind: Dict[str, int]
    recent: list

    @property
    def total_sent(self) -> int:
        return sum(self.sent_by_kind.values())

    @property
    def pending_count(self) -> int:
        return sum(self.pending_by_kind.values())

    def to_dict(self):
        return {
            "time_range_days": self.time_range_days,
            "retrieved_at": self.retrieved_at.isoformat(),
            "total_sent": self.total_sent,
            "pending_count": self.pending_count,
            "sent_by_kind": self.sent_by_kind,
            "pending_by_kind": self.pending_by_kind,
            "recent": self.recent,
        }


def get_notification_status(student_id, days=7, now=None, limit=50) -> NotificationStatus:
    """Sent notifications over the last ``days`` and what is still waiting out quiet hours."""
    now = now or timezone.now()
    since = now - timedelta(days=days)
    sent = repos.notification_counts(student_id, NotificationLog.SENT, since=since)
    pending = repos.notification_counts(student_id, NotificationLog.DEFERRED)
    kinds = [kind.value for kind in NotificationKind]

    status = NotificationStatus(
        student_id=student_id,
        time_range_days=days,
        retrieved_at=now,
        sent_by_kind={kind: sent.get(kind, 0) for kind in kinds},
        pending_by_kind={kind: pending.get(kind, 0) for kind in kinds},
        recent=[
            {
                "schedule_id": str(entry.schedule_id),
                "kind": entry.kind,
                "status": entry.status,
                "next_review_at": entry.next_review_at.isoformat(),
                "recorded_at": entry.recorded_at.isoformat(),
            }
            for entry in repos.recent_notifications(student_id, since, limit)
        ],
    )
    logger.info("notification_status_built",
        student_id=str(student_id),
        days=days,
        total_sent=status.total_sent,
        pending=status.pending_count,
    )
    return status

def build_scheduler() -> NotificationScheduler:
    return NotificationScheduler(get_scheduler_config())
