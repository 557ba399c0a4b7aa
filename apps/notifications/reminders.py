"""
Reminder scheduler.

Every tick (60 seconds) the scheduler checks each lead-time window and
emails the assignees of tasks whose event instant is that far away.

For a window of N minutes, a tick at `now` matches tasks whose event
instant falls in [now + N min - 60s, now + N min). With one tick per
minute every event instant crosses each window exactly once.

Each (task, window) reminder fires at most once: a SentReminder row is
written right after the email goes out, before the next task is looked
at. A failed send leaves no row, so the next tick that still matches
retries it; once the window has passed the reminder is lost.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone as dt_timezone

from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from apps.accounts.services import get_recipient_emails
from apps.activity_log.models import log_task_activity, TaskActivity
from apps.tasks.models import SentReminder, Task

from .services import (
    TransportError, build_task_reminder_message, send_notification_email,
)

logger = logging.getLogger(__name__)

TICK_SECONDS = 60


@dataclass(frozen=True)
class LeadTime:
    """A reminder window: fire `minutes` before the event instant."""

    label: str
    minutes: int

    @property
    def delta(self):
        return timedelta(minutes=self.minutes)


REMINDER_LEAD_TIMES = (
    LeadTime('1d', 1440),
    LeadTime('1h', 60),
    LeadTime('30m', 30),
    LeadTime('15m', 15),
    LeadTime('5m', 5),
)


def get_event_instant(task):
    """
    The moment reminders count down to.

    - due_date and start_time: the UTC calendar date of due_date at start_time (UTC)
    - due_date only: due_date itself
    - otherwise (or an unparseable start_time): None
    """
    if task.due_date is None:
        return None

    if not task.start_time:
        return task.due_date

    try:
        start = time.fromisoformat(task.start_time)
    except ValueError:
        logger.warning('Task %s has invalid start_time %r; skipping', task.pk, task.start_time)
        return None

    day = task.due_date.astimezone(dt_timezone.utc).date()
    return datetime.combine(day, start.replace(second=0, microsecond=0), tzinfo=dt_timezone.utc)


def in_window(event_instant, now, lead_time, tick_seconds=TICK_SECONDS):
    """Check if the event instant falls in this tick's window for lead_time."""
    target = now + lead_time.delta
    return target - timedelta(seconds=tick_seconds) <= event_instant < target


@dataclass
class TickReport:
    """What one tick did; used for logging and tests."""

    sent: int = 0
    failed: int = 0
    skipped_no_recipients: int = 0


class ReminderScheduler:
    """
    Owns the reminder tick.

    Dependencies are injectable so tests can drive time directly:
        clock: callable returning an aware datetime (default timezone.now)
        notifier: callable(recipients, subject, body), raises TransportError
        task_source: callable(label) -> iterable of candidate tasks
        resolve_recipients: callable(user_ids) -> list of emails

    Ticks are serialized: a tick started while another is running waits
    for it to finish.
    """

    def __init__(self, clock=None, notifier=None, task_source=None,
                 resolve_recipients=None, lead_times=REMINDER_LEAD_TIMES,
                 tick_seconds=TICK_SECONDS):
        self.clock = clock or timezone.now
        self.notifier = notifier or send_notification_email
        self.task_source = task_source or self._default_task_source
        self.resolve_recipients = resolve_recipients or get_recipient_emails
        self.lead_times = tuple(lead_times)
        self.tick_seconds = tick_seconds
        self._lock = threading.Lock()

    @staticmethod
    def _default_task_source(label):
        return (
            Task.objects
            .awaiting_reminder(label)
            .filter(due_date__isnull=False)
            .prefetch_related('assigned_to')
        )

    def tick(self):
        """
        Run one scheduling pass over every lead-time window.

        Returns:
            TickReport
        """
        with self._lock:
            now = self.clock()
            report = TickReport()
            for lead_time in self.lead_times:
                self._process_window(lead_time, now, report)

        if report.sent or report.failed:
            logger.info(
                'Reminder tick at %s: sent=%s failed=%s',
                now.isoformat(), report.sent, report.failed
            )
        return report

    def _process_window(self, lead_time, now, report):
        try:
            candidates = list(self.task_source(lead_time.label))
        except DatabaseError:
            logger.exception('Could not load reminder candidates for %s', lead_time.label)
            return

        for task in candidates:
            event_instant = get_event_instant(task)
            if event_instant is None:
                continue
            if not in_window(event_instant, now, lead_time, self.tick_seconds):
                continue
            try:
                self._remind(task, lead_time, event_instant, now, report)
            except Exception:
                # One task must not stop the rest of the tick
                report.failed += 1
                logger.exception('Reminder %s for task %s failed', lead_time.label, task.pk)

    def _remind(self, task, lead_time, event_instant, now, report):
        try:
            recipients = self.resolve_recipients(task.get_assignee_ids())
        except DatabaseError:
            report.failed += 1
            logger.exception('Could not resolve recipients for task %s', task.pk)
            return
        if not recipients:
            report.skipped_no_recipients += 1
            return

        subject, body = build_task_reminder_message(task, event_instant)
        try:
            self.notifier(recipients, subject, body)
        except TransportError:
            report.failed += 1
            logger.exception('Reminder %s for task %s could not be sent', lead_time.label, task.pk)
            return

        try:
            self._mark_sent(task, lead_time, now)
        except DatabaseError:
            report.failed += 1
            logger.exception('Reminder %s for task %s sent but not recorded', lead_time.label, task.pk)
            return

        report.sent += 1
        logger.info('Reminder %s sent for task %s to %s recipient(s)', lead_time.label, task.pk, len(recipients))

    def _mark_sent(self, task, lead_time, now):
        with transaction.atomic():
            try:
                with transaction.atomic():
                    SentReminder.objects.create(task=task, label=lead_time.label, sent_at=now)
            except IntegrityError:
                # Already latched by a concurrent tick
                return
            log_task_activity(
                task=task,
                user=None,
                action_type=TaskActivity.ActionType.REMINDER_SENT,
                description=f'{lead_time.label} reminder sent',
            )


# Scheduler used by the django-q task and the run_reminders command
default_scheduler = ReminderScheduler()
