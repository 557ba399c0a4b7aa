"""
Tests for the task service layer (apps.tasks.services).
"""

from datetime import date, datetime, timedelta, timezone as dt_timezone

from django.core import mail
from django.core.exceptions import PermissionDenied, ValidationError
from django.test import TestCase

from apps.accounts.models import User
from apps.accounts.services import get_recipient_emails, resolve_principals
from apps.activity_log.models import TaskActivity
from apps.notifications.services import TransportError, notify_task_updated, send_notification_email
from apps.tasks.lifecycle import TaskPatch
from apps.tasks.models import ProgressNote, Task
from apps.tasks.services import (
    create_task, delete_task, get_tasks_for_date, get_tasks_for_user,
    mark_overdue_tasks, update_task,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=dt_timezone.utc)


class TaskServiceTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.owner = User.objects.create_user('owner@example.com', 'pass12345')
        cls.alice = User.objects.create_user('alice@example.com', 'pass12345')
        cls.bob = User.objects.create_user('bob@example.com', 'pass12345')
        cls.stranger = User.objects.create_user('stranger@example.com', 'pass12345')

    def make_task(self, *, assigned_to=None, **fields):
        values = {
            'title': 'Prepare budget',
            'type': Task.TaskType.DELEGATED,
            'status': Task.Status.IN_PROGRESS,
        }
        values.update(fields)
        if assigned_to is None:
            assigned_to = [self.alice, self.bob]
        return create_task(self.owner, assigned_to=assigned_to, notify=False, **values)


class CreateTaskTests(TaskServiceTestCase):

    def test_delegated_task_emails_all_assignees_once(self):
        task = create_task(
            self.owner,
            assigned_to=[self.alice, self.bob],
            title='Prepare budget',
            type=Task.TaskType.DELEGATED,
        )

        self.assertEqual(task.status, Task.Status.PENDING)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, 'New Delegated Task: Prepare budget')
        self.assertEqual(sorted(mail.outbox[0].to), ['alice@example.com', 'bob@example.com'])

    def test_meeting_email_names_organizer(self):
        create_task(
            self.owner,
            assigned_to=[self.alice],
            title='Standup',
            type=Task.TaskType.MEETING,
            start_time='09:00',
            end_time='09:15',
        )

        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, 'Meeting Scheduled: Standup')
        self.assertIn('owner@example.com', mail.outbox[0].body)
        self.assertIn('09:00 - 09:15', mail.outbox[0].body)

    def test_personal_task_sends_nothing(self):
        create_task(self.owner, title='Buy groceries')
        self.assertEqual(len(mail.outbox), 0)

    def test_blank_title_is_rejected(self):
        with self.assertRaises(ValidationError):
            create_task(self.owner, title='   ')
        self.assertFalse(Task.objects.exists())

    def test_creation_is_logged(self):
        task = create_task(self.owner, title='Buy groceries')
        activity = TaskActivity.objects.get(task=task)
        self.assertEqual(activity.action_type, TaskActivity.ActionType.CREATED)
        self.assertEqual(activity.user, self.owner)

    def test_title_with_line_break_is_rejected(self):
        with self.assertRaises(ValidationError):
            create_task(self.owner, title='Line one\r\nLine two')
        self.assertFalse(Task.objects.exists())

    def test_personal_task_cannot_have_assignees(self):
        with self.assertRaises(ValidationError):
            create_task(self.owner, title='Solo', assigned_to=[self.alice])
        self.assertFalse(Task.objects.exists())


class UpdateTaskTests(TaskServiceTestCase):

    def test_owner_completion_notifies_assignees_in_one_email(self):
        task = self.make_task()
        ProgressNote.objects.create(task=task, author=self.alice, note='Started', timestamp=NOW)

        update_task(task.pk, self.owner, TaskPatch(status='completed'))

        task.refresh_from_db()
        self.assertEqual(task.status, Task.Status.COMPLETED)
        self.assertEqual(task.progress_notes.count(), 1)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].subject, 'Task Updated: Prepare budget')
        self.assertEqual(sorted(mail.outbox[0].to), ['alice@example.com', 'bob@example.com'])

    def test_assignee_done_becomes_under_review(self):
        task = self.make_task()

        result = update_task(task.pk, self.alice, TaskPatch(status='done'))

        task.refresh_from_db()
        self.assertEqual(task.status, Task.Status.UNDER_REVIEW)
        self.assertTrue(result.notify)
        self.assertEqual(len(mail.outbox), 1)
        self.assertTrue(
            TaskActivity.objects.filter(
                task=task,
                action_type=TaskActivity.ActionType.STATUS_CHANGED,
                old_value='in_progress',
                new_value='under_review',
            ).exists()
        )

    def test_assignee_note_appends_without_notification(self):
        task = self.make_task()

        update_task(task.pk, self.bob, TaskPatch(progress_note='Halfway there'), now=NOW)

        task.refresh_from_db()
        self.assertEqual(task.status, Task.Status.IN_PROGRESS)
        notes = list(task.progress_notes.all())
        self.assertEqual(len(notes), 1)
        self.assertEqual(notes[0].author, self.bob)
        self.assertEqual(notes[0].note, 'Halfway there')
        self.assertEqual(notes[0].timestamp, NOW)
        self.assertEqual(len(mail.outbox), 0)

    def test_assignee_disallowed_status_leaves_task_untouched(self):
        task = self.make_task()

        with self.assertRaises(PermissionDenied):
            update_task(task.pk, self.alice, TaskPatch(status='completed', progress_note='Done!'))

        task.refresh_from_db()
        self.assertEqual(task.status, Task.Status.IN_PROGRESS)
        self.assertFalse(task.progress_notes.exists())
        self.assertEqual(len(mail.outbox), 0)

    def test_stranger_is_rejected(self):
        task = self.make_task()
        with self.assertRaises(PermissionDenied):
            update_task(task.pk, self.stranger, TaskPatch(status='accepted'))

    def test_personal_task_rejects_non_owner(self):
        task = self.make_task(type=Task.TaskType.PERSONAL, assigned_to=[])
        with self.assertRaises(PermissionDenied):
            update_task(task.pk, self.alice, TaskPatch(progress_note='hi'))

    def test_owner_reassigns(self):
        task = self.make_task()

        update_task(task.pk, self.owner, TaskPatch(assigned_to=[self.stranger.pk]))

        self.assertEqual(list(task.assigned_to.all()), [self.stranger])
        # No status change, no email
        self.assertEqual(len(mail.outbox), 0)

    def test_owner_field_validation(self):
        task = self.make_task()
        with self.assertRaises(ValidationError):
            update_task(task.pk, self.owner, TaskPatch(start_time='25:00'))
        task.refresh_from_db()
        self.assertEqual(task.start_time, '')

    def test_title_with_line_break_is_rejected_before_saving(self):
        task = self.make_task()

        with self.assertRaises(ValidationError):
            update_task(task.pk, self.owner, TaskPatch(title='a\nb', status='completed'))

        task.refresh_from_db()
        self.assertEqual(task.title, 'Prepare budget')
        self.assertEqual(task.status, Task.Status.IN_PROGRESS)
        self.assertEqual(len(mail.outbox), 0)

    def test_assignees_on_personal_task_are_rejected(self):
        task = self.make_task(type=Task.TaskType.PERSONAL, assigned_to=[])

        with self.assertRaises(ValidationError):
            update_task(task.pk, self.owner, TaskPatch(assigned_to=[self.alice.pk]))

        self.assertFalse(task.assigned_to.exists())

    def test_switching_to_personal_requires_clearing_assignees(self):
        task = self.make_task()

        with self.assertRaises(ValidationError):
            update_task(task.pk, self.owner, TaskPatch(type=Task.TaskType.WEEK_OFF))
        self.assertEqual(Task.objects.get(pk=task.pk).type, Task.TaskType.DELEGATED)

        update_task(task.pk, self.owner, TaskPatch(type=Task.TaskType.PERSONAL, assigned_to=[]))

        task.refresh_from_db()
        self.assertEqual(task.type, Task.TaskType.PERSONAL)
        self.assertFalse(task.assigned_to.exists())

    def test_missing_task(self):
        with self.assertRaises(Task.DoesNotExist):
            update_task(999999, self.owner, TaskPatch(status='completed'))


class DeleteTaskTests(TaskServiceTestCase):

    def test_owner_deletes(self):
        task = self.make_task()
        delete_task(task.pk, self.owner)
        self.assertFalse(Task.objects.filter(pk=task.pk).exists())

    def test_assignee_cannot_delete(self):
        task = self.make_task()
        with self.assertRaises(PermissionDenied):
            delete_task(task.pk, self.alice)
        self.assertTrue(Task.objects.filter(pk=task.pk).exists())


class OverdueCorrectionTests(TaskServiceTestCase):

    def test_read_marks_stale_task_overdue_and_persists(self):
        task = self.make_task(due_date=NOW - timedelta(hours=1), status=Task.Status.PENDING)

        tasks = list(get_tasks_for_user(self.owner, now=NOW))

        self.assertEqual([t.status for t in tasks], [Task.Status.OVERDUE])
        # A second, independent read sees the stored value
        self.assertEqual(Task.objects.get(pk=task.pk).status, Task.Status.OVERDUE)
        self.assertEqual(len(mail.outbox), 0)
        activity = TaskActivity.objects.get(task=task, action_type=TaskActivity.ActionType.MARKED_OVERDUE)
        self.assertIsNone(activity.user)
        self.assertEqual(activity.old_value, 'pending')

    def test_assignee_read_applies_correction(self):
        task = self.make_task(due_date=NOW - timedelta(days=2))
        get_tasks_for_user(self.alice, view='incoming', now=NOW)
        self.assertEqual(Task.objects.get(pk=task.pk).status, Task.Status.OVERDUE)

    def test_completed_and_future_tasks_are_left_alone(self):
        completed = self.make_task(due_date=NOW - timedelta(hours=1), status=Task.Status.COMPLETED)
        future = self.make_task(due_date=NOW + timedelta(hours=1))
        due_now = self.make_task(due_date=NOW)
        undated = self.make_task(due_date=None)

        self.assertEqual(mark_overdue_tasks(Task.objects.all(), now=NOW), 0)

        for task, status in (
            (completed, Task.Status.COMPLETED),
            (future, Task.Status.IN_PROGRESS),
            (due_now, Task.Status.IN_PROGRESS),
            (undated, Task.Status.IN_PROGRESS),
        ):
            self.assertEqual(Task.objects.get(pk=task.pk).status, status)

    def test_correction_is_idempotent(self):
        self.make_task(due_date=NOW - timedelta(hours=1))
        self.make_task(due_date=NOW - timedelta(hours=2), status=Task.Status.UNDER_REVIEW)

        self.assertEqual(mark_overdue_tasks(Task.objects.all(), now=NOW), 2)
        self.assertEqual(mark_overdue_tasks(Task.objects.all(), now=NOW), 0)
        self.assertEqual(
            TaskActivity.objects.filter(action_type=TaskActivity.ActionType.MARKED_OVERDUE).count(),
            2,
        )

    def test_correction_only_touches_the_read_set(self):
        mine = self.make_task(due_date=NOW - timedelta(hours=1))
        other = create_task(
            self.stranger, title='Not mine', status=Task.Status.PENDING,
            due_date=NOW - timedelta(hours=1), notify=False,
        )

        get_tasks_for_user(self.owner, view='outgoing', now=NOW)

        self.assertEqual(Task.objects.get(pk=mine.pk).status, Task.Status.OVERDUE)
        self.assertEqual(Task.objects.get(pk=other.pk).status, Task.Status.PENDING)

    def test_owner_can_move_task_out_of_overdue(self):
        task = self.make_task(due_date=NOW - timedelta(hours=1))
        mark_overdue_tasks(Task.objects.all(), now=NOW)

        update_task(task.pk, self.owner, TaskPatch(status='completed'))

        self.assertEqual(Task.objects.get(pk=task.pk).status, Task.Status.COMPLETED)


class TaskReadTests(TaskServiceTestCase):

    def test_views(self):
        outgoing = self.make_task(title='Outgoing')
        incoming = create_task(
            self.alice, title='Incoming', type=Task.TaskType.DELEGATED,
            assigned_to=[self.owner], notify=False,
        )

        self.assertEqual(list(get_tasks_for_user(self.owner, view='outgoing', now=NOW)), [outgoing])
        self.assertEqual(list(get_tasks_for_user(self.owner, view='incoming', now=NOW)), [incoming])
        self.assertEqual(
            {t.pk for t in get_tasks_for_user(self.owner, now=NOW)},
            {outgoing.pk, incoming.pk},
        )
        self.assertEqual(list(get_tasks_for_user(self.stranger, now=NOW)), [])

    def test_involving_does_not_duplicate(self):
        task = self.make_task(assigned_to=[self.alice, self.bob])
        self.assertEqual(list(get_tasks_for_user(self.alice, now=NOW)), [task])

    def test_tasks_for_date(self):
        on_day = self.make_task(due_date=datetime(2026, 3, 11, 9, 0, tzinfo=dt_timezone.utc))
        self.make_task(due_date=datetime(2026, 3, 12, 0, 0, tzinfo=dt_timezone.utc))

        tasks = list(get_tasks_for_date(self.alice, date(2026, 3, 11), now=NOW))

        self.assertEqual(tasks, [on_day])


class PrincipalTests(TaskServiceTestCase):

    def test_resolve_principals_orders_and_drops_inactive(self):
        inactive = User.objects.create_user('gone@example.com', 'pass12345', is_active=False)

        principals = resolve_principals([self.bob.pk, self.alice.pk, inactive.pk, 424242])

        self.assertEqual(
            [p.email for p in principals],
            ['alice@example.com', 'bob@example.com'],
        )

    def test_no_ids(self):
        self.assertEqual(get_recipient_emails([]), [])


class NotificationServiceTests(TaskServiceTestCase):

    def test_malformed_header_is_a_transport_error(self):
        with self.assertRaises(TransportError):
            send_notification_email(['alice@example.com'], 'Task Updated: a\nb', 'body')
        self.assertEqual(len(mail.outbox), 0)

    def test_update_notification_failure_is_logged_not_raised(self):
        # Rows written before titles were restricted to one line
        task = Task.objects.create(
            title='Legacy\ntitle', created_by=self.owner, type=Task.TaskType.DELEGATED,
        )
        task.assigned_to.set([self.alice])

        with self.assertLogs('apps.notifications.services', level='ERROR'):
            delivered = notify_task_updated(task, ['status'])

        self.assertFalse(delivered)
        self.assertEqual(len(mail.outbox), 0)
