"""
Service layer for tasks app.

All business logic for task operations is centralized here so the JSON
views stay thin.

Services:
- create_task: Create a task owned by the requesting user
- update_task: Apply a patch through the lifecycle rules and persist it
- delete_task: Owner-only deletion
- mark_overdue_tasks: Lazy overdue correction run on every collection read
- get_tasks_for_user / get_tasks_for_date: Collection reads
"""

import logging
from datetime import datetime, time, timedelta

from django.core.exceptions import PermissionDenied, ValidationError
from django.db import transaction
from django.utils import timezone

from apps.activity_log.models import log_task_activity, TaskActivity
from apps.notifications.services import notify_task_assigned, notify_task_updated

from .lifecycle import apply_mutation
from .models import Task, single_line_validator

logger = logging.getLogger(__name__)


def create_task(created_by, *, assigned_to=(), notify=True, **fields):
    """
    Central task creation function.

    Args:
        created_by: Owner of the new task
        assigned_to: Iterable of users or user ids
        notify: Email assignees of delegated tasks and meetings
        **fields: Task field values (title, description, due_date, ...)

    Returns:
        Created Task instance

    Raises:
        ValidationError: If required fields are missing
    """
    title = fields.get('title')
    if not title or not str(title).strip():
        raise ValidationError("Task title is required.")
    fields['title'] = str(title).strip()
    single_line_validator(fields['title'])

    assigned_to = list(assigned_to or ())
    task_type = fields.get('type', Task.TaskType.PERSONAL)
    if assigned_to and task_type not in Task.COLLABORATIVE_TYPES:
        raise ValidationError(
            {'assigned_to': "Only delegated tasks and meetings can have assignees."}
        )

    with transaction.atomic():
        task = Task.objects.create(created_by=created_by, **fields)
        if assigned_to:
            task.assigned_to.set(assigned_to)

        log_task_activity(
            task=task,
            user=created_by,
            action_type=TaskActivity.ActionType.CREATED,
            description=f'{task.get_type_display()} task created: "{task.title}"'
        )

    logger.info('Task %s created by user %s (type=%s)', task.pk, created_by.pk, task.type)

    # Notify outside the transaction; a failed email never rolls back the task
    if notify and task.is_collaborative:
        notify_task_assigned(task)

    return task


def update_task(task_id, user, patch, *, now=None):
    """
    Apply a patch to a task on behalf of a user.

    The read-modify-write runs in one transaction with the task row locked,
    so concurrent updates to the same task cannot overwrite each other.

    Args:
        task_id: Primary key of the task
        user: User performing the update
        patch: TaskPatch
        now: Optional timestamp for progress notes

    Returns:
        MutationResult (result.task is the saved Task)

    Raises:
        Task.DoesNotExist: If the task does not exist
        PermissionDenied: If the user may not make this change
        ValidationError: If the patch is invalid
    """
    with transaction.atomic():
        task = (
            Task.objects
            .select_for_update()
            .get(pk=task_id)
        )
        assignee_ids = task.get_assignee_ids()
        result = apply_mutation(task, user.pk, patch, assignee_ids=assignee_ids, now=now)

        final_assignees = result.assigned_to if result.assigned_to is not None else assignee_ids
        if final_assignees and not task.is_collaborative:
            raise ValidationError(
                {'assigned_to': "Only delegated tasks and meetings can have assignees."}
            )

        task.full_clean(exclude=['assigned_to'])
        task.save()

        if result.assigned_to is not None:
            task.assigned_to.set(result.assigned_to)

        if result.progress_note is not None:
            result.progress_note.task = task
            result.progress_note.save()
            log_task_activity(
                task=task,
                user=user,
                action_type=TaskActivity.ActionType.PROGRESS_NOTE,
                description=f'Progress note added: "{_preview(result.progress_note.note)}"'
            )

        _log_changes(task, user, result)

    if result.notify:
        notify_task_updated(task, result.changed_fields)

    return result


def delete_task(task_id, user):
    """
    Delete a task. Only the owner may delete.

    Raises:
        Task.DoesNotExist: If the task does not exist
        PermissionDenied: If the user is not the owner
    """
    with transaction.atomic():
        task = Task.objects.select_for_update().get(pk=task_id)
        if not task.is_owned_by(user.pk):
            raise PermissionDenied("Only the task owner can delete this task.")
        task.delete()

    logger.info('Task %s deleted by user %s', task_id, user.pk)


def mark_overdue_tasks(queryset, now=None):
    """
    Move stale tasks in the queryset to overdue.

    A task is stale when its due date is strictly before `now` and its
    status is neither completed nor overdue. The UPDATE carries the same
    condition, so a status written concurrently by update_task is never
    overwritten. No notification is sent.

    Args:
        queryset: Task queryset being read
        now: Reference instant (defaults to timezone.now())

    Returns:
        int: number of tasks moved to overdue
    """
    now = now or timezone.now()
    stale = list(queryset.stale(now).values_list('pk', 'status'))
    if not stale:
        return 0

    previous_status = dict(stale)
    with transaction.atomic():
        updated = (
            Task.objects
            .filter(pk__in=list(previous_status))
            .stale(now)
            .update(status=Task.Status.OVERDUE, updated_at=now)
        )
        for task in Task.objects.filter(pk__in=list(previous_status), status=Task.Status.OVERDUE):
            old_status = previous_status[task.pk]
            log_task_activity(
                task=task,
                user=None,
                action_type=TaskActivity.ActionType.MARKED_OVERDUE,
                description=f'Due date passed; status changed from {old_status} to overdue',
                field_name='status',
                old_value=old_status,
                new_value=Task.Status.OVERDUE,
            )

    logger.info('Marked %s task(s) overdue', updated)
    return updated


# =============================================================================
# Query Helpers
# =============================================================================

def get_tasks_for_user(user, view=None, now=None):
    """
    Tasks visible to a user, with the overdue correction applied.

    Args:
        user: Current user
        view: 'outgoing' (created by me), 'incoming' (assigned to me),
              anything else: both

    Returns:
        QuerySet of Task objects reflecting the corrected statuses
    """
    if view == 'outgoing':
        queryset = Task.objects.owned_by(user)
    elif view == 'incoming':
        queryset = Task.objects.assigned_to_user(user)
    else:
        queryset = Task.objects.involving(user)

    return _read_with_overdue_correction(queryset, now)


def get_tasks_for_date(user, day, now=None):
    """
    Tasks involving the user that are due on the given calendar day.

    Args:
        user: Current user
        day: datetime.date

    Returns:
        QuerySet of Task objects
    """
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(day, time.min), tz)
    end = start + timedelta(days=1) - timedelta(microseconds=1)
    queryset = Task.objects.involving(user).due_between(start, end)
    return _read_with_overdue_correction(queryset, now)


def _read_with_overdue_correction(queryset, now):
    mark_overdue_tasks(queryset, now=now)
    # Fresh queryset so the result reflects the corrected statuses
    return (
        queryset.all()
        .select_related('created_by')
        .prefetch_related('assigned_to', 'progress_notes', 'sent_reminders')
    )


# =============================================================================
# Activity Helpers
# =============================================================================

def _log_changes(task, user, result):
    if result.status_changed and result.previous_status != task.status:
        log_task_activity(
            task=task,
            user=user,
            action_type=TaskActivity.ActionType.STATUS_CHANGED,
            description=f'Status changed from {result.previous_status} to {task.status}',
            field_name='status',
            old_value=result.previous_status,
            new_value=task.status,
        )

    updated = [name for name in result.changed_fields if name != 'status']
    if updated:
        log_task_activity(
            task=task,
            user=user,
            action_type=TaskActivity.ActionType.UPDATED,
            description=f'Fields updated: {", ".join(updated)}',
        )


def _preview(text, length=50):
    return f'{text[:length]}{"..." if len(text) > length else ""}'
