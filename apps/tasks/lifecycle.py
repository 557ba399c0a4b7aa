"""
Task lifecycle rules.

Decides whether a requested mutation is allowed for the acting user and
computes the resulting task state. No database access: the caller loads
the task, persists the result and sends notifications.

Rules:
- Owner: may overwrite any field in OWNER_MUTABLE_FIELDS and set any status.
  A status change notifies the assignees.
- Assignee of a delegated task or meeting: may request accepted,
  in_progress or done (stored as under_review), and may add progress notes.
  A status change notifies the assignees; a note alone does not.
- Anyone else: rejected.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from django.core.exceptions import PermissionDenied, ValidationError
from django.utils import timezone

from .models import ProgressNote, Task


class _Unset:
    """Marker for patch slots the caller did not provide."""

    def __repr__(self):
        return 'UNSET'

    def __bool__(self):
        return False


UNSET: Any = _Unset()

# Fields an owner may overwrite. created_by never changes.
OWNER_MUTABLE_FIELDS = (
    'title',
    'description',
    'due_date',
    'start_time',
    'end_time',
    'priority',
    'type',
    'company',
    'color',
    'recurrence',
    'recurrence_end_date',
    'reminders',
    'assigned_to',
)

# Status an assignee may request -> status actually stored
ASSIGNEE_STATUS_REQUESTS = {
    Task.Status.DONE.value: Task.Status.UNDER_REVIEW,
    Task.Status.ACCEPTED.value: Task.Status.ACCEPTED,
    Task.Status.IN_PROGRESS.value: Task.Status.IN_PROGRESS,
}


@dataclass
class TaskPatch:
    """
    A requested partial update.

    Every slot defaults to UNSET; only slots that were set are applied.
    assigned_to holds a list of user ids.
    """

    title: Any = UNSET
    description: Any = UNSET
    due_date: Any = UNSET
    start_time: Any = UNSET
    end_time: Any = UNSET
    priority: Any = UNSET
    type: Any = UNSET
    company: Any = UNSET
    color: Any = UNSET
    recurrence: Any = UNSET
    recurrence_end_date: Any = UNSET
    reminders: Any = UNSET
    assigned_to: Any = UNSET
    status: Any = UNSET
    progress_note: Any = UNSET

    @classmethod
    def from_dict(cls, data):
        """Build a patch from a mapping, ignoring keys outside the allow-list."""
        allowed = set(OWNER_MUTABLE_FIELDS) | {'status', 'progress_note'}
        return cls(**{key: value for key, value in data.items() if key in allowed})

    def owner_fields(self):
        """(name, value) pairs for every owner-mutable slot that was set."""
        return [
            (name, getattr(self, name))
            for name in OWNER_MUTABLE_FIELDS
            if getattr(self, name) is not UNSET
        ]

    @property
    def has_status(self):
        return self.status is not UNSET and self.status is not None

    @property
    def has_progress_note(self):
        return isinstance(self.progress_note, str) and bool(self.progress_note.strip())


@dataclass
class MutationResult:
    task: Task
    notify: bool = False
    changed_fields: list = field(default_factory=list)
    progress_note: Optional[ProgressNote] = None
    assigned_to: Optional[list] = None
    previous_status: Optional[str] = None

    @property
    def status_changed(self):
        return 'status' in self.changed_fields


def apply_mutation(task, actor_id, patch, *, assignee_ids=None, now=None):
    """
    Apply a patch to a task on behalf of a user.

    The task instance is modified in place only after every check has
    passed, so a rejected patch leaves it untouched.

    Args:
        task: Task instance (not saved by this function)
        actor_id: Primary key of the acting user
        patch: TaskPatch
        assignee_ids: Current assignee ids; read from the task when omitted
        now: Timestamp for a new progress note (defaults to timezone.now())

    Returns:
        MutationResult

    Raises:
        PermissionDenied: If the actor may not make this change
        ValidationError: If the owner requests an unknown status
    """
    now = now or timezone.now()
    if assignee_ids is None:
        assignee_ids = task.get_assignee_ids()

    if task.is_owned_by(actor_id):
        return _apply_owner_mutation(task, actor_id, patch, now)
    return _apply_assignee_mutation(task, actor_id, patch, assignee_ids, now)


def _apply_owner_mutation(task, actor_id, patch, now):
    if patch.has_status and patch.status not in Task.Status.values:
        raise ValidationError({'status': f'Unknown status: {patch.status}'})

    result = MutationResult(task=task, previous_status=task.status)

    if patch.has_status:
        task.status = patch.status
        result.notify = True
        result.changed_fields.append('status')

    for name, value in patch.owner_fields():
        if name == 'assigned_to':
            result.assigned_to = list(value or [])
        else:
            setattr(task, name, value)
        result.changed_fields.append(name)

    if patch.has_progress_note:
        result.progress_note = _new_note(task, actor_id, patch.progress_note, now)

    return result


def _apply_assignee_mutation(task, actor_id, patch, assignee_ids, now):
    if not task.is_collaborative or actor_id not in assignee_ids:
        raise PermissionDenied('Only the task owner can edit this task.')

    new_status = None
    if patch.has_status:
        new_status = ASSIGNEE_STATUS_REQUESTS.get(patch.status)
        if new_status is None:
            raise PermissionDenied(f'Invalid status update for assignee: {patch.status}')

    if new_status is None and not patch.has_progress_note:
        raise PermissionDenied('Assignees can only update status or add progress notes.')

    result = MutationResult(task=task, previous_status=task.status)

    if new_status is not None:
        task.status = new_status
        result.notify = True
        result.changed_fields.append('status')

    if patch.has_progress_note:
        result.progress_note = _new_note(task, actor_id, patch.progress_note, now)

    return result


def _new_note(task, author_id, text, now):
    return ProgressNote(task=task, author_id=author_id, note=text.strip(), timestamp=now)
