"""
Task management models.

Models:
- Task: personal items, delegated assignments, meetings and week-offs
- ProgressNote: append-only progress log written by owners and assignees
- SentReminder: one row per (task, lead-time label) reminder already fired
"""

from django.conf import settings
from django.core.validators import RegexValidator
from django.db import models
from django.db.models import Q

time_of_day_validator = RegexValidator(
    regex=r'^([01]\d|2[0-3]):[0-5]\d$',
    message='Time must be in HH:MM (24-hour) format.',
)

single_line_validator = RegexValidator(
    regex=r'[\r\n]',
    inverse_match=True,
    message='Title cannot contain line breaks.',
)


class TaskQuerySet(models.QuerySet):
    """
    Query contracts used by the request handlers and the reminder scheduler.
    """

    def owned_by(self, user):
        return self.filter(created_by=user)

    def assigned_to_user(self, user):
        return self.filter(assigned_to=user)

    def involving(self, user):
        """Tasks the user created or is assigned to."""
        return self.filter(Q(created_by=user) | Q(assigned_to=user)).distinct()

    def due_between(self, start, end):
        """Tasks with start <= due_date <= end."""
        return self.filter(due_date__gte=start, due_date__lte=end)

    def with_status(self, statuses):
        return self.filter(status__in=list(statuses))

    def excluding_status(self, statuses):
        return self.exclude(status__in=list(statuses))

    def awaiting_reminder(self, label):
        """
        Open tasks whose reminder for this lead-time label has not fired.

        Completed and overdue tasks never get reminders.
        """
        return (
            self.excluding_status(Task.REMINDER_EXCLUDED_STATUSES)
            .exclude(sent_reminders__label=label)
        )

    def stale(self, now):
        """Tasks past their due date that still need the overdue correction."""
        return (
            self.filter(due_date__isnull=False, due_date__lt=now)
            .excluding_status(Task.OVERDUE_EXEMPT_STATUSES)
        )


class Task(models.Model):
    """
    Main Task model.

    Task types:
    - personal: only the owner may touch it
    - delegated / meeting: assignees may move status and add progress notes
    - week-off: calendar block, owner only

    Assignee-reachable workflow:
        pending/accepted -> in_progress -> under_review (assignee says "done")
    The owner closes with completed or sends it back to in_progress.
    Overdue is set automatically when the due date passes.
    """

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        ACCEPTED = 'accepted', 'Accepted'
        IN_PROGRESS = 'in_progress', 'In Progress'
        DONE = 'done', 'Done'
        UNDER_REVIEW = 'under_review', 'Under Review'
        COMPLETED = 'completed', 'Completed'
        OVERDUE = 'overdue', 'Overdue'

    class TaskType(models.TextChoices):
        PERSONAL = 'personal', 'Personal'
        DELEGATED = 'delegated', 'Delegated'
        MEETING = 'meeting', 'Meeting'
        WEEK_OFF = 'week-off', 'Week Off'

    class Priority(models.TextChoices):
        LOW = 'low', 'Low'
        MEDIUM = 'medium', 'Medium'
        HIGH = 'high', 'High'

    class Color(models.TextChoices):
        RED = 'Red', 'Red'
        GREEN = 'Green', 'Green'
        BLUE = 'Blue', 'Blue'
        YELLOW = 'Yellow', 'Yellow'

    class Recurrence(models.TextChoices):
        NONE = 'none', 'None'
        DAILY = 'daily', 'Daily'
        WEEKDAYS = 'weekdays', 'Weekdays'
        WEEKLY = 'weekly', 'Weekly'
        MONTHLY = 'monthly', 'Monthly'
        YEARLY = 'yearly', 'Yearly'

    # Task types whose assignees get a narrowed edit channel
    COLLABORATIVE_TYPES = (TaskType.DELEGATED, TaskType.MEETING)

    # Statuses that the overdue correction leaves alone
    OVERDUE_EXEMPT_STATUSES = (Status.COMPLETED, Status.OVERDUE)

    # Statuses that never receive reminders
    REMINDER_EXCLUDED_STATUSES = (Status.COMPLETED, Status.OVERDUE)

    title = models.CharField(max_length=255, validators=[single_line_validator])
    description = models.TextField(blank=True)

    # Relationships
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='created_tasks',
        help_text='Owner of this task; never changes after creation'
    )
    assigned_to = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name='assigned_tasks',
    )

    # Classification
    type = models.CharField(
        max_length=10,
        choices=TaskType.choices,
        default=TaskType.PERSONAL,
        db_index=True,
    )
    status = models.CharField(
        max_length=15,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    priority = models.CharField(
        max_length=10,
        choices=Priority.choices,
        default=Priority.MEDIUM,
    )
    color = models.CharField(max_length=10, choices=Color.choices, blank=True)
    company = models.CharField(max_length=255, blank=True)

    # Scheduling
    due_date = models.DateTimeField(null=True, blank=True, db_index=True)
    start_time = models.CharField(
        max_length=5,
        blank=True,
        validators=[time_of_day_validator],
        help_text='HH:MM, combined with the due date for meetings'
    )
    end_time = models.CharField(
        max_length=5,
        blank=True,
        validators=[time_of_day_validator],
    )
    recurrence = models.CharField(
        max_length=10,
        choices=Recurrence.choices,
        default=Recurrence.NONE,
    )
    recurrence_end_date = models.DateTimeField(null=True, blank=True)
    reminders = models.JSONField(
        default=list,
        blank=True,
        help_text='Requested reminder labels, e.g. ["5m", "15m"] (informational)'
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TaskQuerySet.as_manager()

    class Meta:
        verbose_name = 'task'
        verbose_name_plural = 'tasks'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'due_date'], name='task_status_due_idx'),
            models.Index(fields=['created_by', 'status'], name='task_owner_status_idx'),
        ]

    def __str__(self):
        return f"#{self.pk}: {self.title}"

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def is_collaborative(self):
        """Delegated tasks and meetings accept assignee updates."""
        return self.type in self.COLLABORATIVE_TYPES

    def is_owned_by(self, user_id):
        return user_id is not None and self.created_by_id == user_id

    def get_assignee_ids(self):
        """
        Ids of the assigned users.

        Uses the prefetch cache when the task was loaded with
        prefetch_related('assigned_to').
        """
        if self.pk is None:
            return []
        return [user.pk for user in self.assigned_to.all()]

    @property
    def reminders_sent(self):
        """Mapping of lead-time label to True for every reminder already fired."""
        if self.pk is None:
            return {}
        return {reminder.label: True for reminder in self.sent_reminders.all()}

    def is_past_due(self, now):
        return self.due_date is not None and self.due_date < now

    def needs_overdue_flag(self, now):
        """Check if the overdue correction applies to this task at `now`."""
        return self.is_past_due(now) and self.status not in self.OVERDUE_EXEMPT_STATUSES


class ProgressNote(models.Model):
    """
    Progress note on a task.

    Notes are append-only and displayed chronologically.
    """

    task = models.ForeignKey(
        Task,
        on_delete=models.CASCADE,
        related_name='progress_notes',
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='progress_notes',
    )
    note = models.TextField()
    timestamp = models.DateTimeField()

    class Meta:
        verbose_name = 'progress note'
        verbose_name_plural = 'progress notes'
        ordering = ['timestamp', 'pk']

    def __str__(self):
        return f"Note by {self.author_id} on task {self.task_id}"


class SentReminder(models.Model):
    """
    Latch recording that the reminder for one lead-time window fired.

    A row exists at most once per (task, label) and is never removed,
    so a reminder is sent at most once.
    """

    task = models.ForeignKey(
        Task,
        on_delete=models.CASCADE,
        related_name='sent_reminders',
    )
    label = models.CharField(max_length=8)
    sent_at = models.DateTimeField()

    class Meta:
        verbose_name = 'sent reminder'
        verbose_name_plural = 'sent reminders'
        ordering = ['sent_at']
        constraints = [
            models.UniqueConstraint(fields=['task', 'label'], name='unique_task_reminder_label'),
        ]

    def __str__(self):
        return f"{self.label} reminder for task {self.task_id}"
