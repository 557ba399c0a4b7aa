"""
Forms for tasks app.

The JSON views feed request payloads straight into these forms.

Includes:
- TaskForm: Create a task
- TaskPatchForm: Validate a partial update and turn it into a TaskPatch
"""

from django import forms
from django.core.exceptions import ValidationError

from apps.accounts.models import User

from .lifecycle import OWNER_MUTABLE_FIELDS, TaskPatch
from .models import Task, single_line_validator, time_of_day_validator

REMINDER_LABELS = ('1d', '1h', '30m', '15m', '5m')

# Choice fields that cannot be blank once present in a payload
_REQUIRED_CHOICES = ('priority', 'type', 'recurrence')


def _clean_reminder_labels(value):
    """Reminder labels must be a list drawn from REMINDER_LABELS."""
    if value in (None, ''):
        return []
    if not isinstance(value, list):
        raise ValidationError("Reminders must be a list of labels.")
    unknown = [label for label in value if label not in REMINDER_LABELS]
    if unknown:
        raise ValidationError(
            f"Unknown reminder label(s): {', '.join(map(str, unknown))}. "
            f"Allowed: {', '.join(REMINDER_LABELS)}"
        )
    return value


class TaskForm(forms.ModelForm):
    """
    Form for creating tasks.

    The owner is the requesting user and is never taken from the payload.
    """

    reminders = forms.JSONField(required=False)
    assigned_to = forms.ModelMultipleChoiceField(
        queryset=User.objects.filter(is_active=True),
        required=False,
    )

    class Meta:
        model = Task
        fields = [
            'title', 'description', 'due_date', 'start_time', 'end_time',
            'status', 'priority', 'type', 'company', 'color',
            'recurrence', 'recurrence_end_date', 'reminders', 'assigned_to',
        ]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Omitted choice fields fall back to the model defaults
        for name in ('status', 'priority', 'type', 'recurrence'):
            self.fields[name].required = False

    def clean_title(self):
        title = (self.cleaned_data.get('title') or '').strip()
        if not title:
            raise ValidationError("Task title is required.")
        return title

    def clean_reminders(self):
        return _clean_reminder_labels(self.cleaned_data.get('reminders'))

    def clean(self):
        cleaned_data = super().clean()
        task_type = cleaned_data.get('type') or Task.TaskType.PERSONAL
        assignees = cleaned_data.get('assigned_to')
        if assignees and task_type not in Task.COLLABORATIVE_TYPES:
            self.add_error(
                'assigned_to',
                "Only delegated tasks and meetings can have assignees."
            )
        return cleaned_data

    def task_fields(self):
        """
        Cleaned values for services.create_task.

        Omitted or empty fields that have a model default are left out so
        the default applies.
        """
        values = {}
        for name, value in self.cleaned_data.items():
            if name == 'assigned_to':
                continue
            model_field = Task._meta.get_field(name)
            if model_field.has_default() and (name not in self.data or value in (None, '')):
                continue
            values[name] = value
        return values


class TaskPatchForm(forms.Form):
    """
    Validate a partial update.

    Only keys present in the payload end up in the patch. Status is kept
    as a free string: the lifecycle rules decide which values each user
    may request.
    """

    title = forms.CharField(max_length=255, required=False, validators=[single_line_validator])
    description = forms.CharField(required=False)
    due_date = forms.DateTimeField(required=False)
    start_time = forms.CharField(max_length=5, required=False, validators=[time_of_day_validator])
    end_time = forms.CharField(max_length=5, required=False, validators=[time_of_day_validator])
    priority = forms.ChoiceField(choices=Task.Priority.choices, required=False)
    type = forms.ChoiceField(choices=Task.TaskType.choices, required=False)
    company = forms.CharField(max_length=255, required=False)
    color = forms.ChoiceField(choices=Task.Color.choices, required=False)
    recurrence = forms.ChoiceField(choices=Task.Recurrence.choices, required=False)
    recurrence_end_date = forms.DateTimeField(required=False)
    reminders = forms.JSONField(required=False)
    assigned_to = forms.ModelMultipleChoiceField(
        queryset=User.objects.filter(is_active=True),
        required=False,
    )
    status = forms.CharField(max_length=20, required=False)
    progress_note = forms.CharField(required=False)

    def clean_title(self):
        title = self.cleaned_data.get('title')
        if 'title' in self.data and not (title or '').strip():
            raise ValidationError("Task title cannot be empty.")
        return (title or '').strip()

    def clean_reminders(self):
        return _clean_reminder_labels(self.cleaned_data.get('reminders'))

    def clean(self):
        cleaned_data = super().clean()
        for name in _REQUIRED_CHOICES:
            if name in self.data and not cleaned_data.get(name) and name not in self.errors:
                self.add_error(name, "This field cannot be blank.")
        return cleaned_data

    def to_patch(self):
        """Build a TaskPatch from the keys present in the payload."""
        values = {}
        for name in (*OWNER_MUTABLE_FIELDS, 'status', 'progress_note'):
            if name not in self.data:
                continue
            value = self.cleaned_data.get(name)
            if name == 'assigned_to':
                value = [user.pk for user in value] if value else []
            elif name == 'status':
                value = value or None
            values[name] = value
        return TaskPatch.from_dict(values)
