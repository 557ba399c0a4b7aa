"""
Views for tasks app.

JSON endpoints over the task services:
- task_collection: list (GET) and create (POST)
- tasks_by_date: tasks due on one calendar day
- task_detail: update (PUT/PATCH) and delete (DELETE)

Error mapping:
- not logged in      -> 401
- PermissionDenied   -> 403
- Task.DoesNotExist  -> 404
- ValidationError    -> 400
"""

import json
import logging
from datetime import date
from functools import wraps

from django.core.exceptions import PermissionDenied, ValidationError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods

from .filters import TaskFilter
from .forms import TaskForm, TaskPatchForm
from .models import Task
from .services import (
    create_task, update_task, delete_task,
    get_tasks_for_user, get_tasks_for_date,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Helpers
# =============================================================================

def api_login_required(view_func):
    """Like login_required, but answers 401 JSON instead of redirecting."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return JsonResponse({'error': 'Authentication required'}, status=401)
        return view_func(request, *args, **kwargs)
    return wrapper


def _error(message, status):
    return JsonResponse({'error': message}, status=status)


def _validation_error(exc):
    if hasattr(exc, 'message_dict'):
        return JsonResponse({'error': 'Invalid data', 'fields': exc.message_dict}, status=400)
    return _error(' '.join(exc.messages), 400)


def _form_error(form):
    return JsonResponse({'error': 'Invalid data', 'fields': form.errors.get_json_data()}, status=400)


def _read_json(request):
    """
    Parse the request body as a JSON object.

    Raises:
        ValidationError: If the body is not a JSON object
    """
    try:
        payload = json.loads(request.body or b'{}')
    except (ValueError, UnicodeDecodeError):
        raise ValidationError("Request body must be valid JSON.")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _isoformat(value):
    return value.isoformat() if value else None


def serialize_task(task):
    """JSON representation of a task with its notes and reminder latches."""
    return {
        'id': task.pk,
        'title': task.title,
        'description': task.description,
        'status': task.status,
        'type': task.type,
        'priority': task.priority,
        'color': task.color,
        'company': task.company,
        'created_by': {'id': task.created_by_id, 'email': task.created_by.email},
        'assigned_to': [
            {'id': user.pk, 'email': user.email} for user in task.assigned_to.all()
        ],
        'due_date': _isoformat(task.due_date),
        'start_time': task.start_time or None,
        'end_time': task.end_time or None,
        'recurrence': task.recurrence,
        'recurrence_end_date': _isoformat(task.recurrence_end_date),
        'reminders': task.reminders,
        'reminders_sent': task.reminders_sent,
        'progress_notes': [
            {
                'author': note.author_id,
                'note': note.note,
                'timestamp': _isoformat(note.timestamp),
            }
            for note in task.progress_notes.all()
        ],
        'created_at': _isoformat(task.created_at),
        'updated_at': _isoformat(task.updated_at),
    }


# =============================================================================
# Collection Views
# =============================================================================

@csrf_exempt
@api_login_required
@require_http_methods(['GET', 'POST'])
def task_collection(request):
    if request.method == 'POST':
        return _create(request)
    return _list(request)


def _list(request):
    """
    Tasks the user created and/or is assigned to.

    Query params: view=outgoing|incoming, type, status (comma separated),
    priority, due_after, due_before.
    """
    queryset = get_tasks_for_user(request.user, view=request.GET.get('view'))
    task_filter = TaskFilter(request.GET, queryset=queryset)
    if not task_filter.is_valid():
        return JsonResponse(
            {'error': 'Invalid filter', 'fields': task_filter.errors.get_json_data()},
            status=400,
        )
    tasks = task_filter.qs.order_by('due_date', '-created_at')
    return JsonResponse({'tasks': [serialize_task(task) for task in tasks]})


def _create(request):
    try:
        payload = _read_json(request)
    except ValidationError as exc:
        return _validation_error(exc)

    form = TaskForm(data=payload)
    if not form.is_valid():
        return _form_error(form)

    try:
        task = create_task(
            request.user,
            assigned_to=form.cleaned_data.get('assigned_to') or (),
            **form.task_fields()
        )
    except ValidationError as exc:
        return _validation_error(exc)

    return JsonResponse(serialize_task(task), status=201)


@api_login_required
@require_GET
def tasks_by_date(request):
    """Tasks involving the user due on ?date=YYYY-MM-DD."""
    raw = request.GET.get('date')
    if not raw:
        return _error('Date is required', 400)
    try:
        day = date.fromisoformat(raw)
    except ValueError:
        return _error('Date must be in YYYY-MM-DD format', 400)

    tasks = get_tasks_for_date(request.user, day).order_by('due_date', 'start_time')
    return JsonResponse({'tasks': [serialize_task(task) for task in tasks]})


# =============================================================================
# Detail Views
# =============================================================================

@csrf_exempt
@api_login_required
@require_http_methods(['PUT', 'PATCH', 'DELETE'])
def task_detail(request, pk):
    try:
        if request.method == 'DELETE':
            delete_task(pk, request.user)
            return JsonResponse({'message': 'Task deleted'})
        return _update(request, pk)
    except Task.DoesNotExist:
        return _error('Task not found', 404)
    except PermissionDenied as exc:
        return _error(str(exc) or 'Permission denied', 403)
    except ValidationError as exc:
        return _validation_error(exc)


def _update(request, pk):
    payload = _read_json(request)

    form = TaskPatchForm(data=payload)
    if not form.is_valid():
        return _form_error(form)

    result = update_task(pk, request.user, form.to_patch())
    logger.debug(
        'Task %s updated by user %s: fields=%s notify=%s',
        pk, request.user.pk, result.changed_fields, result.notify
    )

    task = (
        Task.objects
        .select_related('created_by')
        .prefetch_related('assigned_to', 'progress_notes', 'sent_reminders')
        .get(pk=pk)
    )
    return JsonResponse(serialize_task(task))
