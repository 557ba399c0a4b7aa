"""
Task filters using django-filter.

Provides filtering for the task list endpoint:
- Type filter
- Status filter (single value or comma-separated list)
"""

import django_filters

from .models import Task


class CharInFilter(django_filters.BaseInFilter, django_filters.CharFilter):
    """Comma-separated list of values."""


class TaskFilter(django_filters.FilterSet):
    """
    Task list filter.

    Usage in views:
        filterset = TaskFilter(request.GET, queryset=queryset)
        tasks = filterset.qs
    """

    type = django_filters.ChoiceFilter(choices=Task.TaskType.choices)

    status = CharInFilter(
        field_name='status',
        lookup_expr='in',
        label='Status (comma separated)'
    )

    due_after = django_filters.IsoDateTimeFilter(field_name='due_date', lookup_expr='gte')
    due_before = django_filters.IsoDateTimeFilter(field_name='due_date', lookup_expr='lte')

    class Meta:
        model = Task
        fields = ['type', 'status', 'priority']
