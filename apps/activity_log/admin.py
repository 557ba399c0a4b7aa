"""
Admin configuration for activity_log app.

The audit trail is read-only: entries are written by the task services
and the reminder scheduler only.
"""

from django.contrib import admin
from .models import TaskActivity


class SystemActionFilter(admin.SimpleListFilter):
    """Split entries by who caused them."""
    title = 'actor'
    parameter_name = 'actor'

    def lookups(self, request, model_admin):
        return (
            ('user', 'User actions'),
            ('system', 'System actions'),
        )

    def queryset(self, request, queryset):
        if self.value() == 'user':
            return queryset.filter(user__isnull=False)
        if self.value() == 'system':
            return queryset.filter(user__isnull=True)
        return queryset


@admin.register(TaskActivity)
class TaskActivityAdmin(admin.ModelAdmin):

    list_display = ('created_at', 'task', 'action_type', 'actor', 'change_summary')
    list_filter = ('action_type', SystemActionFilter, 'created_at')
    list_select_related = ('task', 'user')
    search_fields = ('task__title', 'description', 'user__email')
    ordering = ('-created_at',)
    date_hierarchy = 'created_at'

    readonly_fields = (
        'task', 'user', 'action_type', 'description',
        'field_name', 'old_value', 'new_value', 'created_at'
    )

    def actor(self, obj):
        return obj.user.email if obj.user_id else 'system'
    actor.admin_order_field = 'user__email'

    def change_summary(self, obj):
        """old -> new for field changes, otherwise the description."""
        if obj.field_name:
            return f'{obj.field_name}: {obj.old_value} -> {obj.new_value}'
        if len(obj.description) > 80:
            return obj.description[:80] + '...'
        return obj.description
    change_summary.short_description = 'Change'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
