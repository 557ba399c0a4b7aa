"""
Admin configuration for tasks app.
"""

from django.contrib import admin
from django.utils.html import format_html
from .models import Task, ProgressNote, SentReminder


class ProgressNoteInline(admin.TabularInline):
    """Inline admin for progress notes on task detail."""
    model = ProgressNote
    extra = 0
    readonly_fields = ('author', 'note', 'timestamp')
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class SentReminderInline(admin.TabularInline):
    """Reminder latches are read-only; deleting one would resend the reminder."""
    model = SentReminder
    extra = 0
    readonly_fields = ('label', 'sent_at')
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    """Admin for Task model."""

    list_display = (
        'id', 'title', 'created_by', 'type', 'status_display',
        'priority', 'due_date', 'start_time', 'created_at'
    )
    list_filter = ('status', 'type', 'priority', 'created_at', 'due_date')
    search_fields = ('title', 'description', 'company', 'created_by__email')
    ordering = ('-created_at',)
    date_hierarchy = 'created_at'
    filter_horizontal = ('assigned_to',)

    readonly_fields = ('created_by', 'created_at', 'updated_at')

    fieldsets = (
        (None, {
            'fields': ('title', 'description', 'company')
        }),
        ('Assignment', {
            'fields': ('created_by', 'type', 'assigned_to')
        }),
        ('Status & Priority', {
            'fields': ('status', 'priority', 'color')
        }),
        ('Schedule', {
            'fields': (
                'due_date', 'start_time', 'end_time',
                'recurrence', 'recurrence_end_date', 'reminders'
            ),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    inlines = [ProgressNoteInline, SentReminderInline]

    def get_queryset(self, request):
        """Optimize with select_related."""
        return super().get_queryset(request).select_related('created_by')

    def status_display(self, obj):
        """Display status with color coding."""
        colors = {
            'pending': '#FFA500',       # Orange
            'accepted': '#8e44ad',      # Purple
            'in_progress': '#3498db',   # Blue
            'done': '#16a085',          # Teal
            'under_review': '#f1c40f',  # Yellow
            'completed': '#27ae60',     # Green
            'overdue': '#e74c3c',       # Red
        }
        color = colors.get(obj.status, '#000')
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            color, obj.get_status_display()
        )
    status_display.short_description = 'Status'
    status_display.admin_order_field = 'status'
