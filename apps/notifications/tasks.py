"""
Scheduled tasks for notifications app.

Background jobs run by the django-q2 cluster:
- Task reminders (every minute)

Register the schedule with: python manage.py setup_schedules
"""

from .reminders import default_scheduler


def send_task_reminders():
    """
    Scheduled job to run every minute.

    Runs one reminder tick and returns a short summary that django-q
    stores as the task result.
    """
    report = default_scheduler.tick()
    return {
        'sent': report.sent,
        'failed': report.failed,
        'skipped_no_recipients': report.skipped_no_recipients,
    }
