"""
Service layer for notifications app.

Email sending functions for task lifecycle events and reminders.

send_notification_email is the single transport entry point; it raises
TransportError on delivery failure. The notify_* helpers build the
subject/body for each event and never let a TransportError escape.
"""

import logging
import smtplib

from django.conf import settings
from django.core.mail import BadHeaderError, send_mail

from apps.accounts.services import get_recipient_emails

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """Notification could not be delivered."""


def send_notification_email(recipients, subject, body):
    """
    Send one plain-text email addressed to every recipient.

    Args:
        recipients: List of email addresses
        subject: Email subject
        body: Plain text body

    Raises:
        TransportError: If the message is malformed or the mail backend fails to deliver
    """
    recipients = [email for email in recipients if email]
    if not recipients:
        return

    try:
        send_mail(
            subject=subject,
            message=body,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=recipients,
            fail_silently=False,
        )
    except (BadHeaderError, smtplib.SMTPException, OSError) as exc:
        raise TransportError(f'Failed to send "{subject}" to {len(recipients)} recipient(s): {exc}') from exc

    logger.debug('Sent "%s" to %s', subject, ', '.join(recipients))


def _deliver(recipients, subject, body, sender=None):
    """Send and log a TransportError instead of raising it."""
    sender = sender or send_notification_email
    try:
        sender(recipients, subject, body)
        return True
    except TransportError:
        logger.exception('Notification "%s" could not be delivered', subject)
        return False


# =============================================================================
# Message builders
# =============================================================================

def build_task_assigned_message(task):
    """
    Subject/body for a newly created delegated task or meeting.

    Returns:
        (subject, body) tuple, or None for task types that do not notify
    """
    if task.type == 'delegated':
        subject = f'New Delegated Task: {task.title}'
        body = (
            f'You have been assigned a new task: {task.title}\n'
            f'Description: {task.description}\n'
            f'Due: {task.due_date or "No due date"}\n'
            f'Company: {task.company}'
        )
        return subject, body

    if task.type == 'meeting':
        subject = f'Meeting Scheduled: {task.title}'
        body = (
            f'You have been invited to a meeting: {task.title}\n'
            f'Description: {task.description}\n'
            f'Date: {task.due_date or "No date"}'
        )
        if task.start_time or task.end_time:
            body += f'\nTime: {task.start_time} - {task.end_time}'
        body += f'\nOrganizer: {task.created_by.email}'
        return subject, body

    return None


def build_task_updated_message(task, changed_fields):
    subject = f'Task Updated: {task.title}'
    body = (
        f'The task "{task.title}" has been updated.\n'
        f'Updated fields: {", ".join(changed_fields)}\n'
        f'Current status: {task.status}\n'
        f'Description: {task.description or ""}'
    )
    return subject, body


def build_task_reminder_message(task, event_instant):
    subject = f'Task Reminder: {task.title}'
    body = (
        f'Reminder: Task "{task.title}" is due at '
        f'{event_instant.strftime("%d %b %Y, %H:%M %Z")}\n'
        f'Description: {task.description or ""}'
    )
    return subject, body


# =============================================================================
# Lifecycle notifications
# =============================================================================

def notify_task_assigned(task, sender=None):
    """
    Send notification to all assignees when a delegated task or meeting
    is created.

    Returns:
        bool: True if an email was sent
    """
    message = build_task_assigned_message(task)
    if message is None:
        return False

    recipients = get_recipient_emails(task.get_assignee_ids())
    if not recipients:
        return False

    subject, body = message
    return _deliver(recipients, subject, body, sender=sender)


def notify_task_updated(task, changed_fields, sender=None):
    """
    Send one update notification to every assignee.

    Returns:
        bool: True if an email was sent
    """
    recipients = get_recipient_emails(task.get_assignee_ids())
    if not recipients:
        return False

    subject, body = build_task_updated_message(task, changed_fields)
    return _deliver(recipients, subject, body, sender=sender)
