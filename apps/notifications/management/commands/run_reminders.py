"""
Management command to run the reminder scheduler in the foreground.

Alternative to the django-q2 schedule for single-process deployments.

Usage:
    python manage.py run_reminders          # tick every 60 seconds until stopped
    python manage.py run_reminders --once   # run a single tick and exit
"""
import time

from django.core.management.base import BaseCommand

from apps.notifications.reminders import TICK_SECONDS, default_scheduler


class Command(BaseCommand):
    help = 'Run the task reminder scheduler'

    def add_arguments(self, parser):
        parser.add_argument(
            '--once',
            action='store_true',
            help='Run a single tick and exit',
        )

    def handle(self, *args, **options):
        if options['once']:
            self._tick()
            return

        self.stdout.write(f'Running reminder scheduler every {TICK_SECONDS}s (Ctrl+C to stop)')
        try:
            while True:
                started = time.monotonic()
                self._tick()
                elapsed = time.monotonic() - started
                time.sleep(max(0.0, TICK_SECONDS - elapsed))
        except KeyboardInterrupt:
            self.stdout.write('\nReminder scheduler stopped.')

    def _tick(self):
        report = default_scheduler.tick()
        self.stdout.write(
            f'sent={report.sent} failed={report.failed} '
            f'skipped_no_recipients={report.skipped_no_recipients}'
        )
