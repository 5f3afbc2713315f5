"""
Management command to run the Echo lifecycle sweep.

Usage:
    python manage.py run_lifecycle_sweep                 # One sweep, then exit
    python manage.py run_lifecycle_sweep --loop          # Sweep every ECHO SWEEP_INTERVAL_SECONDS
    python manage.py run_lifecycle_sweep --loop --interval=60
    python manage.py run_lifecycle_sweep --dry-run       # Report what would change

The sweep only saves work for readers: every read path refreshes its
chat lazily, so a missed run never changes behaviour.
"""

import time

from django.core.management.base import BaseCommand, CommandError

from echo.conf import echo_setting
from echo.lifecycle import LifecycleScheduler
from echo.retry import call_with_store_retries


class Command(BaseCommand):
    help = 'Flip completion eligibility and expire chats and invites that are due'

    def add_arguments(self, parser):
        parser.add_argument(
            '--loop',
            action='store_true',
            help='Keep sweeping until interrupted',
        )
        parser.add_argument(
            '--interval',
            type=int,
            help='Seconds between sweeps when looping',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Report what would change without saving',
        )

    def handle(self, *args, **options):
        interval = options['interval']
        if interval is None:
            interval = echo_setting('SWEEP_INTERVAL_SECONDS')
        if interval <= 0:
            raise CommandError('--interval must be a positive number of seconds')

        scheduler = LifecycleScheduler()

        if options['dry_run']:
            self.stdout.write(self.style.WARNING('DRY RUN - no changes will be saved'))
            self.report(scheduler.pending())
            return

        if not options['loop']:
            self.report(call_with_store_retries(scheduler.sweep))
            return

        self.stdout.write(f"Sweeping every {interval}s (Ctrl+C to stop)")
        try:
            while True:
                self.report(call_with_store_retries(scheduler.sweep))
                time.sleep(interval)
        except KeyboardInterrupt:
            self.stdout.write('Stopped.')

    def report(self, result):
        self.stdout.write(
            self.style.SUCCESS(
                f'{result.eligible} chats now eligible, '
                f'{result.expired_chats} chats expired, '
                f'{result.expired_invites} invites expired'
            )
        )
