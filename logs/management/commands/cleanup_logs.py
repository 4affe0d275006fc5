from datetime import timedelta

from django.core.management.base import BaseCommand
from django.utils import timezone

from logs.models import LogEntry


class Command(BaseCommand):
    help = 'Delete log entries older than a number of days'

    def add_arguments(self, parser):
        parser.add_argument('--days', type=int, default=90, help='Retention window in days (default: 90)')
        parser.add_argument('--level', choices=[code for code, _ in LogEntry.LEVEL_CHOICES],
                            help='Restrict deletion to one level')
        parser.add_argument('--dry-run', action='store_true', help='Report the count without deleting')

    def handle(self, *args, **options):
        days = options['days']
        stale = LogEntry.objects.older_than(timezone.now() - timedelta(days=days), options['level'])

        if options['dry_run']:
            self.stdout.write(f"{stale.count()} log entries older than {days} days would be deleted")
            return

        deleted, _ = stale.delete()
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} log entries older than {days} days"))
