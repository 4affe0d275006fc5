from django.core.management.base import BaseCommand
from django.utils import timezone

from donors.models import Reminder
from notifications.email import send_notification


class Command(BaseCommand):
    help = 'Send donor reminders that are due'

    def add_arguments(self, parser):
        parser.add_argument('--dry-run', action='store_true', help='List due reminders without sending')

    def handle(self, *args, **options):
        now = timezone.now()
        due = Reminder.objects.filter(status='pending', scheduled_for__lte=now).select_related('contact__donor')

        sent = skipped = failed = 0
        for reminder in due:
            contact = reminder.contact
            if contact.opt_out:
                reminder.status = 'cancelled'
                reminder.save(update_fields=['status'])
                skipped += 1
                continue
            if not contact.can_be_contacted(now):
                skipped += 1
                continue
            if options['dry_run']:
                self.stdout.write(f"Would send reminder {reminder.id} to {contact.donor.email}")
                continue

            delivered = send_notification('communication', contact.donor.email, {
                'name': contact.donor.full_name,
                'subject': f"{reminder.get_type_display()} reminder",
                'content': reminder.message,
            })
            if delivered:
                reminder.status = 'sent'
                reminder.sent_at = now
                reminder.save(update_fields=['status', 'sent_at'])
                sent += 1
            else:
                failed += 1

        self.stdout.write(
            self.style.SUCCESS(f"Reminders sent: {sent}, skipped: {skipped}, failed: {failed}")
        )
