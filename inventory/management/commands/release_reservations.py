from django.core.management.base import BaseCommand

from inventory.lifecycle import release_expired_reservations


class Command(BaseCommand):
    help = 'Return blood unit reservations whose hold period has lapsed to available stock'

    def handle(self, *args, **options):
        released = release_expired_reservations()
        self.stdout.write(self.style.SUCCESS(f"Released {released} expired reservations"))
