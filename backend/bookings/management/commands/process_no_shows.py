from django.core.management.base import BaseCommand

from services.booking_management import sweep_no_shows


class Command(BaseCommand):
    help = "Close accepted bookings whose driver has waited out the no-show grace period."

    def handle(self, *args, **options):
        closed = sweep_no_shows()
        self.stdout.write(self.style.SUCCESS(f"Closed {closed} booking(s) as no-show."))
