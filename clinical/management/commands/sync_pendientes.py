from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from clinical.services.pendientes import TaskSyncEngine


class Command(BaseCommand):
    help = "Sync every ward patient's pendientes into the task board (scheduled job)."

    def handle(self, *args, **options):
        started = timezone.now()
        if not TaskSyncEngine().sync_all():
            raise CommandError("Pendientes sync finished with failures; see the clinical log for the patients involved.")
        self.stdout.write(self.style.SUCCESS(f"Pendientes synced at {started}"))
