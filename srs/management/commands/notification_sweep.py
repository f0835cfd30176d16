import time

from django.core.management.base import BaseCommand

from srs.services.notifications import build_scheduler


class Command(BaseCommand):
    help = "Evaluate due and near-due reviews and dispatch overdue/reminder notifications"

    def add_arguments(self, parser):
        parser.add_argument(
            "--loop", action="store_true", help="Keep sweeping every --interval seconds"
        )
        parser.add_argument(
            "--interval", type=int, default=None, help="Seconds between sweeps in --loop mode"
        )

    def handle(self, *args, **options):
        scheduler = build_scheduler()
        interval = options.get("interval") or scheduler.config.sweep_interval_seconds

        while True:
            report = scheduler.sweep()
            self.stdout.write(
                self.style.SUCCESS(
                    f"Sweep finished: {len(report.events)} notifications, "
                    f"{len(report.invalid)} invalid settings, {len(report.failed)} failed, "
                    f"{len(report.unfinished)} deferred to next sweep"
                )
            )
            if not options.get("loop"):
                break
            time.sleep(interval)
