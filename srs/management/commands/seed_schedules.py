import uuid
from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from srs.data.repos import count_schedules, get_or_create_schedule
from srs.domain.enums import DifficultyLevel


class Command(BaseCommand):
    help = "Create review schedules for a learner so the review flow can be exercised locally"

    def add_arguments(self, parser):
        parser.add_argument("--student", default=None, help="Learner UUID (random when omitted)")
        parser.add_argument("--count", type=int, default=5, help="Number of items to schedule")
        parser.add_argument(
            "--difficulty",
            default=DifficultyLevel.BEGINNER.value,
            choices=[level.value for level in DifficultyLevel],
        )
        parser.add_argument(
            "--spread-minutes",
            type=int,
            default=30,
            help="Gap between consecutive due times; the first item is due now",
        )

    def handle(self, *args, **options):
        try:
            student_id = uuid.UUID(options["student"]) if options.get("student") else uuid.uuid4()
        except ValueError:
            raise CommandError(f"Invalid learner id: {options['student']}")

        now = timezone.now()
        for i in range(options["count"]):
            row = get_or_create_schedule(
                student_id,
                uuid.uuid4(),
                difficulty_level=options["difficulty"],
                next_review_at=now + timedelta(minutes=i * options["spread_minutes"]),
            )
            self.stdout.write(f"{row.id} due {row.next_review_at.isoformat()}")

        self.stdout.write(
            self.style.SUCCESS(
                f"Learner {student_id} now has {count_schedules(student_id)} review schedules"
            )
        )
