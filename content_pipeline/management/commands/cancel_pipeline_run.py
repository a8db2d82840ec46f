from django.core.management.base import BaseCommand, CommandError

from content_pipeline.exceptions import RunNotFoundError
from content_pipeline.services import cancel_article_pipeline


class Command(BaseCommand):
    help = "Request cancellation of a pipeline run; it aborts at the next round boundary"

    def add_arguments(self, parser):
        parser.add_argument("run_id", type=str)

    def handle(self, *args, **options):
        run_id = options["run_id"]
        try:
            cancelled = cancel_article_pipeline(run_id)
        except RunNotFoundError as e:
            raise CommandError(str(e)) from e

        if cancelled:
            self.stdout.write(self.style.SUCCESS(f"Cancellation requested for {run_id}"))
        else:
            self.stdout.write(self.style.WARNING(f"Pipeline run {run_id} has already finished"))
