from django.core.management.base import BaseCommand, CommandError
from django.utils.dateparse import parse_datetime
from pydantic import ValidationError

from content_pipeline.services import generate_article, start_article_pipeline


class Command(BaseCommand):
    help = "Generate and publish one article through the round pipeline"

    def add_arguments(self, parser):
        parser.add_argument(
            "--topic",
            action="append",
            default=[],
            help="Seed topic; repeat for several. Defaults to DEFAULT_BLOG_TOPICS",
        )
        parser.add_argument("--tone", type=str, help="e.g. 'professional', 'casual'")
        parser.add_argument(
            "--publish-status",
            default="draft",
            choices=["draft", "publish", "pending", "private"],
        )
        parser.add_argument("--publish-at", type=str, help="ISO datetime to schedule the post")
        parser.add_argument("--seed-prompt", type=str)
        parser.add_argument("--geo", type=str)
        parser.add_argument("--timeframe", type=str)
        parser.add_argument(
            "--async",
            action="store_true",
            dest="run_async",
            help="Queue the run on the django-q cluster instead of running it here",
        )

    def handle(self, *args, **options):
        publish_at = None
        if options.get("publish_at"):
            publish_at = parse_datetime(options["publish_at"])
            if publish_at is None:
                raise CommandError(f"Invalid --publish-at value: {options['publish_at']}")

        request_options = {
            "topic": options["topic"],
            "tone": options.get("tone"),
            "publish_status": options["publish_status"],
            "publish_at": publish_at,
            "seed_prompt": options.get("seed_prompt"),
            "geo": options.get("geo"),
            "timeframe": options.get("timeframe"),
        }

        try:
            if options.get("run_async"):
                run_id = start_article_pipeline(**request_options)
                self.stdout.write(self.style.SUCCESS(f"Queued pipeline run {run_id}"))
                return

            result = generate_article(**request_options)
        except ValidationError as e:
            raise CommandError(f"Invalid pipeline request: {e}") from e

        if result.ok:
            link = result.article.link if result.article else "(no link)"
            self.stdout.write(self.style.SUCCESS(f"Pipeline {result.run_id} succeeded: {link}"))
        elif result.abort_reason:
            self.stdout.write(
                self.style.WARNING(f"Pipeline {result.run_id} aborted: {result.abort_reason}")
            )
        else:
            self.stdout.write(
                self.style.ERROR(
                    f"Pipeline {result.run_id} failed at {result.failed_round or '?'}: "
                    f"{result.error}"
                )
            )
