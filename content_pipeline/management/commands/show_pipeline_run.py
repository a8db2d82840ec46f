import json

from django.core.management.base import BaseCommand, CommandError

from content_pipeline.registry import DjangoRunRegistry
from content_pipeline.stores import DjangoArtifactStore


class Command(BaseCommand):
    help = "Show a pipeline run and its persisted round artifacts"

    def add_arguments(self, parser):
        parser.add_argument("run_id", type=str)
        parser.add_argument(
            "--round", type=str, help="Print the full payload of one round, e.g. r3"
        )

    def handle(self, *args, **options):
        run_id = options["run_id"]
        record = DjangoRunRegistry().get(run_id)
        store = DjangoArtifactStore()

        if record is None:
            raise CommandError(f"Pipeline run not found: {run_id}")

        round_id = options.get("round")
        if round_id:
            artifact = store.get(run_id, round_id)
            if artifact is None:
                raise CommandError(f"No artifact for round {round_id} of {run_id}")
            self.stdout.write(json.dumps(artifact.payload, indent=2, default=str))
            return

        self.stdout.write(f"Run:            {record.run_id}")
        self.stdout.write(f"Status:         {record.status}")
        self.stdout.write(f"Current round:  {record.current_round or '-'}")
        self.stdout.write(f"Started at:     {record.started_at or '-'}")
        self.stdout.write(f"Finished at:    {record.finished_at or '-'}")
        if record.error:
            self.stdout.write(self.style.ERROR(f"Error:          {record.error}"))
        if record.abort_reason:
            self.stdout.write(self.style.WARNING(f"Abort reason:   {record.abort_reason}"))

        artifacts = store.list_for_pipeline(run_id)
        if not artifacts:
            self.stdout.write(self.style.WARNING("No artifacts persisted"))
            return

        self.stdout.write(f"Artifacts ({len(artifacts)}):")
        for artifact in artifacts:
            self.stdout.write(
                f"  - {artifact.round}: {artifact.storage_path} (persisted {artifact.persisted_at})"
            )
