import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="PipelineRun",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("run_id", models.CharField(max_length=64, unique=True)),
                ("topic", models.JSONField(blank=True, default=list)),
                ("request", models.JSONField(blank=True, default=dict)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("running", "Running"),
                            ("succeeded", "Succeeded"),
                            ("failed", "Failed"),
                            ("aborted", "Aborted"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "current_round",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("r0", "Trends"),
                            ("r1", "Ideation"),
                            ("r2", "Angle & Outline"),
                            ("r3", "Section Drafting"),
                            ("r4", "Metadata"),
                            ("r5", "Polish"),
                            ("r6", "Coherence"),
                            ("r7", "Evaluation"),
                            ("r8", "Publish"),
                        ],
                        max_length=2,
                    ),
                ),
                ("context", models.JSONField(blank=True, default=dict)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("finished_at", models.DateTimeField(blank=True, null=True)),
                ("error", models.TextField(blank=True)),
                ("abort_reason", models.TextField(blank=True)),
                ("cancel_requested", models.BooleanField(default=False)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="RoundArtifact",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("pipeline_id", models.CharField(db_index=True, max_length=64)),
                (
                    "round",
                    models.CharField(
                        choices=[
                            ("r0", "Trends"),
                            ("r1", "Ideation"),
                            ("r2", "Angle & Outline"),
                            ("r3", "Section Drafting"),
                            ("r4", "Metadata"),
                            ("r5", "Polish"),
                            ("r6", "Coherence"),
                            ("r7", "Evaluation"),
                            ("r8", "Publish"),
                        ],
                        max_length=2,
                    ),
                ),
                ("payload", models.JSONField(default=dict)),
                ("storage_path", models.CharField(blank=True, max_length=255)),
                ("persisted_at", models.DateTimeField()),
            ],
            options={
                "ordering": ["pipeline_id", "round"],
            },
        ),
        migrations.AddConstraint(
            model_name="roundartifact",
            constraint=models.UniqueConstraint(
                fields=("pipeline_id", "round"), name="unique_round_artifact_per_pipeline"
            ),
        ),
        migrations.CreateModel(
            name="UsedTopic",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("topic", models.CharField(max_length=250, unique=True)),
                ("pipeline_id", models.CharField(blank=True, max_length=64)),
                ("used_at", models.DateTimeField()),
            ],
        ),
    ]
