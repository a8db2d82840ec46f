from django.db import models

from content_pipeline.base_models import BaseModel
from content_pipeline.choices import TERMINAL_RUN_STATUSES, RoundId, RunStatus


class PipelineRun(BaseModel):
    run_id = models.CharField(max_length=64, unique=True)
    topic = models.JSONField(default=list, blank=True)
    request = models.JSONField(default=dict, blank=True)

    status = models.CharField(
        max_length=20, choices=RunStatus.choices, default=RunStatus.PENDING, db_index=True
    )
    current_round = models.CharField(max_length=2, choices=RoundId.choices, blank=True)

    # round id -> validated round output, in completion order
    context = models.JSONField(default=dict, blank=True)

    started_at = models.DateTimeField(null=True, blank=True)
    finished_at = models.DateTimeField(null=True, blank=True)
    error = models.TextField(blank=True)
    abort_reason = models.TextField(blank=True)
    cancel_requested = models.BooleanField(default=False)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.run_id} ({self.status})"

    @property
    def is_terminal(self):
        return self.status in TERMINAL_RUN_STATUSES


class RoundArtifact(BaseModel):
    pipeline_id = models.CharField(max_length=64, db_index=True)
    round = models.CharField(max_length=2, choices=RoundId.choices)
    payload = models.JSONField(default=dict)
    storage_path = models.CharField(max_length=255, blank=True)
    persisted_at = models.DateTimeField()

    class Meta:
        ordering = ["pipeline_id", "round"]
        constraints = [
            models.UniqueConstraint(
                fields=["pipeline_id", "round"], name="unique_round_artifact_per_pipeline"
            )
        ]

    def __str__(self):
        return f"{self.pipeline_id}: {self.round}"


class UsedTopic(BaseModel):
    topic = models.CharField(max_length=250, unique=True)
    pipeline_id = models.CharField(max_length=64, blank=True)
    used_at = models.DateTimeField()

    def __str__(self):
        return self.topic
