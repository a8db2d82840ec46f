from django.contrib import admin

from content_pipeline.models import PipelineRun, RoundArtifact, UsedTopic


@admin.register(PipelineRun)
class PipelineRunAdmin(admin.ModelAdmin):
    list_display = (
        "run_id",
        "status",
        "current_round",
        "started_at",
        "finished_at",
        "cancel_requested",
    )
    list_filter = ("status", "current_round", "cancel_requested")
    search_fields = ("run_id", "error", "abort_reason")
    readonly_fields = ("uuid", "created_at", "updated_at")
    fieldsets = (
        (
            "Run",
            {
                "fields": (
                    "run_id",
                    "topic",
                    "request",
                    "status",
                    "current_round",
                    "cancel_requested",
                )
            },
        ),
        (
            "Outcome",
            {
                "fields": (
                    "started_at",
                    "finished_at",
                    "error",
                    "abort_reason",
                )
            },
        ),
        (
            "Context",
            {
                "fields": ("context",),
                "description": "Validated round outputs, keyed by round id, in completion order",
            },
        ),
        (
            "Status",
            {
                "fields": (
                    "uuid",
                    "created_at",
                    "updated_at",
                )
            },
        ),
    )


@admin.register(RoundArtifact)
class RoundArtifactAdmin(admin.ModelAdmin):
    list_display = ("pipeline_id", "round", "storage_path", "persisted_at")
    list_filter = ("round",)
    search_fields = ("pipeline_id", "storage_path")
    readonly_fields = ("uuid", "created_at", "updated_at", "persisted_at", "storage_path")


@admin.register(UsedTopic)
class UsedTopicAdmin(admin.ModelAdmin):
    list_display = ("topic", "pipeline_id", "used_at")
    search_fields = ("topic", "pipeline_id")
