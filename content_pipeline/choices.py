from django.conf import settings
from django.db import models


class RoundId(models.TextChoices):
    TRENDS = "r0", "Trends"
    IDEATE = "r1", "Ideation"
    ANGLE = "r2", "Angle & Outline"
    DRAFT = "r3", "Section Drafting"
    META = "r4", "Metadata"
    POLISH = "r5", "Polish"
    COHERENCE = "r6", "Coherence"
    EVALUATION = "r7", "Evaluation"
    PUBLISH = "r8", "Publish"


# Sub-folder each round's artifact is filed under.
ROUND_STORAGE_FOLDERS = {
    RoundId.TRENDS: "trends",
    RoundId.IDEATE: "topic",
    RoundId.ANGLE: "outline",
    RoundId.DRAFT: "draft",
    RoundId.META: "meta",
    RoundId.POLISH: "polished",
    RoundId.COHERENCE: "social",
    RoundId.EVALUATION: "evaluation",
    RoundId.PUBLISH: "published",
}


class RunStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    RUNNING = "running", "Running"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"
    ABORTED = "aborted", "Aborted"


TERMINAL_RUN_STATUSES = frozenset({RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.ABORTED})


class OutcomeKind(models.TextChoices):
    SUCCESS = "success", "Success"
    EXECUTION_ERROR = "execution_error", "Execution Error"
    VALIDATION_ERROR = "validation_error", "Validation Error"
    STORE_ERROR = "store_error", "Store Error"


class PublishStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    PUBLISH = "publish", "Publish"
    PENDING = "pending", "Pending"
    PRIVATE = "private", "Private"
    FUTURE = "future", "Future"


class ReadingLevel(models.TextChoices):
    BEGINNER = "Beginner", "Beginner"
    INTERMEDIATE = "Intermediate", "Intermediate"
    EXPERT = "Expert", "Expert"


class ImagePromptType(models.TextChoices):
    AI_PROMPT = "ai_prompt", "AI Prompt"
    STOCK_REFERENCE = "stock_reference", "Stock Reference"
    MEME = "meme", "Meme"


def get_default_ai_model() -> str:
    return settings.DEFAULT_AI_MODEL
