from django.utils import timezone

from content_pipeline.models import UsedTopic
from content_pipeline.utils import normalize_topic
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)


def load_used_topics() -> set[str]:
    return set(UsedTopic.objects.values_list("topic", flat=True))


def mark_topic_used(topic: str, pipeline_id: str) -> UsedTopic:
    """Idempotent: re-marking a topic only refreshes which pipeline used it."""
    used_topic, created = UsedTopic.objects.update_or_create(
        topic=normalize_topic(topic),
        defaults={"pipeline_id": pipeline_id, "used_at": timezone.now()},
    )
    logger.info(
        "[UsedTopics] Topic marked as used",
        topic=used_topic.topic,
        pipeline_id=pipeline_id,
        created=created,
    )
    return used_topic
