from django_q.tasks import async_task

from content_pipeline.config import PipelineSettings
from content_pipeline.orchestrator import Orchestrator
from content_pipeline.registry import DjangoRunRegistry
from content_pipeline.rounds import build_default_rounds
from content_pipeline.runner import RoundRunner
from content_pipeline.schemas import ArticleRequest
from content_pipeline.stores import DjangoArtifactStore
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)


def build_orchestrator(rounds=None, store=None, registry=None, pipeline_settings=None, **kwargs):
    return Orchestrator(
        rounds=rounds if rounds is not None else build_default_rounds(),
        runner=RoundRunner(store if store is not None else DjangoArtifactStore()),
        registry=registry if registry is not None else DjangoRunRegistry(),
        pipeline_settings=pipeline_settings or PipelineSettings.from_settings(),
        **kwargs,
    )


def _build_request(topic=None, tone=None, publish_status="draft", **options):
    return ArticleRequest(
        topic=topic if topic is not None else [],
        tone=tone,
        publish_status=publish_status,
        **options,
    )


def generate_article(topic=None, tone=None, publish_status="draft", orchestrator=None, **options):
    """
    Run the whole pipeline in-process and return its PipelineResult.

    `options` may carry publish_at, seed_prompt, geo and timeframe.
    """
    request = _build_request(topic, tone, publish_status, **options)
    orchestrator = orchestrator or build_orchestrator()
    result = orchestrator.run(request)
    logger.info(
        "[Services] Article pipeline finished",
        pipeline_id=result.run_id,
        status=result.status,
        failed_round=result.failed_round,
    )
    return result


def start_article_pipeline(
    topic=None, tone=None, publish_status="draft", orchestrator=None, **options
) -> str:
    """Create the run now and let a django-q worker execute it."""
    request = _build_request(topic, tone, publish_status, **options)
    orchestrator = orchestrator or build_orchestrator()
    record = orchestrator.start_run(request)

    async_task(
        "content_pipeline.tasks.run_article_pipeline_task",
        record.run_id,
        group="Run Article Pipeline",
    )
    logger.info("[Services] Article pipeline queued", pipeline_id=record.run_id)
    return record.run_id


def cancel_article_pipeline(run_id: str, orchestrator=None) -> bool:
    orchestrator = orchestrator or build_orchestrator()
    return orchestrator.cancel(run_id)


def get_pipeline_status(run_id: str, registry=None):
    registry = registry or DjangoRunRegistry()
    return registry.get(run_id)
