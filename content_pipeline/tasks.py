from content_pipeline.services import build_orchestrator
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)


def run_article_pipeline_task(run_id: str):
    """
    Execute a run created by start_article_pipeline.
    """
    result = build_orchestrator().execute(run_id)
    logger.info(
        "[Pipeline Tasks] Article pipeline task finished",
        pipeline_id=run_id,
        status=result.status,
        failed_round=result.failed_round,
        abort_reason=result.abort_reason,
    )
    if result.ok:
        return f"Pipeline {run_id} succeeded: {result.article.link if result.article else ''}"
    return f"Pipeline {run_id} ended as {result.status}: {result.error or result.abort_reason}"
