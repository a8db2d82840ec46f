from content_pipeline.choices import PublishStatus
from content_pipeline.clients.wordpress import WordPressClient
from content_pipeline.exceptions import PipelineConfigurationError, RoundExecutionError
from content_pipeline.schemas import PublishInput
from content_pipeline.utils import markdown_to_html
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)


def resolve_post_status(round_input: PublishInput) -> str:
    if round_input.status_override:
        return round_input.status_override
    if round_input.publish_at:
        return PublishStatus.FUTURE.value
    return PublishStatus.PENDING.value


class PublishExecutor:
    """r8: create the WordPress post. Any WordPress failure fails the round."""

    def __init__(self, wordpress_client=None):
        self.wordpress_client = wordpress_client or WordPressClient()

    def build_payload(self, round_input: PublishInput, category_id, tag_ids) -> dict:
        meta = round_input.meta
        payload = {
            "title": meta.title,
            "slug": meta.slug,
            "content": markdown_to_html(round_input.polished.polished_blog),
            "excerpt": meta.seo_description,
            "status": resolve_post_status(round_input),
            "categories": [category_id] if category_id else [],
            "tags": tag_ids,
            "meta": {
                "seo_keywords": ", ".join(meta.seo_keywords),
                "reading_level": meta.reading_level,
                "featured_image_prompt": meta.featured_image.ai_prompt
                or meta.featured_image.description,
            },
        }
        if round_input.publish_at:
            payload["date"] = round_input.publish_at.isoformat()
        return payload

    def __call__(self, round_input: PublishInput):
        meta = round_input.meta
        try:
            category_id = (
                self.wordpress_client.ensure_category(meta.primary_category)
                if meta.primary_category
                else None
            )
            tag_ids = [self.wordpress_client.ensure_tag(tag) for tag in meta.tags if tag]
            post = self.wordpress_client.create_post(
                self.build_payload(round_input, category_id, tag_ids)
            )
        except PipelineConfigurationError:
            raise
        except Exception as e:
            logger.error(
                "[PublishExecutor] WordPress publish failed",
                pipeline_id=round_input.pipeline_id,
                slug=meta.slug,
                error=str(e),
                exc_info=True,
            )
            raise RoundExecutionError(f"WordPress publish failed: {e}", round="r8") from e

        logger.info(
            "[PublishExecutor] Post created",
            pipeline_id=round_input.pipeline_id,
            post_id=post.get("id"),
            status=post.get("status"),
            link=post.get("link"),
        )

        rendered_title = post.get("title")
        if isinstance(rendered_title, dict):
            rendered_title = rendered_title.get("rendered")

        return {
            "id": post.get("id"),
            "link": post.get("link"),
            "status": post.get("status"),
            "date": post.get("date"),
            "slug": post.get("slug"),
            "title": rendered_title,
            "message": "Post created",
        }
