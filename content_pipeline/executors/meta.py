import re

from django.utils.text import slugify

from content_pipeline.agents.metadata_agent import create_metadata_agent
from content_pipeline.agents.schemas import ArticleDetails, MetadataContext
from content_pipeline.choices import ImagePromptType, ReadingLevel
from content_pipeline.clients.wordpress import WordPressClient
from content_pipeline.schemas import MetaInput
from content_pipeline.utils import run_agent_synchronously
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)

SEO_DESCRIPTION_LENGTH = 155
DRAFT_EXCERPT_LENGTH = 4000


def make_slug(title: str) -> str:
    slug = re.sub(r"[-_]+", "-", slugify(title)).strip("-")
    return slug[:200].rstrip("-") or "article"


def build_fallback_meta(round_input: MetaInput) -> dict:
    """Deterministic metadata used when the model cannot produce any."""
    draft_text = round_input.draft.full_draft.strip()
    topic = round_input.topic
    return {
        "title": round_input.title,
        "slug": make_slug(round_input.title),
        "seo_description": draft_text[:SEO_DESCRIPTION_LENGTH] + "...",
        "seo_keywords": [topic] if topic else [],
        "tags": [topic] if topic else [],
        "primary_category": topic or "General",
        "reading_level": ReadingLevel.INTERMEDIATE.value,
        "featured_image": {
            "type": ImagePromptType.AI_PROMPT.value,
            "description": f"Featured image for {round_input.title}",
            "ai_prompt": f"clean vector art, {topic}",
        },
        "additional_images": [],
    }


class MetaExecutor:
    """r4: SEO metadata, taxonomy and image prompts for the draft."""

    def __init__(self, model=None, wordpress_client=None):
        self.model = model
        self.wordpress_client = wordpress_client or WordPressClient()

    def _existing_terms(self, pipeline_id):
        if not self.wordpress_client.is_configured:
            return [], []
        try:
            tags = self.wordpress_client.list_term_names("tags")
            categories = [
                name
                for name in self.wordpress_client.list_term_names("categories")
                if name.lower() != "uncategorized"
            ]
            return tags, categories
        except Exception as e:
            logger.warning(
                "[MetaExecutor] Could not load existing WordPress terms",
                pipeline_id=pipeline_id,
                error=str(e),
            )
            return [], []

    def __call__(self, round_input: MetaInput):
        existing_tags, existing_categories = self._existing_terms(round_input.pipeline_id)

        agent = create_metadata_agent(self.model)
        try:
            result = run_agent_synchronously(
                agent,
                "Generate the publishing metadata for this article.",
                deps=MetadataContext(
                    article=ArticleDetails(
                        title=round_input.title,
                        seed=round_input.topic,
                        rationale=round_input.idea.rationale,
                        tone=round_input.tone,
                    ),
                    draft_excerpt=round_input.draft.full_draft[:DRAFT_EXCERPT_LENGTH],
                    existing_tags=existing_tags,
                    existing_categories=existing_categories,
                ),
                function_name="MetaExecutor",
                model_name="MetaOutput",
            )
        except Exception as e:
            logger.warning(
                "[MetaExecutor] Metadata generation failed, using fallback metadata",
                pipeline_id=round_input.pipeline_id,
                error=str(e),
            )
            return build_fallback_meta(round_input)

        meta = result.output.model_dump()
        # Models drift from kebab-case; the slug contract is strict.
        meta["slug"] = make_slug(meta.get("slug") or meta["title"])

        logger.info(
            "[MetaExecutor] Metadata generated",
            pipeline_id=round_input.pipeline_id,
            slug=meta["slug"],
            num_tags=len(meta["tags"]),
            primary_category=meta["primary_category"],
        )
        return meta
