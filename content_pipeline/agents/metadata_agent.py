from pydantic_ai import Agent, RunContext

from content_pipeline.agents.schemas import MetadataContext
from content_pipeline.agents.system_prompts import add_article_details
from content_pipeline.choices import get_default_ai_model
from content_pipeline.schemas import MetaOutput

METADATA_SYSTEM_PROMPT = """
You are an SEO specialist preparing an article for publication on WordPress.

Produce:
- A title (you may tighten the working title) and a kebab-case slug.
- An SEO description of at most 155 characters.
- 5-8 SEO keywords and 3-6 tags.
- One primary category.
- A reading level: Beginner, Intermediate or Expert.
- A featured image prompt, plus up to 3 additional image prompts tied to
  specific sections.

Prefer existing tags and categories when one fits; only invent new ones when
nothing existing is close.
"""


def create_metadata_agent(model=None):
    agent = Agent(
        model or get_default_ai_model(),
        output_type=MetaOutput,
        deps_type=MetadataContext,
        system_prompt=METADATA_SYSTEM_PROMPT,
        retries=2,
        model_settings={"temperature": 0.3},
    )

    @agent.system_prompt
    def add_existing_terms(ctx: RunContext[MetadataContext]) -> str:
        return f"""
            Existing tags: {", ".join(ctx.deps.existing_tags) or "(none)"}
            Existing categories: {", ".join(ctx.deps.existing_categories) or "(none)"}
        """

    @agent.system_prompt
    def add_draft_excerpt(ctx: RunContext[MetadataContext]) -> str:
        return f"Draft excerpt:\n{ctx.deps.draft_excerpt}"

    agent.system_prompt(add_article_details)

    return agent
