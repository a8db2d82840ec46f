from pydantic_ai import Agent, RunContext

from content_pipeline.agents.schemas import PolishContext, PolishedArticle
from content_pipeline.agents.system_prompts import (
    add_article_details,
    add_tone_guidance,
    filler_content,
    valid_markdown_format,
)
from content_pipeline.choices import get_default_ai_model

POLISH_SYSTEM_PROMPT = """
You are a content editor. Humanize and polish the draft you are given while
keeping its structure, intent and facts.

Rules:
- Keep every '##' section and its order.
- Vary sentence length, remove repetition and robotic phrasing.
- Work the SEO keywords in naturally. No keyword stuffing.
- Where an image prompt fits a section, place it there and give it alt text;
  list every image you placed in `used_images`.
- Estimate the Flesch-Kincaid grade of the result.
"""


def create_polish_agent(model=None):
    agent = Agent(
        model or get_default_ai_model(),
        output_type=PolishedArticle,
        deps_type=PolishContext,
        system_prompt=POLISH_SYSTEM_PROMPT,
        retries=2,
        model_settings={"max_tokens": 16000, "temperature": 0.6},
    )

    @agent.system_prompt
    def add_seo_and_images(ctx: RunContext[PolishContext]) -> str:
        images = [ctx.deps.featured_image, *ctx.deps.additional_images]
        images = [image for image in images if image]
        images_text = "\n".join(
            f"- ({image.type}) {image.description}"
            + (f" [context: {image.context}]" if image.context else "")
            for image in images
        )
        return f"""
            SEO keywords: {", ".join(ctx.deps.seo_keywords) or "(none)"}
            Image prompts:
            {images_text or "- (none)"}
        """

    agent.system_prompt(add_article_details)
    agent.system_prompt(add_tone_guidance)
    agent.system_prompt(valid_markdown_format)
    agent.system_prompt(filler_content)

    return agent
