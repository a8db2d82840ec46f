from pydantic_ai import Agent, RunContext

from content_pipeline.agents.schemas import OutlineContext
from content_pipeline.agents.system_prompts import add_article_details, add_todays_date
from content_pipeline.choices import get_default_ai_model
from content_pipeline.schemas import AngleOutput

OUTLINE_SYSTEM_PROMPT = """
You are a precise blog strategy and content planning assistant.

Your task: pick the angle for the article and produce research notes plus a
sectioned outline.

Requirements:
- Research notes summarize sources you are confident about; each has a URL
  and a relevance between 0 and 1. Do not invent sources.
- The outline has an Introduction, 5-8 main sections and a Conclusion.
- Section ids are short and stable: s1, s2, s3, ...
- Each section has a heading, 3-5 concise bullets and an estimated word count.
- Objective, reader-friendly structure. No marketing fluff.
"""


def create_outline_agent(model=None):
    agent = Agent(
        model or get_default_ai_model(),
        output_type=AngleOutput,
        deps_type=OutlineContext,
        system_prompt=OUTLINE_SYSTEM_PROMPT,
        retries=2,
        model_settings={"temperature": 0.2},
    )

    @agent.system_prompt
    def add_references(ctx: RunContext[OutlineContext]) -> str:
        if not ctx.deps.references:
            return "Known references: (none)"
        references_text = "\n".join(
            f"- {reference.title or reference.url}: {reference.url}"
            + (f"\n  {reference.snippet}" if reference.snippet else "")
            for reference in ctx.deps.references
        )
        return f"Known references:\n{references_text}"

    agent.system_prompt(add_article_details)
    agent.system_prompt(add_todays_date)

    return agent
