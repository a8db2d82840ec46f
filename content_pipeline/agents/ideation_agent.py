from pydantic_ai import Agent, RunContext

from content_pipeline.agents.schemas import GeneratedIdea, IdeationContext
from content_pipeline.agents.system_prompts import add_todays_date
from content_pipeline.choices import get_default_ai_model

IDEATION_SYSTEM_PROMPT = """
You are an editor picking the next long-form article for a blog.

You receive a list of trending topics. Pick exactly ONE of them and turn it
into a single article idea.

Requirements:
- The title must be specific and click-worthy, not generic.
- The rationale explains in 1-3 sentences why readers care about this now.
- `seed` is the main search keyword the article should rank for.
- `topic` must be copied verbatim from the candidate list.
- Only add references you are confident exist. Leave the list empty otherwise.
"""


def create_ideation_agent(model=None):
    agent = Agent(
        model or get_default_ai_model(),
        output_type=GeneratedIdea,
        deps_type=IdeationContext,
        system_prompt=IDEATION_SYSTEM_PROMPT,
        retries=2,
        model_settings={"temperature": 0.8},
    )

    @agent.system_prompt
    def add_candidate_topics(ctx: RunContext[IdeationContext]) -> str:
        topics_text = "\n".join(f"- {topic}" for topic in ctx.deps.candidate_topics)
        prompt = f"Candidate topics:\n{topics_text or '- (none)'}"
        if ctx.deps.seed_prompt:
            prompt += f"\n\nAdditional direction from the editor: {ctx.deps.seed_prompt}"
        return prompt

    agent.system_prompt(add_todays_date)

    return agent
