from pydantic_ai import Agent

from content_pipeline.agents.schemas import (
    AssembledDraft,
    DraftAssemblyContext,
    GeneratedSectionContent,
    SectionWritingContext,
)
from content_pipeline.agents.system_prompts import (
    add_article_details,
    add_research_notes,
    add_tone_guidance,
    add_todays_date,
    filler_content,
    valid_markdown_format,
)
from content_pipeline.choices import get_default_ai_model

SECTION_CONTENT_SYSTEM_PROMPT = """
You are an expert blog post writer.

Your task: write the content for ONE section of the article (the body only).

Rules:
- Do NOT include the section heading. No leading '#', '##' or '###'.
- Cover every bullet of the section in order.
- Stay close to the estimated word count.
- Do not repeat what earlier sections already covered.
"""


def create_section_content_agent(model=None):
    """
    Create an agent to write a single outline section of the article.
    """
    agent = Agent(
        model or get_default_ai_model(),
        output_type=GeneratedSectionContent,
        deps_type=SectionWritingContext,
        system_prompt=SECTION_CONTENT_SYSTEM_PROMPT,
        retries=2,
        model_settings={"temperature": 0.7},
    )

    @agent.system_prompt
    def add_section_details(ctx) -> str:
        section_context: SectionWritingContext = ctx.deps
        outline_text = "\n".join(f"- {heading}" for heading in section_context.outline_headings)
        bullets_text = "\n".join(f"- {bullet}" for bullet in section_context.bullets) or "- (none)"
        previous_text = (
            "\n".join(f"- {heading}" for heading in section_context.previous_headings) or "- (none)"
        )
        return f"""
            Full outline:
            {outline_text}

            Section to write: {section_context.heading}
            Target length: about {section_context.est_words} words
            Bullets to cover:
            {bullets_text}

            Sections already written:
            {previous_text}
        """

    agent.system_prompt(add_article_details)
    agent.system_prompt(add_tone_guidance)
    agent.system_prompt(add_research_notes)
    agent.system_prompt(filler_content)

    return agent


DRAFT_ASSEMBLY_SYSTEM_PROMPT = """
You are a senior editor assembling an article from separately written sections.

Your task: stitch the sections into one coherent Markdown article.

Rules:
- Start with a short plain-text introduction, not a heading.
- Keep every section, in order, as a '##' heading followed by its content.
- Smooth transitions between sections. Do not add new facts.
- Provide a subtitle and a one or two sentence description.
"""


def create_draft_assembly_agent(model=None):
    agent = Agent(
        model or get_default_ai_model(),
        output_type=AssembledDraft,
        deps_type=DraftAssemblyContext,
        system_prompt=DRAFT_ASSEMBLY_SYSTEM_PROMPT,
        retries=2,
        model_settings={"max_tokens": 16000, "temperature": 0.4},
    )

    @agent.system_prompt
    def add_draft_sections(ctx) -> str:
        sections_text = "\n\n".join(
            f"## {section.heading}\n\n{section.content}" for section in ctx.deps.sections
        )
        return f"Sections:\n\n{sections_text}"

    agent.system_prompt(add_article_details)
    agent.system_prompt(add_tone_guidance)
    agent.system_prompt(add_research_notes)
    agent.system_prompt(add_todays_date)
    agent.system_prompt(valid_markdown_format)

    return agent
