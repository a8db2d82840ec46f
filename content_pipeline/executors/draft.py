from content_pipeline.agents.draft_agent import (
    create_draft_assembly_agent,
    create_section_content_agent,
)
from content_pipeline.agents.schemas import (
    ArticleDetails,
    DraftAssemblyContext,
    DraftSectionText,
    SectionWritingContext,
)
from content_pipeline.exceptions import RoundExecutionError
from content_pipeline.schemas import DraftInput
from content_pipeline.utils import estimate_reading_time, run_agent_synchronously
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)

FAILED_SECTION_PLACEHOLDER = "[Content generation failed for this section]"


def join_sections(sections: list[dict]) -> str:
    return "\n\n".join(f"## {section['heading']}\n\n{section['content']}" for section in sections)


class DraftExecutor:
    """
    r3: write the article section by section, then stitch the sections together.

    A section the model fails on gets a placeholder instead of failing the
    round. If stitching fails the sections are joined as plain '##' blocks.
    """

    def __init__(self, model=None):
        self.model = model

    def _write_section(
        self, article, outline_headings, section, previous_headings, research_notes, pipeline_id
    ):
        agent = create_section_content_agent(self.model)
        try:
            result = run_agent_synchronously(
                agent,
                f"Write the '{section.heading}' section.",
                deps=SectionWritingContext(
                    article=article,
                    outline_headings=outline_headings,
                    heading=section.heading,
                    bullets=section.bullets,
                    est_words=section.est_words,
                    previous_headings=previous_headings,
                    research_notes=research_notes,
                ),
                function_name="DraftExecutor._write_section",
                model_name="DraftSection",
            )
            return result.output.content.strip() or FAILED_SECTION_PLACEHOLDER
        except Exception as e:
            logger.warning(
                "[DraftExecutor] Section generation failed, using placeholder",
                pipeline_id=pipeline_id,
                section_id=section.id,
                error=str(e),
            )
            return FAILED_SECTION_PLACEHOLDER

    def __call__(self, round_input: DraftInput):
        idea = round_input.idea
        outline = round_input.angle.outline
        research_notes = round_input.angle.research_notes
        article = ArticleDetails(
            title=idea.title, seed=idea.seed, rationale=idea.rationale, tone=round_input.tone
        )
        outline_headings = [section.heading for section in outline.sections]

        sections = []
        for section in outline.sections:
            content = self._write_section(
                article,
                outline_headings,
                section,
                [written["heading"] for written in sections],
                research_notes,
                round_input.pipeline_id,
            )
            sections.append(
                {"section_id": section.id, "heading": section.heading, "content": content}
            )

        if all(section["content"] == FAILED_SECTION_PLACEHOLDER for section in sections):
            raise RoundExecutionError("Content generation failed for every section", round="r3")

        draft = {
            "title": outline.title or idea.title,
            "subtitle": None,
            "sections": sections,
            "description": None,
            "full_draft": join_sections(sections),
            "source": "sections",
        }

        assembly_agent = create_draft_assembly_agent(self.model)
        try:
            result = run_agent_synchronously(
                assembly_agent,
                "Assemble the sections into the final draft.",
                deps=DraftAssemblyContext(
                    article=article,
                    sections=[
                        DraftSectionText(heading=section["heading"], content=section["content"])
                        for section in sections
                    ],
                    research_notes=research_notes,
                ),
                function_name="DraftExecutor.assemble",
                model_name="DraftOutput",
            )
            assembled = result.output
            if assembled.full_draft.strip():
                draft.update(
                    {
                        "title": assembled.title or draft["title"],
                        "subtitle": assembled.subtitle,
                        "description": assembled.description,
                        "full_draft": assembled.full_draft.strip(),
                        "source": "assembled",
                    }
                )
        except Exception as e:
            logger.warning(
                "[DraftExecutor] Draft assembly failed, joining sections",
                pipeline_id=round_input.pipeline_id,
                error=str(e),
            )

        draft["reading_time"] = estimate_reading_time(draft["full_draft"])

        logger.info(
            "[DraftExecutor] Draft generated",
            pipeline_id=round_input.pipeline_id,
            num_sections=len(sections),
            num_failed_sections=sum(
                1 for section in sections if section["content"] == FAILED_SECTION_PLACEHOLDER
            ),
            source=draft["source"],
        )
        return draft
