from content_pipeline.agents.outline_agent import create_outline_agent
from content_pipeline.agents.schemas import ArticleDetails, OutlineContext
from content_pipeline.schemas import AngleInput
from content_pipeline.utils import run_agent_synchronously
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)


class AngleExecutor:
    """r2: research notes and a sectioned outline for the idea."""

    def __init__(self, model=None):
        self.model = model

    def __call__(self, round_input: AngleInput):
        idea = round_input.idea
        agent = create_outline_agent(self.model)
        result = run_agent_synchronously(
            agent,
            "Create the research notes and outline for this article.",
            deps=OutlineContext(
                article=ArticleDetails(title=idea.title, seed=idea.seed, rationale=idea.rationale),
                references=idea.references,
            ),
            function_name="AngleExecutor",
            model_name="AngleOutput",
        )

        angle = result.output
        logger.info(
            "[AngleExecutor] Outline generated",
            pipeline_id=round_input.pipeline_id,
            num_sections=len(angle.outline.sections),
            num_research_notes=len(angle.research_notes),
        )
        return angle.model_dump()
