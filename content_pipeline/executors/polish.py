from content_pipeline.agents.polish_agent import create_polish_agent
from content_pipeline.agents.schemas import ArticleDetails, PolishContext
from content_pipeline.schemas import PolishInput
from content_pipeline.utils import (
    flesch_kincaid_grade,
    grade_label_from_fk,
    run_agent_synchronously,
)
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)


class PolishExecutor:
    """r5: humanize the draft; falls back to the unpolished draft on failure."""

    def __init__(self, model=None):
        self.model = model

    def __call__(self, round_input: PolishInput):
        meta = round_input.meta
        agent = create_polish_agent(self.model)
        try:
            result = run_agent_synchronously(
                agent,
                f"Polish this draft:\n\n{round_input.draft.full_draft}",
                deps=PolishContext(
                    article=ArticleDetails(
                        title=meta.title,
                        seed=meta.seo_keywords[0] if meta.seo_keywords else meta.title,
                        tone=round_input.tone,
                    ),
                    seo_keywords=meta.seo_keywords,
                    featured_image=meta.featured_image,
                    additional_images=meta.additional_images,
                ),
                function_name="PolishExecutor",
                model_name="PolishOutput",
            )
            polished = result.output
            polished_blog = polished.polished_blog.strip()
            used_images = [image.model_dump() for image in polished.used_images]
            fk_grade = polished.fk_grade
            fallback = not polished_blog
        except Exception as e:
            logger.warning(
                "[PolishExecutor] Polishing failed, using the draft unpolished",
                pipeline_id=round_input.pipeline_id,
                error=str(e),
            )
            polished_blog, used_images, fk_grade, fallback = "", [], None, True

        if fallback:
            polished_blog = round_input.draft.full_draft

        if fk_grade is None:
            fk_grade = flesch_kincaid_grade(polished_blog)

        logger.info(
            "[PolishExecutor] Polish finished",
            pipeline_id=round_input.pipeline_id,
            fallback=fallback,
            fk_grade=fk_grade,
            num_used_images=len(used_images),
        )
        return {
            "polished_blog": polished_blog,
            "readability": {"fk_grade": fk_grade, "grade_label": grade_label_from_fk(fk_grade)},
            "used_images": used_images,
            "fallback": fallback,
        }
