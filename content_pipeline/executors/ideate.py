from content_pipeline.agents.ideation_agent import create_ideation_agent
from content_pipeline.agents.schemas import IdeationContext
from content_pipeline.exceptions import RoundExecutionError
from content_pipeline.schemas import IdeateInput, TrendsOutput
from content_pipeline.used_topics import mark_topic_used
from content_pipeline.utils import run_agent_synchronously
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)


def pick_candidate_topics(trends: TrendsOutput) -> list[str]:
    """
    Topics of the seed whose suggestions scored best overall, falling back to
    the aggregated suggestions and then to the seed topics themselves.
    """
    seed_results = sorted(
        (result for result in trends.results if result.suggestions),
        key=lambda result: sum(suggestion.score for suggestion in result.suggestions),
        reverse=True,
    )
    if seed_results:
        return [suggestion.topic for suggestion in seed_results[0].suggestions]
    if trends.suggestions:
        return [suggestion.topic for suggestion in trends.suggestions]
    return list(trends.aggregated_topics)


class IdeateExecutor:
    """r1: turn the best trending topics into one article idea."""

    def __init__(self, model=None, topic_marker=mark_topic_used):
        self.model = model
        self.topic_marker = topic_marker

    def __call__(self, round_input: IdeateInput):
        candidate_topics = pick_candidate_topics(round_input.trends)
        if not candidate_topics and round_input.seed_prompt:
            candidate_topics = [round_input.seed_prompt]
        if not candidate_topics:
            raise RoundExecutionError("No usable topics to ideate from", round="r1")

        agent = create_ideation_agent(self.model)
        result = run_agent_synchronously(
            agent,
            "Pick one topic and turn it into an article idea.",
            deps=IdeationContext(
                candidate_topics=candidate_topics, seed_prompt=round_input.seed_prompt
            ),
            function_name="IdeateExecutor",
            model_name="IdeaOutput",
        )
        generated_idea = result.output

        # The agent may paraphrase; the ledger must hold a topic trends can match.
        candidates_by_key = {topic.lower(): topic for topic in candidate_topics}
        chosen_topic = candidates_by_key.get(
            (generated_idea.topic or "").strip().lower(), candidate_topics[0]
        )
        self.topic_marker(chosen_topic, round_input.pipeline_id)

        logger.info(
            "[IdeateExecutor] Idea generated",
            pipeline_id=round_input.pipeline_id,
            title=generated_idea.title,
            topic=chosen_topic,
            num_candidates=len(candidate_topics),
        )

        return {
            "title": generated_idea.title,
            "rationale": generated_idea.rationale,
            "seed": generated_idea.seed or chosen_topic,
            "topic": chosen_topic,
            "source_url": generated_idea.source_url or None,
            "references": [reference.model_dump() for reference in generated_idea.references],
        }
