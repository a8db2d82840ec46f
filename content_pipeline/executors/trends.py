from collections import defaultdict

from django.conf import settings

from content_pipeline.clients.trends import GoogleTrendsClient
from content_pipeline.exceptions import PipelineConfigurationError, RoundExecutionError
from content_pipeline.schemas import TrendsInput
from content_pipeline.used_topics import load_used_topics
from content_pipeline.utils import normalize_topic, normalize_topic_list, sanitize_topics
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)


def _scale(score, max_score):
    if max_score <= 0:
        return 0.0
    return round(min(score / max_score, 1.0), 4)


def average_scores(suggestions: list[dict]) -> list[dict]:
    """Average the scores of topics that came back for more than one seed."""
    totals = defaultdict(lambda: [0.0, 0])
    for suggestion in suggestions:
        entry = totals[suggestion["topic"].lower()]
        entry[0] += suggestion["score"]
        entry[1] += 1
    return [{"topic": topic, "score": total / count} for topic, (total, count) in totals.items()]


def merge_timelines(timelines) -> list[dict]:
    values_by_time = defaultdict(list)
    for timeline in timelines:
        for point_time, value in timeline:
            values_by_time[point_time].append(value)
    return [
        {"time": point_time, "value": round(sum(values) / len(values))}
        for point_time, values in sorted(values_by_time.items())
    ]


class TrendsExecutor:
    """
    r0: discover trending topics related to the seed topics.

    Per seed: fetch related queries, keep high scorers, sanitize and drop
    topics an earlier run already used. Across seeds: average duplicate
    scores and scale them into [0, 1] relative to the best topic.
    """

    def __init__(self, client=None, min_score=None, used_topics_loader=load_used_topics):
        self.client = client or GoogleTrendsClient()
        self.min_score = settings.TRENDS_MIN_SCORE if min_score is None else min_score
        self.used_topics_loader = used_topics_loader

    def _seed_suggestions(self, trends_response, used_topics):
        high_scoring = {}
        for query, score in trends_response.related_queries:
            if score >= self.min_score:
                high_scoring.setdefault(query.lower().strip(), score)

        suggestions = []
        for topic in sanitize_topics(list(high_scoring)):
            score = high_scoring.get(topic)
            if score is None:
                # Split fragment of a longer query; inherit the best parent score.
                parent_scores = [
                    parent_score for parent, parent_score in high_scoring.items() if topic in parent
                ]
                score = max(parent_scores, default=0.0)
            suggestions.append({"topic": topic, "score": score})

        return [
            suggestion
            for suggestion in normalize_topic_list(suggestions)
            if suggestion["topic"] not in used_topics
        ]

    def __call__(self, round_input: TrendsInput):
        used_topics = {normalize_topic(topic) for topic in self.used_topics_loader()}

        seed_results = []
        for seed_topic in round_input.topics:
            try:
                trends_response = self.client.fetch_related_queries(
                    seed_topic, round_input.geo, round_input.timeframe
                )
            except PipelineConfigurationError:
                raise
            except Exception as e:
                logger.warning(
                    "[TrendsExecutor] Failed to fetch trends for seed topic",
                    pipeline_id=round_input.pipeline_id,
                    seed_topic=seed_topic,
                    error=str(e),
                )
                continue

            seed_results.append(
                (seed_topic, self._seed_suggestions(trends_response, used_topics), trends_response)
            )

        all_suggestions = [
            suggestion
            for _seed, suggestions, _response in seed_results
            for suggestion in suggestions
        ]
        if not all_suggestions:
            raise RoundExecutionError(
                f"No usable trend suggestions for topics: {', '.join(round_input.topics)}",
                round="r0",
            )

        averaged = sorted(average_scores(all_suggestions), key=lambda s: s["score"], reverse=True)
        max_score = max(s["score"] for s in all_suggestions)

        logger.info(
            "[TrendsExecutor] Aggregated trend suggestions",
            pipeline_id=round_input.pipeline_id,
            num_seeds=len(round_input.topics),
            num_seeds_fetched=len(seed_results),
            num_suggestions=len(averaged),
        )

        return {
            "aggregated_topics": list(round_input.topics),
            "suggestions": [
                {"topic": s["topic"], "score": _scale(s["score"], max_score)} for s in averaged
            ],
            "trend_timeline": merge_timelines(
                trends_response.timeline for *_, trends_response in seed_results
            ),
            "results": [
                {
                    "topic": seed_topic,
                    "suggestions": [
                        {"topic": s["topic"], "score": _scale(s["score"], max_score)}
                        for s in suggestions
                    ],
                    "trend_timeline": [
                        {"time": point_time, "value": value}
                        for point_time, value in trends_response.timeline
                    ],
                }
                for seed_topic, suggestions, trends_response in seed_results
            ],
        }
