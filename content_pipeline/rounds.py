"""
The round table: which rounds run, in which order, what each one reads from
the context and how its input is built.

Rounds are assembled once by `build_default_rounds` and handed to the
orchestrator. Nothing registers itself at import time.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass

from pydantic import BaseModel

from content_pipeline.choices import RoundId
from content_pipeline.config import PipelineSettings
from content_pipeline.executors.angle import AngleExecutor
from content_pipeline.executors.draft import DraftExecutor
from content_pipeline.executors.ideate import IdeateExecutor
from content_pipeline.executors.meta import MetaExecutor
from content_pipeline.executors.polish import PolishExecutor
from content_pipeline.executors.publish import PublishExecutor
from content_pipeline.executors.trends import TrendsExecutor
from content_pipeline.schemas import (
    AngleInput,
    ArticleRequest,
    DraftInput,
    IdeateInput,
    MetaInput,
    PolishInput,
    PublishInput,
    TrendsInput,
)

# (upstream outputs keyed by round id, caller request, pipeline id, settings) -> round input
InputBuilder = Callable[[Mapping[str, BaseModel], ArticleRequest, str, PipelineSettings], BaseModel]


@dataclass(frozen=True)
class RoundDefinition:
    round_id: str
    name: str
    executor: Callable
    build_input: InputBuilder
    depends_on: tuple[str, ...] = ()
    retryable: bool = True


def build_trends_input(upstream, request, pipeline_id, pipeline_settings):
    return TrendsInput(
        pipeline_id=pipeline_id,
        topics=request.topics or list(pipeline_settings.default_topics),
        geo=request.geo or pipeline_settings.trends_geo,
        timeframe=request.timeframe or pipeline_settings.trends_timeframe,
    )


def build_ideate_input(upstream, request, pipeline_id, pipeline_settings):
    return IdeateInput(
        pipeline_id=pipeline_id,
        trends=upstream[RoundId.TRENDS],
        seed_prompt=request.seed_prompt,
    )


def build_angle_input(upstream, request, pipeline_id, pipeline_settings):
    return AngleInput(pipeline_id=pipeline_id, idea=upstream[RoundId.IDEATE])


def build_draft_input(upstream, request, pipeline_id, pipeline_settings):
    return DraftInput(
        pipeline_id=pipeline_id,
        idea=upstream[RoundId.IDEATE],
        angle=upstream[RoundId.ANGLE],
        tone=request.tone,
    )


def build_meta_input(upstream, request, pipeline_id, pipeline_settings):
    return MetaInput(
        pipeline_id=pipeline_id,
        idea=upstream[RoundId.IDEATE],
        draft=upstream[RoundId.DRAFT],
        tone=request.tone,
    )


def build_polish_input(upstream, request, pipeline_id, pipeline_settings):
    return PolishInput(
        pipeline_id=pipeline_id,
        draft=upstream[RoundId.DRAFT],
        meta=upstream[RoundId.META],
        tone=request.tone,
    )


def build_publish_input(upstream, request, pipeline_id, pipeline_settings):
    return PublishInput(
        pipeline_id=pipeline_id,
        polished=upstream[RoundId.POLISH],
        meta=upstream[RoundId.META],
        publish_at=request.publish_at,
        status_override=request.publish_status,
    )


def check_round_order(rounds) -> None:
    """Every declared dependency must run earlier in the sequence."""
    seen = set()
    for round_definition in rounds:
        round_key = str(round_definition.round_id)
        if round_key in seen:
            raise ValueError(f"Round {round_key} is declared twice")
        missing = [str(dep) for dep in round_definition.depends_on if str(dep) not in seen]
        if missing:
            raise ValueError(f"Round {round_key} depends on rounds that run later: {missing}")
        seen.add(round_key)


def build_default_rounds(trends_client=None, wordpress_client=None, model=None):
    rounds = (
        RoundDefinition(
            round_id=RoundId.TRENDS,
            name="trends",
            executor=TrendsExecutor(client=trends_client),
            build_input=build_trends_input,
        ),
        RoundDefinition(
            round_id=RoundId.IDEATE,
            name="ideate",
            executor=IdeateExecutor(model=model),
            build_input=build_ideate_input,
            depends_on=(RoundId.TRENDS,),
        ),
        RoundDefinition(
            round_id=RoundId.ANGLE,
            name="angle",
            executor=AngleExecutor(model=model),
            build_input=build_angle_input,
            depends_on=(RoundId.IDEATE,),
        ),
        RoundDefinition(
            round_id=RoundId.DRAFT,
            name="draft",
            executor=DraftExecutor(model=model),
            build_input=build_draft_input,
            depends_on=(RoundId.IDEATE, RoundId.ANGLE),
        ),
        RoundDefinition(
            round_id=RoundId.META,
            name="meta",
            executor=MetaExecutor(model=model, wordpress_client=wordpress_client),
            build_input=build_meta_input,
            depends_on=(RoundId.IDEATE, RoundId.DRAFT),
        ),
        RoundDefinition(
            round_id=RoundId.POLISH,
            name="polish",
            executor=PolishExecutor(model=model),
            build_input=build_polish_input,
            depends_on=(RoundId.DRAFT, RoundId.META),
        ),
        RoundDefinition(
            round_id=RoundId.PUBLISH,
            name="publish",
            executor=PublishExecutor(wordpress_client=wordpress_client),
            build_input=build_publish_input,
            depends_on=(RoundId.META, RoundId.POLISH),
        ),
    )
    check_round_order(rounds)
    return rounds
