# Round contracts. Each round publishes one input and one output model; changing a
# field here is a breaking change for every executor of that round.

from datetime import datetime
from typing import Literal

from django.utils import timezone
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

from content_pipeline.choices import RoundId, RunStatus

ROUND_ID_PATTERN = r"^r[0-8]$"
SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"
SECTION_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_-]*$"

PublishStatusLiteral = Literal["draft", "publish", "pending", "private", "future"]
ReadingLevelLiteral = Literal["Beginner", "Intermediate", "Expert"]
ImagePromptTypeLiteral = Literal["ai_prompt", "stock_reference", "meme"]


class ArticleRequest(BaseModel):
    """What a caller submits to start a run."""

    model_config = ConfigDict(extra="forbid")

    topic: str | list[str] = Field(
        default_factory=list,
        description="Seed topic or list of candidate topics. Empty falls back to the default topics.",  # noqa: E501
    )
    tone: str | None = Field(
        default=None, description="Optional tone, e.g. 'professional', 'casual', 'humorous'"
    )
    publish_status: Literal["draft", "publish", "pending", "private"] = "draft"
    publish_at: datetime | None = Field(
        default=None, description="Schedule the post; implies status 'future' without override"
    )
    seed_prompt: str | None = None
    geo: str | None = None
    timeframe: str | None = None

    @field_validator("topic")
    @classmethod
    def strip_topics(cls, v):
        if isinstance(v, str):
            return v.strip()
        return [topic.strip() for topic in v if topic and topic.strip()]

    @property
    def topics(self) -> list[str]:
        if isinstance(self.topic, str):
            return [self.topic] if self.topic else []
        return list(self.topic)


# r0 - trends


class TrendsInput(BaseModel):
    pipeline_id: str
    topics: list[str] = Field(min_length=1)
    geo: str
    timeframe: str


class TrendSuggestion(BaseModel):
    topic: str = Field(min_length=1)
    score: float = Field(ge=0, le=1, description="Relative interest, scaled to [0, 1]")


class TrendTimelinePoint(BaseModel):
    time: datetime
    value: float


class SeedTrendResult(BaseModel):
    topic: str
    suggestions: list[TrendSuggestion] = Field(default_factory=list)
    trend_timeline: list[TrendTimelinePoint] = Field(default_factory=list)


class TrendsOutput(BaseModel):
    aggregated_topics: list[str] = Field(default_factory=list)
    suggestions: list[TrendSuggestion] = Field(min_length=1)
    trend_timeline: list[TrendTimelinePoint] = Field(default_factory=list)
    results: list[SeedTrendResult] = Field(default_factory=list)


# r1 - ideation


class IdeateInput(BaseModel):
    pipeline_id: str
    trends: TrendsOutput
    seed_prompt: str | None = None


class Reference(BaseModel):
    url: HttpUrl
    title: str | None = None
    snippet: str | None = None


class IdeaOutput(BaseModel):
    title: str = Field(min_length=3)
    rationale: str = Field(min_length=10)
    seed: str = Field(min_length=1, description="Seed keyword the idea was built around")
    topic: str = Field(min_length=1, description="Trend topic the idea was picked from")
    source_url: HttpUrl | None = None
    references: list[Reference] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=timezone.now)


# r2 - angle & outline


class AngleInput(BaseModel):
    pipeline_id: str
    idea: IdeaOutput


class ResearchNote(BaseModel):
    url: HttpUrl
    title: str | None = None
    summary: str | None = None
    relevance: float | None = Field(default=None, ge=0, le=1)


class OutlineSection(BaseModel):
    id: str = Field(pattern=SECTION_ID_PATTERN)
    heading: str = Field(min_length=1)
    bullets: list[str] = Field(default_factory=list)
    est_words: int = Field(default=200, gt=0)


class Outline(BaseModel):
    title: str = Field(min_length=1)
    sections: list[OutlineSection] = Field(min_length=1)


class AngleOutput(BaseModel):
    research_notes: list[ResearchNote] = Field(default_factory=list)
    outline: Outline


# r3 - drafting


class DraftInput(BaseModel):
    pipeline_id: str
    idea: IdeaOutput
    angle: AngleOutput
    tone: str | None = None


class DraftSection(BaseModel):
    section_id: str
    heading: str
    content: str


class DraftOutput(BaseModel):
    title: str | None = None
    subtitle: str | None = None
    sections: list[DraftSection] = Field(default_factory=list)
    description: str | None = None
    reading_time: str | None = None
    full_draft: str = Field(min_length=1)
    source: str | None = None


# r4 - metadata


class ImagePrompt(BaseModel):
    type: ImagePromptTypeLiteral
    description: str = Field(min_length=1)
    ai_prompt: str | None = None
    style_guidance: str | None = None
    context: str | None = None


class MetaInput(BaseModel):
    pipeline_id: str
    idea: IdeaOutput
    draft: DraftOutput
    tone: str | None = None

    @property
    def title(self) -> str:
        return self.draft.title or self.idea.title

    @property
    def topic(self) -> str:
        return self.idea.seed


class MetaOutput(BaseModel):
    title: str = Field(min_length=1)
    slug: str = Field(pattern=SLUG_PATTERN, max_length=200)
    seo_description: str = Field(min_length=1)
    seo_keywords: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    primary_category: str = Field(min_length=1)
    reading_level: ReadingLevelLiteral
    featured_image: ImagePrompt
    additional_images: list[ImagePrompt] = Field(default_factory=list)


# r5 - polish


class PolishInput(BaseModel):
    pipeline_id: str
    draft: DraftOutput
    meta: MetaOutput
    tone: str | None = None


class UsedImage(BaseModel):
    type: ImagePromptTypeLiteral
    description: str
    ai_prompt: str | None = None
    context: str | None = None
    alt: str = Field(min_length=1)


class Readability(BaseModel):
    fk_grade: float | None = None
    grade_label: str | None = None


class PolishOutput(BaseModel):
    polished_blog: str = Field(min_length=1)
    readability: Readability = Field(default_factory=Readability)
    used_images: list[UsedImage] = Field(default_factory=list)
    fallback: bool = Field(default=False, description="True when the draft was used unpolished")


# r8 - publish


class PublishInput(BaseModel):
    pipeline_id: str
    polished: PolishOutput
    meta: MetaOutput
    publish_at: datetime | None = None
    status_override: PublishStatusLiteral | None = None


class PublishOutput(BaseModel):
    id: int | None = None
    link: HttpUrl
    status: str | None = None
    date: str | None = None
    slug: str | None = None
    title: str | None = None
    message: str | None = None


ROUND_OUTPUT_CONTRACTS: dict[str, type[BaseModel]] = {
    RoundId.TRENDS: TrendsOutput,
    RoundId.IDEATE: IdeaOutput,
    RoundId.ANGLE: AngleOutput,
    RoundId.DRAFT: DraftOutput,
    RoundId.META: MetaOutput,
    RoundId.POLISH: PolishOutput,
    RoundId.PUBLISH: PublishOutput,
}

RoundOutput = (
    TrendsOutput
    | IdeaOutput
    | AngleOutput
    | DraftOutput
    | MetaOutput
    | PolishOutput
    | PublishOutput
)


# Caller-facing results


class ArticleResult(BaseModel):
    pipeline_id: str
    title: str
    content: str = Field(description="The final, polished article in Markdown")
    meta: MetaOutput
    publish_result: PublishOutput

    @property
    def link(self) -> str:
        return str(self.publish_result.link)


class RoundTrace(BaseModel):
    round: str
    attempt: int
    ok: bool
    kind: str
    started_at: datetime
    finished_at: datetime
    error: str | None = None


class PipelineResult(BaseModel):
    run_id: str
    status: str
    article: ArticleResult | None = None
    failed_round: str | None = None
    error: str | None = None
    abort_reason: str | None = None
    rounds: list[RoundTrace] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == RunStatus.SUCCEEDED
