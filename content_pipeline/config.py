from dataclasses import dataclass, field

from django.conf import settings


@dataclass(frozen=True)
class PipelineSettings:
    retry_budget: int = 2
    retry_delay_seconds: float = 5.0
    run_timeout_seconds: float | None = 30 * 60
    default_topics: tuple[str, ...] = field(default_factory=tuple)
    trends_geo: str = "IN"
    trends_timeframe: str = "today 12-m"

    def __post_init__(self):
        if self.retry_budget < 0:
            raise ValueError("retry_budget must be zero or positive")
        if self.retry_delay_seconds < 0:
            raise ValueError("retry_delay_seconds must be zero or positive")

    @classmethod
    def from_settings(cls):
        run_timeout_seconds = settings.PIPELINE_RUN_TIMEOUT_SECONDS
        return cls(
            retry_budget=settings.PIPELINE_RETRY_BUDGET,
            retry_delay_seconds=settings.PIPELINE_RETRY_DELAY_SECONDS,
            run_timeout_seconds=run_timeout_seconds if run_timeout_seconds > 0 else None,
            default_topics=tuple(settings.DEFAULT_BLOG_TOPICS),
            trends_geo=settings.TRENDS_GEO,
            trends_timeframe=settings.TRENDS_TIMEFRAME,
        )
