import re
from dataclasses import dataclass, field
from datetime import datetime

import requests
from django.conf import settings
from django.core.cache import cache
from django.utils.dateparse import parse_datetime

from content_pipeline.exceptions import PipelineConfigurationError
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)

SERPAPI_SEARCH_URL = "https://serpapi.com/search.json"
TRENDS_CACHE_TIMEOUT = 60 * 60 * 24 * 5
FALLBACK_TIMEFRAME = "today 12-m"


@dataclass
class TrendsResponse:
    # (raw query, raw score) pairs, rising first then top
    related_queries: list[tuple[str, float]] = field(default_factory=list)
    # (point time, value) pairs
    timeline: list[tuple[datetime, float]] = field(default_factory=list)


def _to_float(value) -> float:
    try:
        return float(str(value).replace("+", "").replace("%", "").replace(",", ""))
    except (TypeError, ValueError):
        return 0.0


def _parse_timeline_date(raw_date):
    if not raw_date:
        return None
    parsed = parse_datetime(raw_date)
    if parsed:
        return parsed
    # SerpAPI renders ranges like "Oct 1 – 7, 2024"; the range start is enough.
    match = re.match(r"([A-Za-z]{3})\s+(\d{1,2}).*?(\d{4})", raw_date)
    if not match:
        return None
    try:
        return datetime.strptime(" ".join(match.groups()), "%b %d %Y")
    except ValueError:
        return None


def parse_serpapi_response(data: dict) -> TrendsResponse:
    related = data.get("related_queries") or {}
    related_queries = [
        (item.get("query") or "unknown", _to_float(item.get("extracted_value", item.get("value"))))
        for bucket in ("rising", "top")
        for item in (related.get(bucket) or [])
        if isinstance(item, dict)
    ]

    timeline = []
    for point in (data.get("interest_over_time") or {}).get("timeline_data") or []:
        point_time = _parse_timeline_date(point.get("date"))
        if point_time is None:
            continue
        values = point.get("values") or [{}]
        timeline.append(
            (point_time, _to_float(values[0].get("extracted_value", values[0].get("value"))))
        )

    return TrendsResponse(related_queries=related_queries, timeline=timeline)


class GoogleTrendsClient:
    """Google Trends related queries through SerpAPI, cached in the Django cache."""

    def __init__(self, api_key: str | None = None, timeout: int = 30):
        self.api_key = api_key if api_key is not None else settings.SERPAPI_API_KEY
        self.timeout = timeout

    @staticmethod
    def cache_key(topic: str, geo: str, timeframe: str, category: int = 0) -> str:
        raw_key = f"{topic}_{geo}_{timeframe}_{category}".lower()
        return "google_trends:" + re.sub(r"\s+", "_", raw_key)

    def _search(self, params):
        response = requests.get(SERPAPI_SEARCH_URL, params=params, timeout=self.timeout)
        response.raise_for_status()
        return parse_serpapi_response(response.json() or {})

    def fetch_related_queries(self, topic: str, geo: str, timeframe: str, category: int = 0):
        if not self.api_key:
            raise PipelineConfigurationError("SERPAPI_API_KEY is not configured")

        cache_key = self.cache_key(topic, geo, timeframe, category)
        cached = cache.get(cache_key)
        if cached is not None:
            logger.info(
                "[GoogleTrendsClient] Using cached trends", topic=topic, cache_key=cache_key
            )
            return cached

        params = {
            "engine": "google_trends",
            "q": topic,
            "hl": "en",
            "cat": category,
            "date": timeframe,
            "data_type": "RELATED_QUERIES",
            "api_key": self.api_key,
        }
        if geo:
            params["geo"] = geo

        try:
            trends_response = self._search(params)
        except requests.RequestException as e:
            logger.warning(
                "[GoogleTrendsClient] Trends request failed, retrying with fallback timeframe",
                topic=topic,
                timeframe=timeframe,
                error=str(e),
            )
            trends_response = self._search({**params, "date": FALLBACK_TIMEFRAME})

        cache.set(cache_key, trends_response, TRENDS_CACHE_TIMEOUT)
        logger.info(
            "[GoogleTrendsClient] Fetched trends",
            topic=topic,
            num_related_queries=len(trends_response.related_queries),
            num_timeline_points=len(trends_response.timeline),
        )
        return trends_response
