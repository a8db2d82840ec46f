import copy
from dataclasses import replace
from datetime import datetime
from types import SimpleNamespace

import pytest

from content_pipeline.agents.schemas import (
    AssembledDraft,
    GeneratedIdea,
    GeneratedSectionContent,
    PolishedArticle,
)
from content_pipeline.clients.trends import TrendsResponse
from content_pipeline.config import PipelineSettings
from content_pipeline.exceptions import RoundExecutionError
from content_pipeline.orchestrator import Orchestrator
from content_pipeline.registry import InMemoryRunRegistry
from content_pipeline.rounds import build_default_rounds
from content_pipeline.runner import RoundRunner
from content_pipeline.schemas import AngleOutput, MetaOutput
from content_pipeline.stores import InMemoryArtifactStore

ELECTRIC_BIKES_OUTPUTS = {
    "r0": {
        "aggregated_topics": ["electric bikes"],
        "suggestions": [
            {"topic": "electric bikes for commuting", "score": 0.9},
            {"topic": "e bike battery range", "score": 0.6},
        ],
        "trend_timeline": [{"time": "2024-10-01T00:00:00Z", "value": 72}],
        "results": [
            {
                "topic": "electric bikes",
                "suggestions": [
                    {"topic": "electric bikes for commuting", "score": 0.9},
                    {"topic": "e bike battery range", "score": 0.6},
                ],
            }
        ],
    },
    "r1": {
        "title": "Why Electric Bikes Are Winning the Commute",
        "rationale": "Commuters are switching to e-bikes as fuel and parking costs rise.",
        "seed": "electric bikes",
        "topic": "electric bikes for commuting",
        "references": [{"url": "https://example.com/ebike-report", "title": "E-bike report"}],
    },
    "r2": {
        "research_notes": [
            {
                "url": "https://example.com/ebike-report",
                "summary": "E-bike sales grew quickly in cities with bike lanes.",
                "relevance": 0.8,
            }
        ],
        "outline": {
            "title": "Why Electric Bikes Are Winning the Commute",
            "sections": [
                {
                    "id": "s1",
                    "heading": "Why commuters switch",
                    "bullets": ["cost", "speed"],
                    "est_words": 250,
                },
                {
                    "id": "s2",
                    "heading": "Choosing a battery",
                    "bullets": ["range", "charging"],
                    "est_words": 200,
                },
            ],
        },
    },
    "r3": {
        "title": "Why Electric Bikes Are Winning the Commute",
        "sections": [
            {
                "section_id": "s1",
                "heading": "Why commuters switch",
                "content": "E-bikes are cheaper to run than cars.",
            },
            {
                "section_id": "s2",
                "heading": "Choosing a battery",
                "content": "Range matters more than top speed.",
            },
        ],
        "full_draft": (
            "## Why commuters switch\n\nE-bikes are cheaper to run than cars.\n\n"
            "## Choosing a battery\n\nRange matters more than top speed."
        ),
        "reading_time": "1 min read",
        "source": "assembled",
    },
    "r4": {
        "title": "Why Electric Bikes Are Winning the Commute",
        "slug": "why-electric-bikes-are-winning-the-commute",
        "seo_description": "How e-bikes became the smartest way to commute.",
        "seo_keywords": ["electric bikes", "e-bike commute"],
        "tags": ["e-bikes", "commuting"],
        "primary_category": "Transport",
        "reading_level": "Beginner",
        "featured_image": {
            "type": "ai_prompt",
            "description": "A commuter riding an e-bike through the city",
            "ai_prompt": "flat vector art, commuter on an e-bike",
        },
    },
    "r5": {
        "polished_blog": (
            "## Why commuters switch\n\nRunning an e-bike costs far less than a car.\n\n"
            "## Choosing a battery\n\nPick range over top speed."
        ),
        "readability": {"fk_grade": 6.1, "grade_label": "Middle School"},
        "used_images": [],
        "fallback": False,
    },
    "r8": {
        "id": 101,
        "link": "https://blog.example.com/why-electric-bikes-are-winning-the-commute/",
        "status": "draft",
        "slug": "why-electric-bikes-are-winning-the-commute",
        "title": "Why Electric Bikes Are Winning the Commute",
    },
}


class StubExecutor:
    """Records every input; raises for the first `failures` calls, then returns `output`."""

    def __init__(self, output, failures=0, error=None, side_effect=None):
        self.output = output
        self.failures = failures
        self.error = error or RoundExecutionError("upstream service unavailable")
        self.side_effect = side_effect
        self.calls = []

    def __call__(self, round_input):
        self.calls.append(round_input)
        if self.side_effect:
            self.side_effect(round_input)
        if len(self.calls) <= self.failures:
            raise self.error
        return copy.deepcopy(self.output)


class RecordingSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def mock_async_task_calls(monkeypatch):
    """Avoid a running django-q cluster in tests by no-oping async task dispatchers."""
    monkeypatch.setattr("content_pipeline.services.async_task", lambda *args, **kwargs: None)


@pytest.fixture
def stub_executor():
    return StubExecutor


@pytest.fixture
def valid_outputs():
    return copy.deepcopy(ELECTRIC_BIKES_OUTPUTS)


@pytest.fixture
def pipeline_settings():
    return PipelineSettings(
        retry_budget=2,
        retry_delay_seconds=0.5,
        run_timeout_seconds=None,
        default_topics=("electric bikes",),
    )


@pytest.fixture
def make_stub_rounds(valid_outputs):
    """
    The default round table with every executor swapped for a StubExecutor.

    Pass executors (or RoundDefinition field overrides) per round id to change
    single rounds, e.g. make_stub_rounds(r3=StubExecutor(..., failures=99)).
    """

    def _make_stub_rounds(**overrides):
        rounds = []
        executors = {}
        for round_definition in build_default_rounds():
            round_key = str(round_definition.round_id)
            override = overrides.get(round_key)
            if isinstance(override, dict):
                executor = override.pop("executor", None) or StubExecutor(valid_outputs[round_key])
                round_definition = replace(round_definition, executor=executor, **override)
            else:
                executor = override or StubExecutor(valid_outputs[round_key])
                round_definition = replace(round_definition, executor=executor)
            executors[round_key] = executor
            rounds.append(round_definition)
        return tuple(rounds), executors

    return _make_stub_rounds


@pytest.fixture
def make_orchestrator(pipeline_settings):
    def _make_orchestrator(rounds, store=None, registry=None, settings=None, **kwargs):
        store = store if store is not None else InMemoryArtifactStore()
        registry = registry if registry is not None else InMemoryRunRegistry()
        sleep = kwargs.pop("sleep", None) or RecordingSleep()
        orchestrator = Orchestrator(
            rounds=rounds,
            runner=RoundRunner(store),
            registry=registry,
            pipeline_settings=settings or pipeline_settings,
            sleep=sleep,
            **kwargs,
        )
        return orchestrator, store, registry, sleep

    return _make_orchestrator


class FakeTrendsClient:
    """Serves canned TrendsResponses per seed topic; a seed mapped to an exception raises it."""

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def fetch_related_queries(self, topic, geo, timeframe, category=0):
        self.calls.append((topic, geo, timeframe))
        response = self.responses[topic]
        if isinstance(response, Exception):
            raise response
        return response


class FakeWordPressClient:
    def __init__(self, post=None, error=None, categories=None, tags=None, configured=True):
        self.post = post or {
            "id": 101,
            "link": "https://blog.example.com/why-electric-bikes-are-winning-the-commute/",
            "status": "draft",
            "date": "2024-10-27T09:00:00",
            "slug": "why-electric-bikes-are-winning-the-commute",
            "title": {"rendered": "Why Electric Bikes Are Winning the Commute"},
        }
        self.error = error
        self.categories = categories if categories is not None else ["Uncategorized", "Transport"]
        self.tags = tags if tags is not None else ["e-bikes"]
        self.is_configured = configured
        self.created_terms = []
        self.payloads = []

    def list_term_names(self, taxonomy, per_page=100):
        return list(self.categories if taxonomy == "categories" else self.tags)

    def ensure_category(self, name):
        self.created_terms.append(("categories", name))
        return 5

    def ensure_tag(self, name):
        self.created_terms.append(("tags", name))
        return 10 + len(self.created_terms)

    def create_post(self, payload):
        if self.error:
            raise self.error
        self.payloads.append(payload)
        return dict(self.post)


@pytest.fixture
def electric_bikes_trends():
    return TrendsResponse(
        related_queries=[
            ("electric bikes for commuting", 250.0),
            ("e bike battery range", 120.0),
            ("bike helmets", 20.0),
        ],
        timeline=[(datetime(2024, 10, 1), 60.0), (datetime(2024, 10, 8), 80.0)],
    )


@pytest.fixture
def fake_agents(monkeypatch, valid_outputs):
    """
    Replace every agent factory and agent run in the executors with canned outputs.

    Set `fake_agents.failures[function_name] = exc` to make one call site raise, or
    `fake_agents.outputs[function_name] = value` to change what it returns.
    """
    outputs = {
        "IdeateExecutor": GeneratedIdea(
            title="Why Electric Bikes Are Winning the Commute",
            rationale="Commuters are switching to e-bikes as fuel and parking costs rise.",
            seed="electric bikes",
            topic="Electric Bikes for Commuting",
            references=[{"url": "https://example.com/ebike-report", "title": "E-bike report"}],
        ),
        "AngleExecutor": AngleOutput.model_validate(valid_outputs["r2"]),
        "DraftExecutor._write_section": GeneratedSectionContent(
            content="E-bikes are cheaper to run than cars."
        ),
        "DraftExecutor.assemble": AssembledDraft(
            title="Why Electric Bikes Are Winning the Commute",
            description="How e-bikes took over the commute.",
            full_draft=valid_outputs["r3"]["full_draft"],
        ),
        "MetaExecutor": MetaOutput.model_validate(valid_outputs["r4"]),
        "PolishExecutor": PolishedArticle(
            polished_blog=valid_outputs["r5"]["polished_blog"], fk_grade=6.1
        ),
    }
    state = SimpleNamespace(outputs=outputs, failures={}, calls=[])

    def run_agent(agent, input_string, deps=None, function_name="", model_name=""):
        state.calls.append(SimpleNamespace(function_name=function_name, deps=deps))
        if function_name in state.failures:
            raise state.failures[function_name]
        return SimpleNamespace(output=state.outputs[function_name])

    for module, factories in {
        "ideate": ["create_ideation_agent"],
        "angle": ["create_outline_agent"],
        "draft": ["create_section_content_agent", "create_draft_assembly_agent"],
        "meta": ["create_metadata_agent"],
        "polish": ["create_polish_agent"],
    }.items():
        monkeypatch.setattr(
            f"content_pipeline.executors.{module}.run_agent_synchronously", run_agent
        )
        for factory in factories:
            monkeypatch.setattr(
                f"content_pipeline.executors.{module}.{factory}", lambda model=None: "agent"
            )

    return state
