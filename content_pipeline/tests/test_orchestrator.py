import re
from dataclasses import replace

import pytest

from content_pipeline.choices import RunStatus
from content_pipeline.config import PipelineSettings
from content_pipeline.exceptions import ContextConflictError, PipelineError, StoreError
from content_pipeline.orchestrator import CANCELLED_ABORT_REASON, Orchestrator
from content_pipeline.registry import InMemoryRunRegistry, PipelineRunRecord
from content_pipeline.rounds import RoundDefinition
from content_pipeline.runner import RoundRunner
from content_pipeline.schemas import ArticleRequest, DraftInput, IdeaOutput, TrendsOutput
from content_pipeline.stores import InMemoryArtifactStore

DEFAULT_SEQUENCE = ["r0", "r1", "r2", "r3", "r4", "r5", "r8"]


class FlakyStore(InMemoryArtifactStore):
    def __init__(self, failing_round, failures):
        super().__init__()
        self.failing_round = failing_round
        self.failures = failures

    def put(self, pipeline_id, round_id, payload):
        if str(round_id) == self.failing_round and self.failures > 0:
            self.failures -= 1
            raise StoreError("bucket unavailable")
        return super().put(pipeline_id, round_id, payload)


class UnreachableStore(InMemoryArtifactStore):
    def __init__(self, failing_round):
        super().__init__()
        self.failing_round = failing_round

    def put(self, pipeline_id, round_id, payload):
        if str(round_id) == self.failing_round:
            raise ConnectionError("storage backend unreachable")
        return super().put(pipeline_id, round_id, payload)


class ExplodingRunner:
    def run(self, *args, **kwargs):
        raise RuntimeError("runner crashed")


class TestOrchestratorHappyPath:
    def test_electric_bikes_run_succeeds(self, make_stub_rounds, make_orchestrator):
        rounds, _executors = make_stub_rounds()
        orchestrator, store, registry, _sleep = make_orchestrator(rounds)

        result = orchestrator.run(ArticleRequest(topic="electric bikes", tone="casual"))

        assert result.status == RunStatus.SUCCEEDED
        assert result.ok is True
        assert result.article.link.startswith("https://blog.example.com/")
        assert result.article.title == "Why Electric Bikes Are Winning the Commute"
        assert result.article.content.startswith("## Why commuters switch")
        assert [artifact.round for artifact in store.list_for_pipeline(result.run_id)] == (
            DEFAULT_SEQUENCE
        )

        record = registry.get(result.run_id)
        assert record.status == RunStatus.SUCCEEDED
        assert list(record.context) == DEFAULT_SEQUENCE
        assert record.started_at <= record.finished_at
        assert record.error is None

    def test_run_id_is_date_prefixed(self, make_stub_rounds, make_orchestrator):
        rounds, _executors = make_stub_rounds()
        orchestrator, *_ = make_orchestrator(rounds)

        record = orchestrator.start_run({"topic": "electric bikes"})

        assert re.match(r"^\d{4}-\d{2}-\d{2}-[0-9a-f]{8}$", record.run_id)
        assert record.status == RunStatus.PENDING

    def test_each_round_receives_only_declared_upstream(
        self, make_stub_rounds, make_orchestrator
    ):
        seen_upstream = {}

        def spy(round_definition):
            def build_input(upstream, request, pipeline_id, pipeline_settings):
                seen_upstream[str(round_definition.round_id)] = set(upstream)
                return round_definition.build_input(
                    upstream, request, pipeline_id, pipeline_settings
                )

            return replace(round_definition, build_input=build_input)

        rounds, _executors = make_stub_rounds()
        orchestrator, *_ = make_orchestrator(tuple(spy(r) for r in rounds))

        orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert seen_upstream == {
            "r0": set(),
            "r1": {"r0"},
            "r2": {"r1"},
            "r3": {"r1", "r2"},
            "r4": {"r1", "r3"},
            "r5": {"r3", "r4"},
            "r8": {"r4", "r5"},
        }

    def test_upstream_outputs_flow_into_round_inputs(
        self, make_stub_rounds, make_orchestrator, valid_outputs
    ):
        rounds, executors = make_stub_rounds()
        orchestrator, *_ = make_orchestrator(rounds)

        orchestrator.run(ArticleRequest(topic="electric bikes", tone="casual"))

        draft_input = executors["r3"].calls[0]
        assert isinstance(draft_input, DraftInput)
        assert isinstance(draft_input.idea, IdeaOutput)
        assert draft_input.idea.title == valid_outputs["r1"]["title"]
        assert draft_input.angle.outline.sections[0].id == "s1"
        assert draft_input.tone == "casual"

    def test_rounds_cannot_mutate_earlier_outputs(
        self, make_stub_rounds, make_orchestrator, stub_executor, valid_outputs
    ):
        def rename_idea(round_input):
            round_input.idea.title = "Renamed by the draft round"
            round_input.angle.outline.sections.clear()

        rounds, executors = make_stub_rounds(
            r3=stub_executor(valid_outputs["r3"], side_effect=rename_idea)
        )
        orchestrator, store, registry, _sleep = make_orchestrator(rounds)

        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        original_title = valid_outputs["r1"]["title"]
        context = registry.get(result.run_id).context
        assert result.status == RunStatus.SUCCEEDED
        assert context["r1"].title == original_title
        assert len(context["r2"].outline.sections) == 2
        assert store.get(result.run_id, "r1").payload["title"] == original_title
        assert executors["r4"].calls[0].idea.title == original_title

    def test_trends_input_falls_back_to_default_topics(self, make_stub_rounds, make_orchestrator):
        rounds, executors = make_stub_rounds()
        orchestrator, *_ = make_orchestrator(rounds)

        orchestrator.run(ArticleRequest())

        trends_input = executors["r0"].calls[0]
        assert trends_input.topics == ["electric bikes"]
        assert trends_input.geo == "IN"
        assert trends_input.timeframe == "today 12-m"

    def test_publish_input_carries_request_publish_options(
        self, make_stub_rounds, make_orchestrator
    ):
        rounds, executors = make_stub_rounds()
        orchestrator, *_ = make_orchestrator(rounds)

        orchestrator.run(ArticleRequest(topic="electric bikes", publish_status="publish"))

        assert executors["r8"].calls[0].status_override == "publish"

    def test_rounds_run_strictly_in_order(self, make_stub_rounds, make_orchestrator):
        call_order = []
        rounds, executors = make_stub_rounds()
        for round_key, executor in executors.items():
            executor.side_effect = lambda _input, round_key=round_key: call_order.append(round_key)
        orchestrator, *_ = make_orchestrator(rounds)

        orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert call_order == DEFAULT_SEQUENCE


class TestOrchestratorFailures:
    def test_execution_error_fails_run_and_stops_later_rounds(
        self, make_stub_rounds, make_orchestrator, stub_executor, valid_outputs
    ):
        failing_draft = stub_executor(valid_outputs["r3"], failures=99)
        rounds, executors = make_stub_rounds(r3=failing_draft)
        settings = PipelineSettings(retry_budget=0, retry_delay_seconds=0)
        orchestrator, store, registry, _sleep = make_orchestrator(rounds, settings=settings)

        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert result.status == RunStatus.FAILED
        assert result.ok is False
        assert result.article is None
        assert result.failed_round == "r3"
        assert result.error.startswith("execution_error")
        record = registry.get(result.run_id)
        assert record.current_round == "r3"
        assert record.finished_at is not None
        assert [artifact.round for artifact in store.list_for_pipeline(result.run_id)] == [
            "r0",
            "r1",
            "r2",
        ]
        assert executors["r4"].calls == []
        assert executors["r8"].calls == []

    def test_invalid_output_fails_without_persisting_or_retrying(
        self, make_stub_rounds, make_orchestrator, stub_executor, valid_outputs
    ):
        bad_angle = valid_outputs["r2"]
        bad_angle["outline"]["sections"] = []
        angle_executor = stub_executor(bad_angle)
        rounds, _executors = make_stub_rounds(r2=angle_executor)
        orchestrator, store, _registry, sleep = make_orchestrator(rounds)

        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert result.status == RunStatus.FAILED
        assert result.failed_round == "r2"
        assert result.error.startswith("validation_error")
        assert store.get(result.run_id, "r2") is None
        assert len(angle_executor.calls) == 1
        assert sleep.calls == []

    def test_retryable_round_is_invoked_budget_plus_one_times(
        self, make_stub_rounds, make_orchestrator, stub_executor, valid_outputs
    ):
        always_failing = stub_executor(valid_outputs["r1"], failures=99)
        rounds, _executors = make_stub_rounds(r1=always_failing)
        orchestrator, _store, _registry, sleep = make_orchestrator(rounds)

        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert result.status == RunStatus.FAILED
        assert len(always_failing.calls) == 3
        assert sleep.calls == [0.5, 0.5]
        assert [trace.attempt for trace in result.rounds if trace.round == "r1"] == [1, 2, 3]

    def test_retry_recovers_from_transient_failure(
        self, make_stub_rounds, make_orchestrator, stub_executor, valid_outputs
    ):
        flaky = stub_executor(valid_outputs["r4"], failures=1)
        rounds, _executors = make_stub_rounds(r4=flaky)
        orchestrator, store, _registry, sleep = make_orchestrator(rounds)

        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert result.status == RunStatus.SUCCEEDED
        assert len(flaky.calls) == 2
        assert sleep.calls == [0.5]
        assert store.get(result.run_id, "r4") is not None

    def test_non_retryable_round_fails_on_first_error(
        self, make_stub_rounds, make_orchestrator, stub_executor, valid_outputs
    ):
        failing = stub_executor(valid_outputs["r8"], failures=99)
        rounds, _executors = make_stub_rounds(r8={"executor": failing, "retryable": False})
        orchestrator, _store, _registry, sleep = make_orchestrator(rounds)

        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert result.failed_round == "r8"
        assert len(failing.calls) == 1
        assert sleep.calls == []

    def test_store_errors_are_retried(self, make_stub_rounds, make_orchestrator):
        rounds, executors = make_stub_rounds()
        store = FlakyStore(failing_round="r0", failures=1)
        orchestrator, _store, _registry, sleep = make_orchestrator(rounds, store=store)

        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert result.status == RunStatus.SUCCEEDED
        assert len(executors["r0"].calls) == 2
        assert [trace.kind for trace in result.rounds[:2]] == ["store_error", "success"]

    def test_store_errors_exhaust_budget(self, make_stub_rounds, make_orchestrator):
        rounds, _executors = make_stub_rounds()
        store = FlakyStore(failing_round="r5", failures=99)
        orchestrator, *_ = make_orchestrator(rounds, store=store)

        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert result.status == RunStatus.FAILED
        assert result.failed_round == "r5"
        assert result.error.startswith("store_error")

    def test_unexpected_store_faults_are_retried_as_store_errors(
        self, make_stub_rounds, make_orchestrator
    ):
        rounds, executors = make_stub_rounds()
        orchestrator, *_ = make_orchestrator(rounds, store=UnreachableStore(failing_round="r2"))

        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert result.status == RunStatus.FAILED
        assert result.failed_round == "r2"
        assert result.error == "store_error: ConnectionError: storage backend unreachable"
        assert len(executors["r2"].calls) == 3

    def test_input_build_failure_fails_the_round(self, make_stub_rounds, make_orchestrator):
        def broken_builder(upstream, request, pipeline_id, pipeline_settings):
            raise ValueError("outline missing")

        rounds, executors = make_stub_rounds(r3={"build_input": broken_builder})
        orchestrator, *_ = make_orchestrator(rounds)

        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert result.status == RunStatus.FAILED
        assert result.failed_round == "r3"
        assert "outline missing" in result.error
        assert executors["r3"].calls == []

    def test_execute_never_raises(self, make_stub_rounds):
        rounds, _executors = make_stub_rounds()
        registry = InMemoryRunRegistry()
        orchestrator = Orchestrator(rounds, ExplodingRunner(), registry, PipelineSettings())

        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert result.status == RunStatus.FAILED
        assert "runner crashed" in result.error
        assert registry.get(result.run_id).status == RunStatus.FAILED

    def test_overwriting_a_context_entry_fails_the_run(
        self, make_stub_rounds, make_orchestrator, valid_outputs
    ):
        rounds, _executors = make_stub_rounds()
        orchestrator, _store, registry, _sleep = make_orchestrator(rounds)
        registry.create(
            PipelineRunRecord(
                run_id="2024-10-27-0000abcd",
                topic="electric bikes",
                request=ArticleRequest(topic="electric bikes").model_dump(mode="json"),
                context={"r0": TrendsOutput.model_validate(valid_outputs["r0"])},
            )
        )

        result = orchestrator.execute("2024-10-27-0000abcd")

        assert issubclass(ContextConflictError, PipelineError)
        assert result.status == RunStatus.FAILED
        assert result.error == (
            "Internal error: ContextConflictError: Context already holds an output for r0"
        )

    def test_execute_unknown_run_reports_failure(self, make_stub_rounds, make_orchestrator):
        rounds, _executors = make_stub_rounds()
        orchestrator, *_ = make_orchestrator(rounds)

        result = orchestrator.execute("missing-run")

        assert result.status == RunStatus.FAILED
        assert "not found" in result.error

    def test_finished_run_is_not_executed_again(self, make_stub_rounds, make_orchestrator):
        rounds, executors = make_stub_rounds()
        orchestrator, *_ = make_orchestrator(rounds)
        first_result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        second_result = orchestrator.execute(first_result.run_id)

        assert second_result.status == RunStatus.SUCCEEDED
        assert second_result.article == first_result.article
        assert len(executors["r0"].calls) == 1


class TestOrchestratorAbort:
    def test_cancel_aborts_at_next_round_boundary(
        self, make_stub_rounds, make_orchestrator, stub_executor, valid_outputs
    ):
        holder = {}
        def cancel_during_round(round_input):
            holder["orchestrator"].cancel(round_input.pipeline_id)

        ideate_executor = stub_executor(valid_outputs["r1"], side_effect=cancel_during_round)
        rounds, executors = make_stub_rounds(r1=ideate_executor)
        orchestrator, store, registry, _sleep = make_orchestrator(rounds)
        holder["orchestrator"] = orchestrator

        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert result.status == RunStatus.ABORTED
        assert result.abort_reason == CANCELLED_ABORT_REASON
        assert result.error is None
        assert store.get(result.run_id, "r1") is not None
        assert executors["r2"].calls == []
        assert registry.get(result.run_id).current_round == "r1"

    def test_cancel_between_retries_aborts(
        self, make_stub_rounds, make_orchestrator, stub_executor, valid_outputs
    ):
        holder = {}
        failing = stub_executor(valid_outputs["r2"], failures=99)
        rounds, _executors = make_stub_rounds(r2=failing)

        def cancelling_sleep(seconds):
            holder["orchestrator"].cancel(holder["run_id"])

        orchestrator, *_ = make_orchestrator(rounds, sleep=cancelling_sleep)
        holder["orchestrator"] = orchestrator
        record = orchestrator.start_run(ArticleRequest(topic="electric bikes"))
        holder["run_id"] = record.run_id

        result = orchestrator.execute(record.run_id)

        assert result.status == RunStatus.ABORTED
        assert len(failing.calls) == 1

    def test_timeout_aborts_run(
        self, make_stub_rounds, make_orchestrator, stub_executor, valid_outputs
    ):
        now = {"value": 0.0}

        def advance_clock(_round_input):
            now["value"] += 120

        slow_trends = stub_executor(valid_outputs["r0"], side_effect=advance_clock)
        rounds, executors = make_stub_rounds(r0=slow_trends)
        settings = PipelineSettings(run_timeout_seconds=60, retry_delay_seconds=0)
        orchestrator, store, _registry, _sleep = make_orchestrator(
            rounds, settings=settings, clock=lambda: now["value"]
        )

        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert result.status == RunStatus.ABORTED
        assert "timeout" in result.abort_reason
        assert store.get(result.run_id, "r0") is not None
        assert executors["r1"].calls == []

    def test_cancel_finished_run_is_refused(self, make_stub_rounds, make_orchestrator):
        rounds, _executors = make_stub_rounds()
        orchestrator, *_ = make_orchestrator(rounds)
        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert orchestrator.cancel(result.run_id) is False


class TestRoundTable:
    def test_dependency_on_later_round_is_rejected(self, make_stub_rounds):
        rounds, _executors = make_stub_rounds()
        broken = (replace(rounds[0], depends_on=("r1",)), *rounds[1:])

        with pytest.raises(ValueError, match="depends on rounds that run later"):
            Orchestrator(broken, RoundRunner(InMemoryArtifactStore()), InMemoryRunRegistry())

    def test_duplicate_round_is_rejected(self, make_stub_rounds):
        rounds, _executors = make_stub_rounds()

        with pytest.raises(ValueError, match="declared twice"):
            Orchestrator(
                (*rounds, rounds[-1]),
                RoundRunner(InMemoryArtifactStore()),
                InMemoryRunRegistry(),
            )

    def test_custom_round_subset_runs(self, make_stub_rounds, make_orchestrator):
        rounds, _executors = make_stub_rounds()
        orchestrator, store, *_ = make_orchestrator(rounds[:2])

        result = orchestrator.run(ArticleRequest(topic="electric bikes"))

        assert result.status == RunStatus.SUCCEEDED
        assert result.article is None
        assert [artifact.round for artifact in store.list_for_pipeline(result.run_id)] == [
            "r0",
            "r1",
        ]

    def test_round_definition_defaults_to_retryable(self):
        definition = RoundDefinition(
            round_id="r0", name="trends", executor=lambda _: {}, build_input=lambda *_: None
        )

        assert definition.retryable is True
        assert definition.depends_on == ()
