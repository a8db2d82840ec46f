import time
from types import MappingProxyType

from django.utils import timezone

from content_pipeline.choices import OutcomeKind, RoundId, RunStatus
from content_pipeline.config import PipelineSettings
from content_pipeline.exceptions import ContextConflictError
from content_pipeline.registry import PipelineRunRecord, RunRegistry
from content_pipeline.rounds import check_round_order
from content_pipeline.schemas import ArticleRequest, ArticleResult, PipelineResult, RoundTrace
from content_pipeline.utils import generate_pipeline_id
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)

RETRYABLE_OUTCOME_KINDS = frozenset({OutcomeKind.EXECUTION_ERROR, OutcomeKind.STORE_ERROR})
CANCELLED_ABORT_REASON = "Cancelled by request"


class Orchestrator:
    """
    Drives one run through the configured rounds, strictly in order.

    pending -> running -> succeeded | failed | aborted. Each round sees only the
    outputs of the rounds it declares as dependencies. A failed round is
    retried with a fixed delay when both the round and the failure kind allow
    it; validation failures never are. Cancellation and the run timeout are
    honoured between rounds and between retries. `execute` never raises.
    """

    def __init__(
        self,
        rounds,
        runner,
        registry: RunRegistry,
        pipeline_settings: PipelineSettings | None = None,
        sleep=time.sleep,
        clock=time.monotonic,
    ):
        check_round_order(rounds)
        self.rounds = tuple(rounds)
        self.runner = runner
        self.registry = registry
        self.pipeline_settings = pipeline_settings or PipelineSettings()
        self.sleep = sleep
        self.clock = clock

    def start_run(self, request) -> PipelineRunRecord:
        if not isinstance(request, ArticleRequest):
            request = ArticleRequest.model_validate(request)

        record = PipelineRunRecord(
            run_id=generate_pipeline_id(),
            topic=request.topic,
            request=request.model_dump(mode="json"),
        )
        self.registry.create(record)
        logger.info("[Orchestrator] Pipeline run created", pipeline_id=record.run_id)
        return record

    def run(self, request) -> PipelineResult:
        record = self.start_run(request)
        return self.execute(record.run_id)

    def cancel(self, run_id: str) -> bool:
        cancelled = self.registry.request_cancel(run_id)
        logger.info("[Orchestrator] Cancellation requested", pipeline_id=run_id, accepted=cancelled)
        return cancelled

    def execute(self, run_id: str) -> PipelineResult:
        traces = []
        try:
            return self._execute(run_id, traces)
        except Exception as e:
            logger.error(
                "[Orchestrator] Unexpected error while running pipeline",
                pipeline_id=run_id,
                error=str(e),
                exc_info=True,
            )
            error = f"Internal error: {type(e).__name__}: {e}"
            try:
                record = self.registry.get(run_id)
                if record and not record.is_terminal:
                    self.registry.update_status(
                        run_id, RunStatus.FAILED, finished_at=timezone.now(), error=error
                    )
            except Exception as finalize_error:
                logger.error(
                    "[Orchestrator] Could not mark run as failed",
                    pipeline_id=run_id,
                    error=str(finalize_error),
                    exc_info=True,
                )
            return PipelineResult(
                run_id=run_id, status=RunStatus.FAILED, error=error, rounds=traces
            )

    def _execute(self, run_id, traces):
        record = self.registry.get(run_id)
        if record is None:
            logger.warning("[Orchestrator] Pipeline run not found", pipeline_id=run_id)
            return PipelineResult(
                run_id=run_id, status=RunStatus.FAILED, error=f"Pipeline run not found: {run_id}"
            )
        if record.status != RunStatus.PENDING:
            logger.warning(
                "[Orchestrator] Pipeline run is not pending",
                pipeline_id=run_id,
                status=record.status,
            )
            return self._result_from_record(record, traces)

        request = ArticleRequest.model_validate(record.request)
        timeout = self.pipeline_settings.run_timeout_seconds
        deadline = self.clock() + timeout if timeout else None

        record = self.registry.update_status(run_id, RunStatus.RUNNING, started_at=timezone.now())
        context = dict(record.context)

        logger.info(
            "[Orchestrator] Pipeline run started",
            pipeline_id=run_id,
            rounds=[str(round_definition.round_id) for round_definition in self.rounds],
        )

        for round_definition in self.rounds:
            round_key = str(round_definition.round_id)

            abort_reason = self._abort_reason(run_id, deadline)
            if abort_reason:
                return self._abort(run_id, abort_reason, traces)

            self.registry.update_status(run_id, RunStatus.RUNNING, current_round=round_key)
            # Rounds get copies so nothing they do can reach the run context.
            upstream = MappingProxyType(
                {
                    str(dep): context[str(dep)].model_copy(deep=True)
                    for dep in round_definition.depends_on
                }
            )

            try:
                round_input = round_definition.build_input(
                    upstream, request, run_id, self.pipeline_settings
                )
            except Exception as e:
                logger.error(
                    "[Orchestrator] Could not build round input",
                    pipeline_id=run_id,
                    round=round_key,
                    error=str(e),
                    exc_info=True,
                )
                return self._fail(run_id, round_key, f"input_error: {e}", traces)

            outcome, abort_reason = self._run_round(
                round_definition, run_id, round_input, traces, deadline
            )
            if abort_reason:
                return self._abort(run_id, abort_reason, traces)
            if not outcome.ok:
                error = f"{str(outcome.kind)}: {outcome.error}"
                return self._fail(run_id, round_key, error, traces)

            if round_key in context:
                raise ContextConflictError(f"Context already holds an output for {round_key}")
            context[round_key] = outcome.output
            self.registry.update_status(run_id, RunStatus.RUNNING, context=context)

        record = self.registry.update_status(
            run_id, RunStatus.SUCCEEDED, finished_at=timezone.now()
        )
        logger.info("[Orchestrator] Pipeline run succeeded", pipeline_id=run_id)
        return self._result_from_record(record, traces)

    def _run_round(self, round_definition, run_id, round_input, traces, deadline):
        round_key = str(round_definition.round_id)
        retry_budget = self.pipeline_settings.retry_budget
        attempt = 0

        while True:
            attempt += 1
            outcome = self.runner.run(round_key, run_id, round_input, round_definition.executor)
            traces.append(
                RoundTrace(
                    round=round_key,
                    attempt=attempt,
                    ok=outcome.ok,
                    kind=str(outcome.kind),
                    started_at=outcome.started_at,
                    finished_at=outcome.finished_at,
                    error=outcome.error,
                )
            )

            if outcome.ok:
                return outcome, None

            can_retry = (
                round_definition.retryable
                and outcome.kind in RETRYABLE_OUTCOME_KINDS
                and attempt <= retry_budget
            )
            if not can_retry:
                return outcome, None

            logger.warning(
                "[Orchestrator] Retrying round",
                pipeline_id=run_id,
                round=round_key,
                attempt=attempt,
                retry_budget=retry_budget,
                kind=str(outcome.kind),
                error=outcome.error,
            )
            self.sleep(self.pipeline_settings.retry_delay_seconds)

            abort_reason = self._abort_reason(run_id, deadline)
            if abort_reason:
                return outcome, abort_reason

    def _abort_reason(self, run_id, deadline):
        if self.registry.is_cancel_requested(run_id):
            return CANCELLED_ABORT_REASON
        if deadline is not None and self.clock() >= deadline:
            return (
                f"Run exceeded its timeout of {self.pipeline_settings.run_timeout_seconds} seconds"
            )
        return None

    def _fail(self, run_id, round_key, error, traces):
        record = self.registry.update_status(
            run_id,
            RunStatus.FAILED,
            current_round=round_key,
            finished_at=timezone.now(),
            error=error,
        )
        logger.error(
            "[Orchestrator] Pipeline run failed",
            pipeline_id=run_id,
            round=round_key,
            error=error,
        )
        return self._result_from_record(record, traces)

    def _abort(self, run_id, abort_reason, traces):
        record = self.registry.update_status(
            run_id,
            RunStatus.ABORTED,
            finished_at=timezone.now(),
            abort_reason=abort_reason,
        )
        logger.warning(
            "[Orchestrator] Pipeline run aborted",
            pipeline_id=run_id,
            round=record.current_round,
            abort_reason=abort_reason,
        )
        return self._result_from_record(record, traces)

    def _result_from_record(self, record, traces=None):
        article = None
        if record.status == RunStatus.SUCCEEDED:
            article = build_article_result(record.run_id, record.context)

        return PipelineResult(
            run_id=record.run_id,
            status=record.status,
            article=article,
            failed_round=record.current_round if record.status == RunStatus.FAILED else None,
            error=record.error,
            abort_reason=record.abort_reason,
            rounds=traces or [],
        )


def build_article_result(run_id, context) -> ArticleResult | None:
    meta = context.get(RoundId.META)
    polished = context.get(RoundId.POLISH)
    published = context.get(RoundId.PUBLISH)
    if meta is None or polished is None or published is None:
        return None

    return ArticleResult(
        pipeline_id=run_id,
        title=meta.title,
        content=polished.polished_blog,
        meta=meta,
        publish_result=published,
    )
