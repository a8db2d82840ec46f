import copy
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Protocol

from django.db import transaction

from content_pipeline.choices import TERMINAL_RUN_STATUSES, RunStatus
from content_pipeline.exceptions import RunAlreadyFinalizedError, RunNotFoundError
from content_pipeline.models import PipelineRun
from content_pipeline.schemas import ROUND_OUTPUT_CONTRACTS, RoundOutput
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)

UPDATABLE_RUN_FIELDS = frozenset(
    {"current_round", "context", "started_at", "finished_at", "error", "abort_reason"}
)


@dataclass
class PipelineRunRecord:
    run_id: str
    topic: str | list[str]
    request: dict[str, Any] = field(default_factory=dict)
    status: str = RunStatus.PENDING
    current_round: str | None = None
    # round id -> validated output model, in completion order
    context: dict[str, RoundOutput] = field(default_factory=dict)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error: str | None = None
    abort_reason: str | None = None
    cancel_requested: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RUN_STATUSES


class RunRegistry(Protocol):
    def create(self, record: PipelineRunRecord) -> str: ...

    def update_status(self, run_id: str, status: str, **fields) -> PipelineRunRecord: ...

    def get(self, run_id: str) -> PipelineRunRecord | None: ...

    def request_cancel(self, run_id: str) -> bool: ...

    def is_cancel_requested(self, run_id: str) -> bool: ...

    def list_runs(self, status: str | None = None) -> list[PipelineRunRecord]: ...


def _check_update_fields(fields_to_update):
    unknown_fields = set(fields_to_update) - UPDATABLE_RUN_FIELDS
    if unknown_fields:
        raise ValueError(f"Cannot update pipeline run fields: {sorted(unknown_fields)}")


def serialize_context(context: dict[str, RoundOutput]) -> dict[str, Any]:
    return {str(round_id): output.model_dump(mode="json") for round_id, output in context.items()}


def deserialize_context(raw_context: dict[str, Any]) -> dict[str, RoundOutput]:
    return {
        round_id: ROUND_OUTPUT_CONTRACTS[round_id].model_validate(payload)
        for round_id, payload in (raw_context or {}).items()
    }


class InMemoryRunRegistry:
    def __init__(self):
        self._runs: dict[str, PipelineRunRecord] = {}
        self._lock = threading.Lock()

    def create(self, record):
        with self._lock:
            if record.run_id in self._runs:
                raise ValueError(f"Pipeline run already exists: {record.run_id}")
            self._runs[record.run_id] = copy.deepcopy(record)
        return record.run_id

    def update_status(self, run_id, status, **fields_to_update):
        _check_update_fields(fields_to_update)
        with self._lock:
            record = self._runs.get(run_id)
            if record is None:
                raise RunNotFoundError(run_id)
            if record.is_terminal:
                raise RunAlreadyFinalizedError(run_id, record.status)
            updated_record = replace(
                record, status=status, **copy.deepcopy(fields_to_update)
            )
            self._runs[run_id] = updated_record
            return copy.deepcopy(updated_record)

    def get(self, run_id):
        with self._lock:
            record = self._runs.get(run_id)
            return copy.deepcopy(record) if record else None

    def request_cancel(self, run_id):
        with self._lock:
            record = self._runs.get(run_id)
            if record is None:
                raise RunNotFoundError(run_id)
            if record.is_terminal:
                return False
            record.cancel_requested = True
            return True

    def is_cancel_requested(self, run_id):
        with self._lock:
            record = self._runs.get(run_id)
            return bool(record and record.cancel_requested)

    def list_runs(self, status=None):
        with self._lock:
            records = [
                copy.deepcopy(record)
                for record in self._runs.values()
                if status is None or record.status == status
            ]
        return records


class DjangoRunRegistry:
    """PipelineRun rows are the record of truth for run status."""

    def create(self, record):
        PipelineRun.objects.create(
            run_id=record.run_id,
            topic=record.topic,
            request=record.request,
            status=record.status,
            current_round=record.current_round or "",
            context=serialize_context(record.context),
            started_at=record.started_at,
            finished_at=record.finished_at,
            error=record.error or "",
            abort_reason=record.abort_reason or "",
            cancel_requested=record.cancel_requested,
        )
        logger.info(
            "[DjangoRunRegistry] Pipeline run created",
            pipeline_id=record.run_id,
            status=record.status,
        )
        return record.run_id

    def update_status(self, run_id, status, **fields_to_update):
        _check_update_fields(fields_to_update)
        with transaction.atomic():
            pipeline_run = PipelineRun.objects.select_for_update().filter(run_id=run_id).first()
            if not pipeline_run:
                raise RunNotFoundError(run_id)
            if pipeline_run.is_terminal:
                raise RunAlreadyFinalizedError(run_id, pipeline_run.status)

            update_fields = ["status", "updated_at"]
            pipeline_run.status = status
            for field_name, value in fields_to_update.items():
                if field_name == "context":
                    value = serialize_context(value)
                elif field_name in ("current_round", "error", "abort_reason"):
                    value = value or ""
                setattr(pipeline_run, field_name, value)
                update_fields.append(field_name)

            pipeline_run.save(update_fields=list(dict.fromkeys(update_fields)))

        return self._to_record(pipeline_run)

    def get(self, run_id):
        pipeline_run = PipelineRun.objects.filter(run_id=run_id).first()
        if not pipeline_run:
            return None
        return self._to_record(pipeline_run)

    def request_cancel(self, run_id):
        with transaction.atomic():
            pipeline_run = PipelineRun.objects.select_for_update().filter(run_id=run_id).first()
            if not pipeline_run:
                raise RunNotFoundError(run_id)
            if pipeline_run.is_terminal:
                return False
            pipeline_run.cancel_requested = True
            pipeline_run.save(update_fields=["cancel_requested", "updated_at"])
        return True

    def is_cancel_requested(self, run_id):
        return PipelineRun.objects.filter(run_id=run_id, cancel_requested=True).exists()

    def list_runs(self, status=None):
        pipeline_runs = PipelineRun.objects.all()
        if status is not None:
            pipeline_runs = pipeline_runs.filter(status=status)
        return [self._to_record(pipeline_run) for pipeline_run in pipeline_runs]

    @staticmethod
    def _to_record(pipeline_run):
        return PipelineRunRecord(
            run_id=pipeline_run.run_id,
            topic=pipeline_run.topic,
            request=pipeline_run.request,
            status=pipeline_run.status,
            current_round=pipeline_run.current_round or None,
            context=deserialize_context(pipeline_run.context),
            started_at=pipeline_run.started_at,
            finished_at=pipeline_run.finished_at,
            error=pipeline_run.error or None,
            abort_reason=pipeline_run.abort_reason or None,
            cancel_requested=pipeline_run.cancel_requested,
        )
