from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from django.utils import timezone
from pydantic import BaseModel

from content_pipeline.choices import OutcomeKind
from content_pipeline.exceptions import RoundExecutionError, RoundValidationError, StoreError
from content_pipeline.stores import ArtifactStore, StoreReceipt
from content_pipeline.validators import RoundValidator
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)

RoundExecutor = Callable[[BaseModel], Any]


@dataclass(frozen=True)
class RoundOutcome:
    ok: bool
    kind: str
    round: str
    pipeline_id: str
    started_at: datetime
    finished_at: datetime
    result: StoreReceipt | None = None
    output: BaseModel | None = None
    error: str | None = None
    field_path: str | None = None

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()


class RoundRunner:
    """
    Runs one round once: execute, validate, persist.

    Every failure is caught here and reported as an outcome; nothing raised by
    an executor reaches the orchestrator. The store is written at most once per
    call and only after validation succeeded.
    """

    def __init__(self, store: ArtifactStore, validator: RoundValidator | None = None):
        self.store = store
        self.validator = validator or RoundValidator()

    def run(self, round_id, pipeline_id: str, round_input, executor: RoundExecutor):
        round_key = str(round_id)
        started_at = timezone.now()

        logger.info("[RoundRunner] Round started", pipeline_id=pipeline_id, round=round_key)

        try:
            candidate = executor(round_input)
        except RoundExecutionError as e:
            return self._failure(OutcomeKind.EXECUTION_ERROR, round_key, pipeline_id, started_at, e)
        except Exception as e:
            # Unclassified executor faults are execution errors too.
            return self._failure(
                OutcomeKind.EXECUTION_ERROR,
                round_key,
                pipeline_id,
                started_at,
                e,
                error=f"{type(e).__name__}: {e}",
            )

        try:
            output = self.validator.validate(round_key, candidate)
        except RoundValidationError as e:
            return self._failure(
                OutcomeKind.VALIDATION_ERROR,
                round_key,
                pipeline_id,
                started_at,
                e,
                field_path=e.field_path,
            )

        try:
            receipt = self.store.put(pipeline_id, round_key, output.model_dump(mode="json"))
        except StoreError as e:
            return self._failure(OutcomeKind.STORE_ERROR, round_key, pipeline_id, started_at, e)
        except Exception as e:
            return self._failure(
                OutcomeKind.STORE_ERROR,
                round_key,
                pipeline_id,
                started_at,
                e,
                error=f"{type(e).__name__}: {e}",
            )

        finished_at = timezone.now()
        logger.info(
            "[RoundRunner] Round succeeded",
            pipeline_id=pipeline_id,
            round=round_key,
            storage_path=receipt.storage_path,
            duration_seconds=(finished_at - started_at).total_seconds(),
        )

        return RoundOutcome(
            ok=True,
            kind=OutcomeKind.SUCCESS,
            round=round_key,
            pipeline_id=pipeline_id,
            started_at=started_at,
            finished_at=finished_at,
            result=receipt,
            output=output,
        )

    def _failure(self, kind, round_key, pipeline_id, started_at, exc, error=None, field_path=None):
        finished_at = timezone.now()
        logger.warning(
            "[RoundRunner] Round failed",
            pipeline_id=pipeline_id,
            round=round_key,
            kind=str(kind),
            error=error or str(exc),
            field_path=field_path,
            exc_info=kind == OutcomeKind.EXECUTION_ERROR,
        )
        return RoundOutcome(
            ok=False,
            kind=kind,
            round=round_key,
            pipeline_id=pipeline_id,
            started_at=started_at,
            finished_at=finished_at,
            error=error or str(exc),
            field_path=field_path,
        )
