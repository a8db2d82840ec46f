import copy
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from django.db import DatabaseError
from django.utils import timezone

from content_pipeline.choices import ROUND_STORAGE_FOLDERS
from content_pipeline.exceptions import StoreError
from content_pipeline.models import RoundArtifact
from roundforge.utils import get_roundforge_logger

logger = get_roundforge_logger(__name__)


def make_artifact_path(pipeline_id: str, round_id, persisted_at: datetime, ext: str = "json"):
    """Canonical artifact key, e.g. '2024-10/2024-10-27-a4e9c1f0/r3_draft.json'."""
    round_key = str(round_id)
    folder = ROUND_STORAGE_FOLDERS.get(round_key, "misc")
    return f"{persisted_at:%Y-%m}/{pipeline_id}/{round_key}_{folder}.{ext}"


@dataclass(frozen=True)
class StoredArtifact:
    pipeline_id: str
    round: str
    payload: dict[str, Any]
    persisted_at: datetime
    storage_path: str


@dataclass(frozen=True)
class StoreReceipt:
    pipeline_id: str
    round: str
    storage_path: str
    persisted_at: datetime
    created: bool


class ArtifactStore(Protocol):
    def put(self, pipeline_id: str, round_id, payload: dict[str, Any]) -> StoreReceipt: ...

    def get(self, pipeline_id: str, round_id) -> StoredArtifact | None: ...

    def list_for_pipeline(self, pipeline_id: str) -> list[StoredArtifact]: ...


class InMemoryArtifactStore:
    """Dict-backed store; safe to share between threads running different pipelines."""

    def __init__(self):
        self._artifacts: dict[tuple[str, str], StoredArtifact] = {}
        self._lock = threading.Lock()
        self.writes = 0

    def put(self, pipeline_id, round_id, payload):
        persisted_at = timezone.now()
        key = (pipeline_id, str(round_id))
        artifact = StoredArtifact(
            pipeline_id=pipeline_id,
            round=str(round_id),
            payload=copy.deepcopy(payload),
            persisted_at=persisted_at,
            storage_path=make_artifact_path(pipeline_id, round_id, persisted_at),
        )
        with self._lock:
            created = key not in self._artifacts
            self._artifacts[key] = artifact
            self.writes += 1

        return StoreReceipt(
            pipeline_id=pipeline_id,
            round=str(round_id),
            storage_path=artifact.storage_path,
            persisted_at=persisted_at,
            created=created,
        )

    def get(self, pipeline_id, round_id):
        with self._lock:
            artifact = self._artifacts.get((pipeline_id, str(round_id)))
        if artifact is None:
            return None
        return StoredArtifact(
            pipeline_id=artifact.pipeline_id,
            round=artifact.round,
            payload=copy.deepcopy(artifact.payload),
            persisted_at=artifact.persisted_at,
            storage_path=artifact.storage_path,
        )

    def list_for_pipeline(self, pipeline_id):
        with self._lock:
            keys = sorted(key for key in self._artifacts if key[0] == pipeline_id)
        return [self.get(*key) for key in keys]


class DjangoArtifactStore:
    """RoundArtifact rows, one per (pipeline_id, round)."""

    def put(self, pipeline_id, round_id, payload):
        persisted_at = timezone.now()
        storage_path = make_artifact_path(pipeline_id, round_id, persisted_at)
        try:
            _artifact, created = RoundArtifact.objects.update_or_create(
                pipeline_id=pipeline_id,
                round=str(round_id),
                defaults={
                    "payload": payload,
                    "persisted_at": persisted_at,
                    "storage_path": storage_path,
                },
            )
        except DatabaseError as e:
            logger.error(
                "[DjangoArtifactStore] Failed to persist round artifact",
                pipeline_id=pipeline_id,
                round=str(round_id),
                error=str(e),
                exc_info=True,
            )
            raise StoreError(f"Could not persist {round_id} for {pipeline_id}: {e}") from e

        logger.info(
            "[DjangoArtifactStore] Round artifact persisted",
            pipeline_id=pipeline_id,
            round=str(round_id),
            storage_path=storage_path,
            created=created,
        )

        return StoreReceipt(
            pipeline_id=pipeline_id,
            round=str(round_id),
            storage_path=storage_path,
            persisted_at=persisted_at,
            created=created,
        )

    def get(self, pipeline_id, round_id):
        try:
            artifact = RoundArtifact.objects.filter(
                pipeline_id=pipeline_id, round=str(round_id)
            ).first()
        except DatabaseError as e:
            raise StoreError(f"Could not read {round_id} for {pipeline_id}: {e}") from e

        if not artifact:
            return None
        return self._to_stored_artifact(artifact)

    def list_for_pipeline(self, pipeline_id):
        try:
            artifacts = list(
                RoundArtifact.objects.filter(pipeline_id=pipeline_id).order_by("round")
            )
        except DatabaseError as e:
            raise StoreError(f"Could not list artifacts for {pipeline_id}: {e}") from e

        return [self._to_stored_artifact(artifact) for artifact in artifacts]

    @staticmethod
    def _to_stored_artifact(artifact):
        return StoredArtifact(
            pipeline_id=artifact.pipeline_id,
            round=artifact.round,
            payload=artifact.payload,
            persisted_at=artifact.persisted_at,
            storage_path=artifact.storage_path,
        )
