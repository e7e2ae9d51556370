"""Sync orchestrator: replaces the live document in the vector store.

Stages run strictly in order, each consuming identifiers produced by the
previous one:

    start -> assistant_linked? -> artifact_ready -> cleanup_done? -> uploaded
          -> attached -> indexed

Any fatal error stops the run at its stage and is reported in the result.
Individual delete failures during cleanup are recorded but do not stop it.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..core.config import Settings
from ..core.errors import IndexingFailed, LiveSyncError, VectorStoreAPIError
from ..core.lock import SingleFlightLock
from .artifact import ArtifactStore
from .cleanup import CleanupSummary, cleanup_live_copies
from .vector_store import VectorStoreClient

logger = logging.getLogger(__name__)


class SyncStage(str, Enum):
    START = "start"
    ASSISTANT_LINKED = "assistant_linked"
    ARTIFACT_READY = "artifact_ready"
    CLEANUP_DONE = "cleanup_done"
    UPLOADED = "uploaded"
    ATTACHED = "attached"
    INDEXED = "indexed"
    FAILED = "failed"


class StepStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


class StepResult(BaseModel):
    stage: SyncStage
    status: StepStatus
    detail: Optional[str] = None
    started_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    finished_at: Optional[str] = None


class SyncResult(BaseModel):
    """Outcome of one sync run, returned to the invocation trigger."""

    ok: bool = False
    stage: SyncStage = SyncStage.START
    message: Optional[str] = None
    error: Optional[str] = None
    failed_stage: Optional[SyncStage] = None
    started_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    completed_at: Optional[str] = None
    steps: List[StepResult] = Field(default_factory=list)
    artifact_path: Optional[str] = None
    deleted: int = 0
    failed_deletes: int = 0
    cleanup: Optional[Dict[str, Any]] = None
    uploaded_file_id: Optional[str] = None
    batch_id: Optional[str] = None
    batch_status: Optional[str] = None
    store_file_count: Optional[int] = None


class _StageFailed(Exception):
    """Internal marker carrying the stage at which a fatal error happened."""

    def __init__(self, stage: SyncStage, error: Exception):
        self.stage = stage
        self.error = error
        super().__init__(str(error))


class SyncOrchestrator:
    """Runs the live document sync against one vector store."""

    def __init__(
        self,
        settings: Settings,
        store: Optional[ArtifactStore] = None,
        client: Optional[VectorStoreClient] = None,
    ):
        self.settings = settings
        self.store = store or ArtifactStore(settings)
        self.client = client or VectorStoreClient(settings)

    async def run(self) -> SyncResult:
        """Run every stage and return the result. Never raises for pipeline errors."""
        result = SyncResult()
        logger.info("Starting live sync")

        try:
            async with self._step(result, SyncStage.START) as step:
                self.settings.require_sync_credentials()
                path = self.store.resolve_path()
                result.artifact_path = str(path)
                lock = self._acquire_lock(path)
                step.detail = f"vector_store={self.settings.vector_store_id} artifact={path}"

            try:
                async with self.client:
                    await self._run_stages(result, path)
            finally:
                if lock is not None:
                    lock.release()

        except _StageFailed as failure:
            result.ok = False
            result.stage = SyncStage.FAILED
            result.failed_stage = failure.stage
            result.error = f"{failure.stage.value}: {failure.error}"
            logger.error(f"Live sync failed at {failure.stage.value}: {failure.error}")
        else:
            result.ok = True
            result.stage = SyncStage.INDEXED
            result.message = (
                f"Live document indexed (file_id={result.uploaded_file_id}, "
                f"deleted={result.deleted}, failed_deletes={result.failed_deletes})"
            )
            logger.info(result.message)

        result.completed_at = datetime.now(timezone.utc).isoformat()
        return result

    async def _run_stages(self, result: SyncResult, path: Path) -> None:
        settings = self.settings
        store_id = settings.vector_store_id

        if settings.assistant_id:
            async with self._step(result, SyncStage.ASSISTANT_LINKED) as step:
                await self.client.link_assistant(settings.assistant_id, store_id)
                step.detail = settings.assistant_id
        else:
            self._skip(result, SyncStage.ASSISTANT_LINKED, "no assistant configured")

        async with self._step(result, SyncStage.ARTIFACT_READY) as step:
            if settings.regenerate_artifact:
                await self.store.regenerate(path)
            else:
                await self.store.ensure_exists(path)
            step.detail = str(path)

        if settings.cleanup_old:
            async with self._step(result, SyncStage.CLEANUP_DONE) as step:
                summary = await self._cleanup(store_id)
                result.deleted = len(summary.deleted)
                result.failed_deletes = len(summary.failed)
                result.cleanup = summary.to_dict()
                step.detail = f"deleted={result.deleted} failed={result.failed_deletes}"
        else:
            self._skip(result, SyncStage.CLEANUP_DONE, "cleanup disabled")

        async with self._step(result, SyncStage.UPLOADED) as step:
            data = self.store.read_for_upload(path)
            result.uploaded_file_id = await self.client.upload_file(data, settings.live_filename)
            step.detail = result.uploaded_file_id

        async with self._step(result, SyncStage.ATTACHED) as step:
            result.batch_id = await self.client.create_file_batch(
                store_id,
                [result.uploaded_file_id],
                attributes={settings.document_tag_key: settings.live_marker},
            )
            try:
                result.batch_status = await self.client.poll_file_batch(store_id, result.batch_id)
            except IndexingFailed as e:
                result.batch_status = e.status
                raise
            step.detail = f"batch={result.batch_id} status={result.batch_status}"

        async with self._step(result, SyncStage.INDEXED) as step:
            result.store_file_count = await self._count_store_files(store_id)
            step.detail = f"store_files={result.store_file_count}"

    async def _cleanup(self, store_id: str) -> CleanupSummary:
        return await cleanup_live_copies(
            self.client,
            store_id,
            live_filename=self.settings.live_filename,
            marker=self.settings.live_marker,
            tag_key=self.settings.document_tag_key,
            limit=self.settings.list_limit,
        )

    async def _count_store_files(self, store_id: str) -> Optional[int]:
        try:
            files = await self.client.list_store_files(store_id, limit=self.settings.list_limit)
        except VectorStoreAPIError as e:
            logger.warning(f"Could not list vector store files after indexing: {e}")
            return None
        logger.info(f"Vector store now has {len(files)} files")
        return len(files)

    def _acquire_lock(self, path: Path) -> Optional[SingleFlightLock]:
        if not self.settings.single_flight:
            return None
        lock_path = self.settings.lock_path or path.with_name(path.name + ".lock")
        lock = SingleFlightLock(lock_path, self.settings.lock_stale_seconds)
        lock.acquire()
        return lock

    @asynccontextmanager
    async def _step(self, result: SyncResult, stage: SyncStage):
        step = StepResult(stage=stage, status=StepStatus.OK)
        result.steps.append(step)
        logger.info(f"Stage {stage.value}: started")
        try:
            yield step
        except LiveSyncError as e:
            step.status = StepStatus.FAILED
            step.detail = str(e)
            step.finished_at = datetime.now(timezone.utc).isoformat()
            raise _StageFailed(stage, e) from e
        step.finished_at = datetime.now(timezone.utc).isoformat()
        result.stage = stage
        logger.info(f"Stage {stage.value}: done{f' ({step.detail})' if step.detail else ''}")

    @staticmethod
    def _skip(result: SyncResult, stage: SyncStage, reason: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        result.steps.append(
            StepResult(
                stage=stage, status=StepStatus.SKIPPED, detail=reason, started_at=now, finished_at=now
            )
        )
        logger.info(f"Stage {stage.value}: skipped ({reason})")

