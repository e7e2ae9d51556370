"""Thin async client for the remote vector store API (OpenAI-compatible).

Operations used by the sync pipeline:
- upload file:        POST   /v1/files
- file metadata:      GET    /v1/files/{file_id}
- list store files:   GET    /v1/vector_stores/{store_id}/files
- delete store file:  DELETE /v1/vector_stores/{store_id}/files/{id}
- create file batch:  POST   /v1/vector_stores/{store_id}/file_batches
- file batch status:  GET    /v1/vector_stores/{store_id}/file_batches/{batch_id}
- link assistant:     POST   /v1/assistants/{assistant_id}

Every failure (HTTP status, transport, malformed JSON) is normalized into
``VectorStoreAPIError(status, message)`` or one of its operation subclasses.
Nothing is retried here; callers decide what a failure means for the run.
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Type

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..core.config import Settings
from ..core.errors import (
    AssistantLinkFailed,
    BatchCreateFailed,
    DeleteFailed,
    IndexingFailed,
    IndexingTimeout,
    UploadFailed,
    VectorStoreAPIError,
)
from ..core.polling import PollOutcome, poll_until

logger = logging.getLogger(__name__)

# Assistants v2 header, required by the vector store and assistant endpoints
BETA_HEADERS = {"OpenAI-Beta": "assistants=v2"}


class BatchStatus(str, Enum):
    """File batch states reported by the API."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


BATCH_SUCCESS = (BatchStatus.COMPLETED.value,)
BATCH_FAILURE = (BatchStatus.FAILED.value, BatchStatus.CANCELLED.value)


class IndexedFileRef(BaseModel):
    """A file's membership in a vector store.

    ``id`` is the membership id used for deletion; ``file_id`` is the
    underlying uploaded file, which changes with every upload.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    file_id: str
    filename: Optional[str] = None
    status: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, record: Dict[str, Any]) -> Optional["IndexedFileRef"]:
        """Build a ref from a list record; records carry the file id in varying places."""
        nested = record.get("file") if isinstance(record.get("file"), dict) else {}
        file_id = record.get("file_id") or nested.get("id") or record.get("id")
        membership_id = record.get("id") or file_id
        if not membership_id:
            return None

        return cls(
            id=membership_id,
            file_id=file_id,
            filename=record.get("filename") or nested.get("filename") or None,
            status=record.get("status"),
            attributes=record.get("attributes") or {},
        )


def _error_message(payload: Any, text: str, status: int) -> str:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return text.strip() or f"HTTP {status}"


class VectorStoreClient:
    """Async client for file upload, indexing and cleanup against one API base URL.

    Example:
        async with VectorStoreClient(settings) as client:
            file_id = await client.upload_file(data, "live.txt")
            batch_id = await client.create_file_batch(store_id, [file_id])
            await client.poll_file_batch(store_id, batch_id)
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self._clock = clock

    def get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client (lazy initialization)."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.openai_base_url,
                timeout=self.settings.http_timeout,
                headers={"Accept": "application/json"},
            )
            logger.debug(f"Created vector store HTTP client for {self.settings.openai_base_url}")
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "VectorStoreClient":
        return self

    async def __aexit__(self, _exc_type, _exc_val, _exc_tb) -> None:
        await self.aclose()

    def _headers(self, beta: bool) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.settings.api_key or ''}"}
        if beta:
            headers.update(BETA_HEADERS)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        beta: bool = True,
        error_cls: Type[VectorStoreAPIError] = VectorStoreAPIError,
        **kwargs,
    ) -> Tuple[int, Dict[str, Any]]:
        """Send a request and return ``(status, json_body)``.

        Raises:
            error_cls: On transport errors, non-2xx answers and non-object JSON bodies
        """
        try:
            response = await self.get_client().request(
                method, path, headers=self._headers(beta), **kwargs
            )
        except httpx.HTTPError as e:
            raise error_cls(None, f"{method} {path} failed: {e}") from e

        text = response.text
        payload: Any = None
        malformed = False
        if text.strip():
            try:
                payload = response.json()
            except ValueError:
                malformed = True

        if not response.is_success:
            message = _error_message(payload, text, response.status_code)
            raise error_cls(response.status_code, f"{method} {path} failed: {message}")

        if malformed or (payload is not None and not isinstance(payload, dict)):
            raise error_cls(response.status_code, f"{method} {path} returned malformed JSON")

        return response.status_code, payload or {}

    async def upload_file(self, data: bytes, filename: str) -> str:
        """Upload ``data`` as ``filename`` and return the new file id."""
        status, payload = await self._request(
            "POST",
            "/v1/files",
            beta=False,
            error_cls=UploadFailed,
            data={"purpose": "assistants"},
            files={"file": (filename, data, "text/plain")},
        )
        file_id = payload.get("id")
        if not file_id:
            raise UploadFailed(status, "Upload succeeded but missing file id")

        logger.info(f"Uploaded file: {filename} -> file_id={file_id}")
        return file_id

    async def get_file(self, file_id: str) -> Dict[str, Any]:
        _, payload = await self._request("GET", f"/v1/files/{file_id}", beta=False)
        return payload

    async def list_store_files(self, store_id: str, limit: int = 100) -> List[IndexedFileRef]:
        """List one bounded page of files in the vector store."""
        _, payload = await self._request(
            "GET", f"/v1/vector_stores/{store_id}/files", params={"limit": limit}
        )
        records = payload.get("data") or []
        refs = []
        for record in records:
            if not isinstance(record, dict):
                continue
            try:
                ref = IndexedFileRef.from_api(record)
            except ValidationError as e:
                logger.warning(
                    f"Skipping malformed file record {record.get('id')!r} in {store_id}: "
                    f"{e.error_count()} invalid field(s)"
                )
                continue
            if ref is not None:
                refs.append(ref)

        if payload.get("has_more"):
            logger.warning(
                f"Vector store {store_id} has more than {limit} files; only the first page is used"
            )
        return refs

    async def resolve_filename(self, ref: IndexedFileRef) -> str:
        """Best-effort filename lookup; returns an empty string when unavailable."""
        if ref.filename:
            return ref.filename
        if not ref.file_id:
            return ""

        try:
            meta = await self.get_file(ref.file_id)
        except VectorStoreAPIError as e:
            logger.debug(f"Could not resolve filename for {ref.file_id}: {e}")
            return ""
        return meta.get("filename") or ""

    async def delete_store_file(self, store_id: str, membership_id: str) -> None:
        await self._request(
            "DELETE",
            f"/v1/vector_stores/{store_id}/files/{membership_id}",
            error_cls=DeleteFailed,
        )
        logger.info(f"Deleted {membership_id} from vector store {store_id}")

    async def create_file_batch(
        self,
        store_id: str,
        file_ids: Sequence[str],
        attributes: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Attach files to the vector store and return the batch id."""
        body: Dict[str, Any] = {"file_ids": list(file_ids)}
        if attributes:
            body["attributes"] = attributes

        status, payload = await self._request(
            "POST",
            f"/v1/vector_stores/{store_id}/file_batches",
            error_cls=BatchCreateFailed,
            json=body,
        )
        batch_id = payload.get("id")
        if not batch_id:
            raise BatchCreateFailed(status, "Missing file_batch id")

        logger.info(f"Created file_batch: {batch_id}")
        return batch_id

    async def get_file_batch(self, store_id: str, batch_id: str) -> Dict[str, Any]:
        _, payload = await self._request(
            "GET", f"/v1/vector_stores/{store_id}/file_batches/{batch_id}"
        )
        return payload

    async def poll_file_batch(
        self,
        store_id: str,
        batch_id: str,
        timeout: Optional[float] = None,
        interval: Optional[float] = None,
    ) -> str:
        """Wait for a file batch to finish indexing.

        Returns:
            The terminal status (``completed``)

        Raises:
            IndexingFailed: Batch ended ``failed`` or ``cancelled``
            IndexingTimeout: No terminal status before ``timeout``
        """
        timeout = timeout if timeout is not None else self.settings.batch_poll_timeout
        interval = interval if interval is not None else self.settings.batch_poll_interval

        async def check() -> str:
            batch = await self.get_file_batch(store_id, batch_id)
            status = batch.get("status") or "unknown"
            counts = batch.get("file_counts")
            logger.info(f"Indexing status: {status}{f' | {counts}' if counts else ''}")
            return status

        result = await poll_until(
            check,
            interval=interval,
            timeout=timeout,
            success=BATCH_SUCCESS,
            failure=BATCH_FAILURE,
            sleep=self._sleep,
            clock=self._clock,
        )

        if result.outcome is PollOutcome.COMPLETED:
            return result.status
        if result.outcome is PollOutcome.FAILED:
            raise IndexingFailed(result.status)
        raise IndexingTimeout(timeout, result.status)

    async def link_assistant(self, assistant_id: str, store_id: str) -> None:
        """Point the assistant's file search at ``store_id``."""
        await self._request(
            "POST",
            f"/v1/assistants/{assistant_id}",
            error_cls=AssistantLinkFailed,
            json={"tool_resources": {"file_search": {"vector_store_ids": [store_id]}}},
        )
        logger.info(f"Assistant {assistant_id} now uses vector store {store_id}")
