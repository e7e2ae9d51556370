"""Error taxonomy for the live knowledge sync pipeline.

Fatal errors abort the remaining pipeline stages and surface as the run's
terminal failure. ``FetchFailed`` is scoped to one scraped page and
``DeleteFailed`` to one stale copy; both are recorded and skipped.
"""

from typing import Optional


class LiveSyncError(Exception):
    """Base class for every error raised by the pipeline."""

    pass


class ConfigError(LiveSyncError):
    """Raised when a required setting is missing. No network call is attempted."""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"Missing required settings: {', '.join(self.missing)}")


class FetchFailed(LiveSyncError):
    """Raised when a scraped page does not answer with a 2xx status."""

    def __init__(self, status: int, url: str):
        self.status = status
        self.url = url
        super().__init__(f"Fetch failed {status} {url}")


class ScrapeFailed(LiveSyncError):
    """Raised when no page of the site could be scraped at all."""

    pass


class ArtifactGenerationFailed(LiveSyncError):
    """Raised when the live artifact is still missing after regeneration."""

    pass


class ArtifactReadFailed(LiveSyncError):
    """Raised when the live artifact cannot be read or rewritten for upload."""

    pass


class SyncInProgress(LiveSyncError):
    """Raised when another run holds the single-flight lock for the same document."""

    pass


class LockFailed(LiveSyncError):
    """Raised when the single-flight lock file cannot be created or inspected."""

    pass


class VectorStoreAPIError(LiveSyncError):
    """Normalized error shape for every remote vector store failure.

    ``status`` is the HTTP status code, or ``None`` for transport errors.
    """

    def __init__(self, status: Optional[int], message: str):
        self.status = status
        self.message = message
        prefix = f"HTTP {status}: " if status is not None else ""
        super().__init__(f"{prefix}{message}")


class UploadFailed(VectorStoreAPIError):
    """Raised when the file upload fails or returns no file id."""

    pass


class DeleteFailed(VectorStoreAPIError):
    """Raised when removing a file from the vector store fails."""

    pass


class BatchCreateFailed(VectorStoreAPIError):
    """Raised when the file batch cannot be created or has no batch id."""

    pass


class AssistantLinkFailed(VectorStoreAPIError):
    """Raised when the assistant cannot be pointed at the vector store."""

    pass


class IndexingFailed(LiveSyncError):
    """Raised when a file batch reaches a terminal state other than ``completed``."""

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Indexing failed: {status}")


class IndexingTimeout(LiveSyncError):
    """Raised when a file batch does not reach a terminal state before the deadline."""

    def __init__(self, timeout: float, last_status: Optional[str] = None):
        self.timeout = timeout
        self.last_status = last_status
        super().__init__(
            f"Timeout waiting for vector store indexing after {timeout:g}s "
            f"(last status: {last_status or 'unknown'})"
        )
