"""
Test configuration and fixtures for Live KB Sync.
"""

from pathlib import Path
from typing import Dict, List, Optional

import pytest

from live_kb_sync.core.config import Settings
from live_kb_sync.core.errors import DeleteFailed, IndexingFailed, VectorStoreAPIError
from live_kb_sync.pipelines.vector_store import IndexedFileRef


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the process environment, rooted in tmp_path."""
    return Settings(
        openai_api_key="sk-test",
        vector_store_id="vs_test",
        assistant_id=None,
        openai_base_url="https://api.test",
        batch_poll_interval=0.01,
        batch_poll_timeout=1,
        live_file_path=None,
        lock_path=None,
        netlify=None,
        aws_lambda_function_name=None,
        ephemeral_storage=False,
        cleanup_old=True,
        regenerate_artifact=False,
        project_root=tmp_path,
        site_base_url="https://obec.test",
        kb_root_url="https://kb.test",
        kb_start_paths=("/",),
    )


class FakeVectorStore:
    """In-memory stand-in for VectorStoreClient.

    Uploaded files become store members once a batch is created, carrying the
    batch attributes, the same way the remote API records them.
    """

    def __init__(
        self,
        files: Optional[List[IndexedFileRef]] = None,
        fail_delete: tuple = (),
        batch_status: str = "completed",
        fail_listing: bool = False,
    ):
        self.files: Dict[str, IndexedFileRef] = {f.id: f for f in files or []}
        self.uploads: Dict[str, tuple] = {}
        self.fail_delete = set(fail_delete)
        self.batch_status = batch_status
        self.fail_listing = fail_listing
        self.calls: List[tuple] = []
        self._counter = 0

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def link_assistant(self, assistant_id, store_id):
        self.calls.append(("link_assistant", assistant_id, store_id))

    async def list_store_files(self, store_id, limit=100):
        self.calls.append(("list", store_id))
        if self.fail_listing:
            raise VectorStoreAPIError(503, "listing unavailable")
        return list(self.files.values())[:limit]

    async def resolve_filename(self, ref):
        return ref.filename or ""

    async def delete_store_file(self, store_id, membership_id):
        self.calls.append(("delete", membership_id))
        if membership_id in self.fail_delete:
            raise DeleteFailed(500, f"cannot delete {membership_id}")
        del self.files[membership_id]

    async def upload_file(self, data, filename):
        self._counter += 1
        file_id = f"file-{self._counter}"
        self.uploads[file_id] = (filename, data)
        self.calls.append(("upload", filename))
        return file_id

    async def create_file_batch(self, store_id, file_ids, attributes=None):
        self.calls.append(("batch", tuple(file_ids)))
        for file_id in file_ids:
            membership = f"vsf-{file_id}"
            self.files[membership] = IndexedFileRef(
                id=membership,
                file_id=file_id,
                filename=self.uploads[file_id][0],
                attributes=attributes or {},
            )
        return f"batch-{self._counter}"

    async def poll_file_batch(self, store_id, batch_id):
        if self.batch_status != "completed":
            raise IndexingFailed(self.batch_status)
        return self.batch_status


@pytest.fixture
def fake_vector_store():
    """Factory for in-memory vector stores."""
    return FakeVectorStore
