"""Tests for the artifact store."""

import tempfile
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from live_kb_sync.core.errors import (
    ArtifactGenerationFailed,
    ArtifactReadFailed,
    LiveSyncError,
    ScrapeFailed,
)
from live_kb_sync.pipelines.artifact import ArtifactStore
from live_kb_sync.pipelines.scraper.base import Artifact


def writing_generator(content="OBEC CHOMUTICE - LIVE DATA\n"):
    def write(path: Path):
        path.write_text(content, encoding="utf-8")

    return AsyncMock(side_effect=write)


class TestResolvePath:
    """Test artifact location precedence."""

    def test_default_under_public_knowledge(self, settings, tmp_path):
        store = ArtifactStore(settings)

        assert store.resolve_path() == (
            tmp_path / "public" / "knowledge" / "10_LIVE_obec_chomutice.txt"
        )

    def test_serverless_uses_temp_dir(self, settings):
        store = ArtifactStore(settings.model_copy(update={"netlify": "true"}))

        assert store.resolve_path() == (
            Path(tempfile.gettempdir()) / "knowledge" / "10_LIVE_obec_chomutice.txt"
        )

    def test_explicit_relative_path(self, settings, tmp_path):
        store = ArtifactStore(
            settings.model_copy(update={"live_file_path": Path("data/live.txt"), "netlify": "1"})
        )

        assert store.resolve_path() == (tmp_path / "data" / "live.txt").resolve()

    def test_explicit_absolute_path(self, settings, tmp_path):
        target = tmp_path / "abs" / "live.txt"
        store = ArtifactStore(settings.model_copy(update={"live_file_path": target}))

        assert store.resolve_path() == target


class TestEnsureExists:
    """Test on-demand regeneration."""

    @pytest.mark.asyncio
    async def test_existing_artifact_is_kept(self, settings, tmp_path):
        path = tmp_path / "live.txt"
        path.write_text("already here", encoding="utf-8")
        generator = writing_generator()

        result = await ArtifactStore(settings, generator=generator).ensure_exists(path)

        assert result == path
        generator.assert_not_awaited()
        assert path.read_text(encoding="utf-8") == "already here"

    @pytest.mark.asyncio
    async def test_missing_artifact_is_generated_at_same_path(self, settings, tmp_path):
        path = tmp_path / "knowledge" / "live.txt"
        generator = writing_generator()

        await ArtifactStore(settings, generator=generator).ensure_exists(path)

        generator.assert_awaited_once_with(path)
        assert path.read_text(encoding="utf-8").startswith("OBEC CHOMUTICE")

    @pytest.mark.asyncio
    async def test_empty_artifact_counts_as_missing(self, settings, tmp_path):
        path = tmp_path / "live.txt"
        path.write_text("", encoding="utf-8")
        generator = writing_generator()

        await ArtifactStore(settings, generator=generator).ensure_exists(path)

        generator.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_generator_that_writes_nothing_fails(self, settings, tmp_path):
        path = tmp_path / "live.txt"
        store = ArtifactStore(settings, generator=AsyncMock(return_value=None))

        with pytest.raises(ArtifactGenerationFailed, match="still missing"):
            await store.ensure_exists(path)

    @pytest.mark.asyncio
    async def test_scrape_failure_is_wrapped(self, settings, tmp_path):
        store = ArtifactStore(
            settings, generator=AsyncMock(side_effect=ScrapeFailed("all pages failed"))
        )

        with pytest.raises(ArtifactGenerationFailed, match="all pages failed"):
            await store.regenerate(tmp_path / "live.txt")


class TestReadAndWrite:
    """Test artifact write and upload preparation."""

    def test_write_overwrites(self, settings, tmp_path):
        path = tmp_path / "out" / "live.txt"
        store = ArtifactStore(settings)
        store.write(Artifact(filename="live.txt", content="old", source_url="x"), path)

        store.write(Artifact(filename="live.txt", content="new", source_url="x"), path)

        assert path.read_text(encoding="utf-8") == "new"

    def test_read_for_upload_normalizes_in_place(self, settings, tmp_path):
        path = tmp_path / "live.txt"
        path.write_text("„Obec“ – úřad", encoding="utf-8")

        data = ArtifactStore(settings).read_for_upload(path)

        assert data == '"Obec" - úřad'.encode("utf-8")
        assert path.read_text(encoding="utf-8") == '"Obec" - úřad'

    def test_non_utf8_artifact_is_reported(self, settings, tmp_path):
        path = tmp_path / "live.txt"
        path.write_bytes(b"OBEC \xe8\xe9 CHOMUTICE")

        with pytest.raises(ArtifactReadFailed, match="not valid UTF-8"):
            ArtifactStore(settings).read_for_upload(path)

    def test_unreadable_artifact_is_reported(self, settings, tmp_path):
        with pytest.raises(ArtifactReadFailed, match="Could not read"):
            ArtifactStore(settings).read_for_upload(tmp_path / "missing.txt")

    def test_read_errors_are_pipeline_errors(self):
        assert issubclass(ArtifactReadFailed, LiveSyncError)


class TestGeneratorErrors:
    """Test that any generator failure surfaces as ArtifactGenerationFailed."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            RuntimeError("boom"),
            UnicodeDecodeError("utf-8", b"\xe8", 0, 1, "invalid continuation byte"),
            PermissionError("read-only"),
        ],
    )
    async def test_unexpected_errors_are_wrapped(self, settings, tmp_path, error):
        store = ArtifactStore(settings, generator=AsyncMock(side_effect=error))

        with pytest.raises(ArtifactGenerationFailed) as exc_info:
            await store.regenerate(tmp_path / "live.txt")

        assert exc_info.value.__cause__ is error

    @pytest.mark.asyncio
    async def test_directory_creation_failure_is_wrapped(self, settings, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory", encoding="utf-8")
        store = ArtifactStore(settings, generator=writing_generator())

        with pytest.raises(ArtifactGenerationFailed, match="Could not write"):
            await store.regenerate(blocker / "knowledge" / "live.txt")
