"""Artifact store: where the live document lives and how it is (re)generated.

The pipeline may run on a platform with a read-only or per-invocation
filesystem, so the artifact cannot be assumed present from an earlier build
step. ``ensure_exists`` regenerates it in place when it is missing.
"""

import logging
import tempfile
from pathlib import Path
from typing import Awaitable, Callable, Optional

from ..core.config import Settings
from ..core.errors import ArtifactGenerationFailed, ArtifactReadFailed, LiveSyncError
from .normalize import normalize_typography
from .scraper.base import Artifact
from .scraper.site_listing import LiveSiteScraper

logger = logging.getLogger(__name__)

ArtifactGenerator = Callable[[Path], Awaitable[None]]


class ArtifactStore:
    """Resolves, writes and regenerates the live artifact file."""

    def __init__(self, settings: Settings, generator: Optional[ArtifactGenerator] = None):
        self.settings = settings
        self._generator = generator or self._scrape_to

    def resolve_path(self) -> Path:
        """Resolve the artifact location.

        Precedence: explicit ``live_file_path`` > temporary directory when running
        serverless > ``public/knowledge`` under the project root.
        """
        explicit = self.settings.live_file_path
        if explicit:
            path = Path(explicit)
            return path if path.is_absolute() else (self.settings.project_root / path).resolve()

        if self.settings.is_serverless:
            return Path(tempfile.gettempdir()) / "knowledge" / self.settings.live_filename

        return self.settings.project_root / "public" / "knowledge" / self.settings.live_filename

    async def ensure_exists(self, path: Path) -> Path:
        """Make sure a non-empty artifact exists at ``path``, generating it if absent."""
        if self._is_present(path):
            logger.debug(f"Live artifact present: {path}")
            return path

        logger.info(f"Live artifact not found, generating: {path}")
        return await self.regenerate(path)

    async def regenerate(self, path: Path) -> Path:
        """Run the generator for exactly ``path`` and verify the result.

        Any generator failure surfaces as ArtifactGenerationFailed.
        """
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            await self._generator(path)
        except LiveSyncError as e:
            raise ArtifactGenerationFailed(f"Artifact generation failed for {path}: {e}") from e
        except OSError as e:
            raise ArtifactGenerationFailed(f"Could not write artifact {path}: {e}") from e
        except Exception as e:
            raise ArtifactGenerationFailed(
                f"Artifact generation failed for {path}: {type(e).__name__}: {e}"
            ) from e

        if not self._is_present(path):
            raise ArtifactGenerationFailed(f"Live artifact still missing after scrape: {path}")

        logger.info(f"Live artifact generated: {path} ({path.stat().st_size} bytes)")
        return path

    def write(self, artifact: Artifact, path: Path) -> Path:
        """Overwrite the artifact at ``path``."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(artifact.content, encoding="utf-8")
        logger.info(f"Saved live artifact: {path}")
        return path

    def read_for_upload(self, path: Path) -> bytes:
        """Normalize typography in place and return the bytes to upload.

        Raises:
            ArtifactReadFailed: The file is unreadable, not UTF-8 or cannot be rewritten
        """
        try:
            content = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ArtifactReadFailed(f"Live artifact {path} is not valid UTF-8: {e}") from e
        except OSError as e:
            raise ArtifactReadFailed(f"Could not read live artifact {path}: {e}") from e

        normalized = normalize_typography(content)
        if normalized != content:
            try:
                path.write_text(normalized, encoding="utf-8")
            except OSError as e:
                raise ArtifactReadFailed(f"Could not rewrite live artifact {path}: {e}") from e
        return normalized.encode("utf-8")

    @staticmethod
    def _is_present(path: Path) -> bool:
        try:
            return path.is_file() and path.stat().st_size > 0
        except OSError:
            return False

    async def _scrape_to(self, path: Path) -> None:
        artifact = await LiveSiteScraper(self.settings).scrape()
        self.write(artifact, path)
