"""Single-flight guard for one logical document.

Two overlapping runs of the pipeline could interleave their deletes and uploads
and leave zero or two live copies in the vector store. The guard is an
exclusive lock file created next to the artifact; a second run fails fast.
"""

import json
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Callable, Optional, Union

from live_kb_sync.core.errors import LockFailed, SyncInProgress

logger = logging.getLogger(__name__)


class SingleFlightLock:
    """Exclusive lock file with stale-lock recovery.

    A stale lock is moved aside under a unique name before it is removed, and
    only if its content is still the one judged stale. Two runs breaking the
    same stale lock cannot both end up holding it.

    Example:
        with SingleFlightLock(Path("/tmp/knowledge/live.txt.lock"), stale_after=900):
            ...  # cleanup + upload + attach
    """

    def __init__(
        self,
        path: Union[str, Path],
        stale_after: float,
        clock: Callable[[], float] = time.time,
    ):
        self.path = Path(path)
        self.stale_after = stale_after
        self._clock = clock
        self._held = False

    @property
    def held(self) -> bool:
        return self._held

    def acquire(self) -> None:
        """Take the lock.

        Raises:
            SyncInProgress: Another run holds a lock that is not stale
            LockFailed: The lock file cannot be created (e.g. read-only location)
        """
        try:
            acquired = self._acquire()
        except OSError as e:
            raise LockFailed(f"Cannot create lock {self.path}: {e}") from e

        if not acquired:
            raise SyncInProgress(f"Another sync run holds the lock {self.path}")

    def release(self) -> None:
        if not self._held:
            return
        self._held = False
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove lock {self.path}: {e}")
            return
        logger.debug(f"Released lock {self.path}")

    def _acquire(self) -> bool:
        self.path.parent.mkdir(parents=True, exist_ok=True)

        if self._try_create():
            return True

        stale = self._stale_payload()
        if stale is None or not self._move_aside(stale):
            return False
        return self._try_create()

    def _try_create(self) -> bool:
        try:
            fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False

        payload = {"pid": os.getpid(), "token": uuid.uuid4().hex, "acquired_at": self._clock()}
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f)

        self._held = True
        logger.debug(f"Acquired lock {self.path}")
        return True

    def _read(self, path: Path) -> Optional[str]:
        try:
            return path.read_bytes().decode("utf-8", errors="replace")
        except FileNotFoundError:
            return None

    def _stale_payload(self) -> Optional[str]:
        """Content of the current lock file if it is older than ``stale_after``."""
        raw = self._read(self.path)
        if raw is None:
            return None

        try:
            acquired_at = float(json.loads(raw)["acquired_at"])
        except (ValueError, KeyError, TypeError):
            # Unreadable payload: fall back to the file age
            try:
                acquired_at = self.path.stat().st_mtime
            except FileNotFoundError:
                return None

        if self._clock() - acquired_at <= self.stale_after:
            return None
        return raw

    def _move_aside(self, stale: str) -> bool:
        """Remove the stale lock if it still holds ``stale``. True when removed."""
        aside = self.path.with_name(f"{self.path.name}.{uuid.uuid4().hex}.stale")
        try:
            os.rename(self.path, aside)
        except FileNotFoundError:
            # Another run broke it first
            return False

        try:
            if self._read(aside) != stale:
                # A fresh lock replaced the stale one before the rename; restore it
                try:
                    os.link(aside, self.path)
                except FileExistsError:
                    pass
                return False
            logger.warning(f"Breaking stale lock: {self.path}")
            return True
        finally:
            aside.unlink(missing_ok=True)

    def __enter__(self) -> "SingleFlightLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
