"""
Cleanup of expired pastes.

`CleanupSweeper.sweep` runs at the start of every read and write path.
`BackgroundSweeper` optionally runs the same sweep on an interval.
"""
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

from pasteburn.database import PasteStore

logger = logging.getLogger(__name__)


class CleanupSweeper:
    def __init__(self, store: PasteStore, batch_size: Optional[int] = 500):
        self.store = store
        self.batch_size = batch_size

    def sweep(self, now: datetime) -> int:
        """Delete up to `batch_size` pastes whose expiry is at or before `now`."""
        removed = self.store.delete_expired(now, limit=self.batch_size)
        if removed:
            logger.debug(f"Swept {removed} expired paste(s)")
        return removed


class BackgroundSweeper:
    """Daemon thread calling `sweeper.sweep` every `interval` seconds."""

    def __init__(
        self,
        sweeper: CleanupSweeper,
        interval: float,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.sweeper = sweeper
        self.interval = interval
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="paste-sweeper", daemon=True)
        self._thread.start()
        logger.info(f"Background sweeper started (every {self.interval}s)")

    def stop(self) -> None:
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=self.interval + 1)
        self._thread = None
        logger.info("Background sweeper stopped")

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.sweeper.sweep(self.clock())
            except Exception as e:
                # The next tick retries; request paths sweep on their own anyway.
                logger.error(f"Background sweep failed: {type(e).__name__}: {e}")
