"""Background quantity polling on a Qt timer."""

import logging
from typing import Optional

from PySide6.QtCore import QObject, QThread, QTimer, Signal

from field_stock.config import Config
from field_stock.errors import RemoteError
from field_stock.sync.synchronizer import (
    POLL_OK,
    POLL_SUSPENDED,
    QuantitySynchronizer,
)

logger = logging.getLogger(__name__)


class PollWorker(QThread):
    """Fetches one inventory snapshot off the main thread."""

    fetched = Signal(object)  # dict[str, Part]
    error = Signal(object)  # Exception

    def __init__(self, synchronizer: QuantitySynchronizer):
        super().__init__()
        self.synchronizer = synchronizer

    def run(self):
        try:
            self.fetched.emit(self.synchronizer.fetch_quantities())
        except Exception as e:
            self.error.emit(e)


class SyncScheduler(QObject):
    """Drives ``QuantitySynchronizer`` polls from a ``QTimer``.

    The fetch runs in a ``PollWorker``; the result is applied to the mirror
    in the slot on the main thread. A tick that arrives while a poll is
    still running is dropped. When the synchronizer suspends after repeated
    failures the timer is stopped and restarted once the cool-down ends.
    """

    synced = Signal()
    failed = Signal(str)  # error message
    suspended = Signal(int)  # cool-down in ms
    resumed = Signal()

    def __init__(self, synchronizer: QuantitySynchronizer,
                 interval_ms: Optional[int] = None, parent=None):
        super().__init__(parent)
        self.synchronizer = synchronizer
        self.interval_ms = (
            interval_ms if interval_ms is not None
            else Config.SYNC_INTERVAL_SECONDS * 1000
        )
        self._timer = QTimer(self)
        self._timer.timeout.connect(self.poll_now)
        self._worker: Optional[PollWorker] = None
        self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def is_polling(self) -> bool:
        return self._worker is not None

    def is_scheduled(self) -> bool:
        """True while the periodic timer is running."""
        return self._timer.isActive()

    def start(self):
        """Begin periodic polling. Call after the first full load."""
        self._enabled = True
        self._timer.start(self.interval_ms)

    def stop(self):
        """Stop polling, e.g. on logout. A running fetch is allowed to end."""
        self._enabled = False
        self._timer.stop()
        if self._worker is not None:
            self._worker.wait(int(Config.REMOTE_TIMEOUT_SECONDS * 1000))

    def notify_foreground(self):
        """The app became visible again; poll without waiting for the tick."""
        if self._enabled:
            self.poll_now()

    def poll_now(self):
        if not self._enabled or not self.synchronizer.mirror.loaded:
            return
        claim = self.synchronizer.begin_poll()
        if claim == POLL_SUSPENDED:
            self._enter_cooldown()
            return
        if claim != POLL_OK:
            return

        worker = PollWorker(self.synchronizer)
        worker.fetched.connect(self._on_fetched)
        worker.error.connect(self._on_error)
        worker.finished.connect(self._on_worker_done)
        self._worker = worker
        worker.start()

    def _on_fetched(self, fresh):
        if not self._enabled:
            # Stopped while the fetch was running; discard the snapshot
            self.synchronizer.abort_poll()
            return
        self.synchronizer.finish_poll(fresh)
        self.synced.emit()

    def _on_error(self, error):
        if not isinstance(error, RemoteError):
            self.synchronizer.abort_poll()
            logger.error("Quantity poll crashed: %s", error)
            self.failed.emit(str(error))
            return
        outcome = self.synchronizer.finish_poll(error=error)
        self.failed.emit(str(error))
        if outcome == POLL_SUSPENDED:
            self._enter_cooldown()

    def _on_worker_done(self):
        worker, self._worker = self._worker, None
        if worker is not None:
            worker.deleteLater()

    def _enter_cooldown(self):
        self._timer.stop()
        remaining = max(
            0,
            self.synchronizer.suspended_until - self.synchronizer.now(),
        )
        self.suspended.emit(remaining)
        QTimer.singleShot(remaining, self._resume)

    def _resume(self):
        if not self._enabled or self._timer.isActive():
            return
        if self.synchronizer.is_suspended():
            self._enter_cooldown()
            return
        self.synchronizer.resume_if_due()
        self.resumed.emit()
        self._timer.start(self.interval_ms)
        self.poll_now()
