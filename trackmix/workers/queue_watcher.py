import logging

from PySide6.QtCore import QObject, Signal

from ..mixing.job_store import JobStore


class QueueWatcher(QObject):
    """Re-emits JobStore changes as Qt signals; receivers on the GUI thread get them queued."""
    job_changed = Signal(str, object)  # event, MixJobRecord snapshot

    def __init__(self, store: JobStore, parent=None):
        super().__init__(parent)
        self._unsubscribe = store.subscribe(self._on_store_change)

    def _on_store_change(self, event: str, record) -> None:
        self.job_changed.emit(event, record)

    def detach(self) -> None:
        self._unsubscribe()


class LogSignal(QObject):
    line = Signal(str)


class QtLogHandler(logging.Handler):
    """Forwards log records to the console widget through a signal."""

    def __init__(self, level=logging.INFO):
        super().__init__(level)
        self.emitter = LogSignal()
        self.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.emitter.line.emit(self.format(record))
        except Exception:
            self.handleError(record)
