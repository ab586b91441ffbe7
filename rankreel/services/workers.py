"""Acquisition runners: where the blocking media acquisition actually executes.

``QtMediaAcquirer`` moves each acquisition onto its own ``QThread`` (the
same worker/thread wiring the timeline uses for background jobs) and reports
back on the GUI thread through queued signals, keyed by job id so results of
earlier jobs can never be mixed up with later ones.

``InlineAcquirer`` runs the acquisition as a scheduled callback on the
calling thread; it is used headless and in tests.
"""

from __future__ import annotations

import logging
from typing import Callable

from PySide6.QtCore import QObject, QThread, Signal, Slot

from ..core.errors import AcquisitionFailure
from ..core.scheduling import Scheduler
from ..media.acquisition import MediaAcquisitionService, MediaReference, MediaSource

logger = logging.getLogger(__name__)

DoneCallback = Callable[[MediaReference], None]
FailedCallback = Callable[[str], None]


class AcquisitionWorker(QObject):
    finished = Signal(int, object)  # job id, MediaReference
    failed = Signal(int, str)  # job id, reason

    def __init__(self, service: MediaAcquisitionService, source: MediaSource, job_id: int):
        super().__init__()
        self._service = service
        self._source = source
        self._job = job_id

    def run(self):  # executed in thread
        logger.debug("acquisition job %d started: %r", self._job, self._source)
        try:
            ref = self._service.acquire(self._source)
        except AcquisitionFailure as e:
            self.failed.emit(self._job, str(e))
            return
        except Exception as e:  # thread boundary: report, never kill the thread silently
            logger.exception("acquisition job %d crashed", self._job)
            self.failed.emit(self._job, f"unexpected error: {e}")
            return
        self.finished.emit(self._job, ref)


class QtMediaAcquirer(QObject):
    def __init__(self, service: MediaAcquisitionService, parent: QObject | None = None):
        super().__init__(parent)
        self._service = service
        self._job_counter = 0
        self._callbacks: dict[int, tuple[DoneCallback, FailedCallback]] = {}
        self._threads: dict[int, tuple[QThread, AcquisitionWorker]] = {}

    def acquire(self, source: MediaSource, on_done: DoneCallback, on_failed: FailedCallback) -> None:
        self._job_counter += 1
        job = self._job_counter
        worker = AcquisitionWorker(self._service, source, job)
        thread = QThread()
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.finished.connect(self._onFinished)
        worker.failed.connect(self._onFailed)
        worker.finished.connect(lambda *_: thread.quit())
        worker.failed.connect(lambda *_: thread.quit())
        thread.finished.connect(worker.deleteLater)
        thread.finished.connect(lambda: self._clearThread(job))
        self._callbacks[job] = (on_done, on_failed)
        self._threads[job] = (thread, worker)
        thread.start()

    def busy(self) -> bool:
        return bool(self._callbacks)

    def shutdown(self, timeout_ms: int = 2000) -> None:
        for thread, _ in list(self._threads.values()):
            if thread.isRunning():
                thread.quit()
                thread.wait(timeout_ms)

    @Slot(int, object)
    def _onFinished(self, job: int, ref: MediaReference):
        callbacks = self._callbacks.pop(job, None)
        if callbacks is not None:
            callbacks[0](ref)

    @Slot(int, str)
    def _onFailed(self, job: int, reason: str):
        callbacks = self._callbacks.pop(job, None)
        if callbacks is not None:
            callbacks[1](reason)

    def _clearThread(self, job: int):
        self._threads.pop(job, None)


class InlineAcquirer:
    def __init__(self, service: MediaAcquisitionService, scheduler: Scheduler):
        self._service = service
        self._scheduler = scheduler

    def acquire(self, source: MediaSource, on_done: DoneCallback, on_failed: FailedCallback) -> None:
        def run():
            try:
                ref = self._service.acquire(source)
            except AcquisitionFailure as e:
                on_failed(str(e))
                return
            on_done(ref)

        self._scheduler.call_later(0.0, run)


__all__ = ["AcquisitionWorker", "QtMediaAcquirer", "InlineAcquirer"]
