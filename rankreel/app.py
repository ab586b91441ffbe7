"""Application bootstrap: wires the engine to its collaborators and starts Qt."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from PySide6.QtWidgets import QApplication

from .config import Settings
from .core.attachment import VideoAttachment
from .core.preferences import PreferenceStore
from .core.scheduling import QtScheduler
from .core.sequence import SequenceEngine
from .core.timeline_store import InMemoryTimelineStore
from .media.acquisition import MediaAcquisitionService
from .services.workers import QtMediaAcquirer
from .ui.main_window import MainWindow


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run(settings: Optional[Settings] = None) -> int:
    settings = settings or Settings.from_env()
    configure_logging(settings)
    app = QApplication.instance() or QApplication(sys.argv)

    scheduler = QtScheduler()
    store = InMemoryTimelineStore(scheduler)
    engine = SequenceEngine(
        store,
        scheduler,
        preferences=PreferenceStore(settings.preferences_path),
        settings=settings,
    )
    acquirer = QtMediaAcquirer(MediaAcquisitionService(settings))
    window: Optional[MainWindow] = None

    def on_failed(item_id: str, reason: str) -> None:
        if window is None:
            return
        if item_id in engine:
            reason = f"Video for rank {engine.rank_of(item_id)} failed: {reason}"
        window.showError(reason)

    attachment = VideoAttachment(engine, acquirer, on_failed=on_failed)
    window = MainWindow(engine, attachment)
    window.show()
    try:
        return app.exec()
    finally:
        acquirer.shutdown()
