"""Main application window (UI layer).

Hosts the rankings panel next to a read-only listing of the timeline entities
the engine has placed, so the effect of every edit on the timeline is visible.
"""

from __future__ import annotations

from PySide6.QtCore import Qt
from PySide6.QtGui import QAction
from PySide6.QtWidgets import (
    QLabel,
    QListWidget,
    QMainWindow,
    QMessageBox,
    QSplitter,
    QStatusBar,
    QVBoxLayout,
    QWidget,
)

from ..core.attachment import VideoAttachment
from ..core.sequence import SequenceEngine
from ..utils.timefmt import format_duration, format_offset
from .components.rankings_panel import RankingsPanel


class MainWindow(QMainWindow):
    def __init__(self, engine: SequenceEngine, attachment: VideoAttachment):
        super().__init__()
        self.setWindowTitle("Rankreel")
        self.setGeometry(100, 100, 1000, 700)
        self.engine = engine
        self._createMenuBar()
        self._createLayout(attachment)
        self.setStatusBar(QStatusBar())
        engine.subscribe(lambda _engine: self._refreshTimeline())
        self._refreshTimeline()

    def _createMenuBar(self):
        menu_bar = self.menuBar()
        file_menu = menu_bar.addMenu("File")
        exit_action = QAction("Exit", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)
        about_menu = menu_bar.addMenu("About")
        about_action = QAction("About Rankreel", self)
        about_action.triggered.connect(self._showAboutDialog)
        about_menu.addAction(about_action)

    def _showAboutDialog(self):
        QMessageBox.about(
            self,
            "About Rankreel",
            "Rankreel\nRanked countdown videos for social media.",
        )

    def _createLayout(self, attachment: VideoAttachment):
        splitter = QSplitter()
        splitter.setOrientation(Qt.Horizontal)  # type: ignore

        self.rankings_panel = RankingsPanel(self.engine, attachment)
        self.rankings_panel.errorRaised.connect(self.showError)
        splitter.addWidget(self.rankings_panel)

        timeline_container = QWidget()
        timeline_layout = QVBoxLayout()
        timeline_layout.setContentsMargins(0, 0, 0, 0)
        label = QLabel("Timeline")
        label.setStyleSheet("color:#bbb;font-size:11px;padding:2px 4px;")
        timeline_layout.addWidget(label)
        self.timeline_list = QListWidget()
        timeline_layout.addWidget(self.timeline_list)
        timeline_container.setLayout(timeline_layout)
        splitter.addWidget(timeline_container)
        splitter.setStretchFactor(0, 2)
        splitter.setStretchFactor(1, 1)
        self.setCentralWidget(splitter)

    def showError(self, message: str):
        self.statusBar().showMessage(message, 5000)

    def _refreshTimeline(self):
        self.timeline_list.clear()
        entities = sorted(self.engine.store.list_entities(), key=lambda e: (e.start_offset, e.track_id))
        for e in entities:
            content = e.content if e.kind == "text" else e.name
            self.timeline_list.addItem(
                f"{format_offset(e.start_offset)}  +{format_duration(e.duration)}  "
                f"[{e.kind}] {content.strip() or e.name}"
            )
