"""Rankings panel: list editor for the ranking sequence.

The panel is a pure view over ``SequenceEngine``: every user action calls one
of the engine operations and the widgets are refreshed from ``snapshot()``
whenever the engine notifies. Rows are kept per item id so that editing a
title does not rebuild (and unfocus) the row being typed into.

Signals:
    errorRaised(str): validation or attachment failure to show to the user.
"""

from __future__ import annotations

from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QColor
from PySide6.QtWidgets import (
    QColorDialog,
    QComboBox,
    QDoubleSpinBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
    QScrollArea,
    QVBoxLayout,
    QWidget,
)

from ...core.attachment import VideoAttachment
from ...core.errors import RankingError
from ...core.ranking import ItemView, LinkStatus, Platform, TRANSPARENT
from ...core.sequence import SequenceEngine
from ...utils.timefmt import format_duration, format_offset

MAX_UNCAPPED_DURATION = 600.0

_STATUS_TEXT = {
    LinkStatus.UNLINKED: "not on timeline yet",
    LinkStatus.PARTIALLY_LINKED: "linked",
    LinkStatus.FULLY_LINKED: "linked + video",
}


class _ColorButton(QPushButton):
    """Small swatch button; ``transparent`` renders as a checkerboard-ish grey."""

    def __init__(self, tooltip: str, parent=None):
        super().__init__(parent)
        self.setFixedSize(22, 22)
        self.setToolTip(tooltip)
        self._color = TRANSPARENT

    def color(self) -> str:
        return self._color

    def setColor(self, color: str):
        self._color = color
        shown = "#cccccc" if color == TRANSPARENT else color
        self.setStyleSheet(f"background:{shown};border:1px solid #555;")

    def pickColor(self) -> str | None:
        initial = QColor("#000000" if self._color == TRANSPARENT else self._color)
        chosen = QColorDialog.getColor(initial, self, self.toolTip())
        return chosen.name().upper() if chosen.isValid() else None


class RankingRow(QWidget):
    errorRaised = Signal(str)

    def __init__(self, item_id: str, engine: SequenceEngine, attachment: VideoAttachment, parent=None):
        super().__init__(parent)
        self.item_id = item_id
        self._engine = engine
        self._attachment = attachment
        self.setAcceptDrops(True)

        self.rank_label = QLabel()
        self.rank_label.setMinimumWidth(28)
        self.number_color = _ColorButton("Number Color")
        self.number_background = _ColorButton("Number Background")
        self.delete_btn = QPushButton("Delete")
        self.title_edit = QLineEdit()
        self.title_edit.setPlaceholderText("Enter title...")
        self.title_color = _ColorButton("Title Color")
        self.title_background = _ColorButton("Title Background")
        self.duration_spin = QDoubleSpinBox()
        self.duration_spin.setDecimals(1)
        self.duration_spin.setSingleStep(0.5)
        self.duration_spin.setSuffix(" s")
        self.platform_combo = QComboBox()
        for platform in Platform:
            self.platform_combo.addItem(platform.value.capitalize(), platform.value)
        self.url_edit = QLineEdit()
        self.url_edit.setPlaceholderText("Video URL...")
        self.fetch_btn = QPushButton("Fetch")
        self.status_label = QLabel()
        self.status_label.setStyleSheet("color:#aaa;font-size:11px;")

        top = QHBoxLayout()
        top.addWidget(self.rank_label)
        top.addWidget(self.number_color)
        top.addWidget(self.number_background)
        top.addStretch(1)
        top.addWidget(self.delete_btn)
        title_row = QHBoxLayout()
        title_row.addWidget(self.title_edit, stretch=1)
        title_row.addWidget(self.title_color)
        title_row.addWidget(self.title_background)
        title_row.addWidget(self.duration_spin)
        video_row = QHBoxLayout()
        video_row.addWidget(self.platform_combo)
        video_row.addWidget(self.url_edit, stretch=1)
        video_row.addWidget(self.fetch_btn)
        outer = QVBoxLayout()
        outer.setContentsMargins(6, 6, 6, 6)
        outer.addLayout(top)
        outer.addLayout(title_row)
        outer.addLayout(video_row)
        outer.addWidget(self.status_label)
        self.setLayout(outer)

        self.delete_btn.clicked.connect(lambda: self._call(self._engine.remove, self.item_id))
        self.title_edit.textEdited.connect(lambda text: self._set(title=text))
        self.url_edit.textEdited.connect(lambda text: self._set(source_url=text))
        self.duration_spin.valueChanged.connect(lambda value: self._set(duration=value))
        self.platform_combo.currentIndexChanged.connect(
            lambda _: self._set(platform=self.platform_combo.currentData())
        )
        self.fetch_btn.clicked.connect(lambda: self._call(self._attachment.fetch, self.item_id))
        for button, field in (
            (self.number_color, "number_color"),
            (self.number_background, "number_background"),
            (self.title_color, "title_color"),
            (self.title_background, "title_background"),
        ):
            button.clicked.connect(lambda _=False, b=button, f=field: self._pick(b, f))

    def refresh(self, view: ItemView):
        item = view.item
        widgets = (self.title_edit, self.url_edit, self.duration_spin, self.platform_combo)
        for w in widgets:
            w.blockSignals(True)
        try:
            self.rank_label.setText(f"{view.rank}.")
            self.rank_label.setStyleSheet(
                f"color:{item.number_color};font-weight:bold;font-size:16px;"
            )
            if self.title_edit.text() != item.title:
                self.title_edit.setText(item.title)
            if self.url_edit.text() != item.source_url:
                self.url_edit.setText(item.source_url)
            self.duration_spin.setRange(1.0, item.max_duration or MAX_UNCAPPED_DURATION)
            self.duration_spin.setValue(item.duration)
            self.platform_combo.setCurrentIndex(self.platform_combo.findData(item.platform.value))
        finally:
            for w in widgets:
                w.blockSignals(False)
        self.number_color.setColor(item.number_color)
        self.number_background.setColor(item.number_background)
        self.title_color.setColor(item.title_color)
        self.title_background.setColor(item.title_background)
        self.fetch_btn.setEnabled(not item.loading)
        status = "loading video..." if item.loading else _STATUS_TEXT[view.link_status]
        length = format_duration(item.duration)
        if item.max_duration is not None:
            length += f" of {format_duration(item.max_duration)}"
        self.status_label.setText(f"@ {format_offset(view.offset)}  |  {length}  |  {status}")

    # --- drag & drop of local video files ---
    def dragEnterEvent(self, event):  # type: ignore[override]
        if event.mimeData().hasUrls():
            event.acceptProposedAction()

    def dropEvent(self, event):  # type: ignore[override]
        urls = [u for u in event.mimeData().urls() if u.isLocalFile()]
        if not urls:
            return
        event.acceptProposedAction()
        self._call(self._attachment.drop, self.item_id, urls[0].toLocalFile())

    # --- helpers ---
    def _pick(self, button: _ColorButton, field: str):
        color = button.pickColor()
        if color:
            self._set(**{field: color})

    def _set(self, **fields):
        self._call(self._engine.update, self.item_id, **fields)

    def _call(self, fn, *args, **kwargs):
        try:
            fn(*args, **kwargs)
        except RankingError as e:
            self.errorRaised.emit(str(e))


class RankingsPanel(QWidget):
    errorRaised = Signal(str)

    def __init__(self, engine: SequenceEngine, attachment: VideoAttachment, parent=None):
        super().__init__(parent)
        self._engine = engine
        self._attachment = attachment
        self._rows: dict[str, RankingRow] = {}

        self.header_edit = QLineEdit()
        self.header_edit.setPlaceholderText("Enter header text for all rankings...")
        self.header_edit.setText(engine.header_text)
        self.default_buttons = [_ColorButton(f"Rank {i + 1} Color") for i in range(3)]
        self.add_btn = QPushButton("Add Ranking Item")

        defaults_row = QHBoxLayout()
        defaults_row.addWidget(QLabel("Default Colors for Top 3"))
        for index, button in enumerate(self.default_buttons):
            button.setText(str(index + 1))
            button.clicked.connect(lambda _=False, i=index: self._pickDefault(i))
            defaults_row.addWidget(button)
        defaults_row.addStretch(1)

        self._rows_layout = QVBoxLayout()
        self._rows_layout.setAlignment(Qt.AlignTop)  # type: ignore
        rows_container = QWidget()
        rows_container.setLayout(self._rows_layout)
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(rows_container)

        layout = QVBoxLayout()
        layout.addWidget(QLabel("Header Text (appears above all videos)"))
        layout.addWidget(self.header_edit)
        layout.addLayout(defaults_row)
        layout.addWidget(self.add_btn)
        layout.addWidget(scroll, stretch=1)
        self.setLayout(layout)

        self.header_edit.textEdited.connect(self._engine.set_header)
        self.add_btn.clicked.connect(lambda: self._call(self._engine.append))
        engine.subscribe(lambda _engine: self.refresh())
        self.refresh()

    def rows(self) -> list[RankingRow]:
        return [self._rows_layout.itemAt(i).widget() for i in range(self._rows_layout.count())]

    def refresh(self):
        for index, button in enumerate(self.default_buttons):
            button.setColor(self._engine.default_colors[index])
        snapshot = self._engine.snapshot()
        live = {view.item.id for view in snapshot}
        for item_id in list(self._rows):
            if item_id not in live:
                row = self._rows.pop(item_id)
                self._rows_layout.removeWidget(row)
                row.deleteLater()
        for index, view in enumerate(snapshot):
            row = self._rows.get(view.item.id)
            if row is None:
                row = RankingRow(view.item.id, self._engine, self._attachment)
                row.errorRaised.connect(self.errorRaised)
                self._rows[view.item.id] = row
            if self._rows_layout.indexOf(row) != index:
                self._rows_layout.removeWidget(row)
                self._rows_layout.insertWidget(index, row)
            row.refresh(view)

    def _pickDefault(self, index: int):
        color = self.default_buttons[index].pickColor()
        if color:
            self._call(self._engine.set_default_color, index, color)

    def _call(self, fn, *args):
        try:
            fn(*args)
        except RankingError as e:
            self.errorRaised.emit(str(e))


__all__ = ["RankingsPanel", "RankingRow"]
