# trackmix/widgets/track_table.py
from pathlib import Path

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QAbstractItemView, QComboBox, QHBoxLayout, QHeaderView, QLabel, QProgressBar,
    QPushButton, QTreeWidget, QTreeWidgetItem, QVBoxLayout, QWidget
)

from ..models.selection import TrackSelection
from ..models.track import ProbedFile, TrackKind

LANGUAGE_OPTIONS = [
    ("Auto", ""),
    ("Japanese (ja)", "ja"),
    ("English (en)", "en"),
    ("Chinese, Simplified (zh-Hans)", "zh-Hans"),
    ("Chinese, Traditional (zh-Hant)", "zh-Hant"),
    ("Chinese (zh)", "zh"),
    ("Korean (ko)", "ko"),
    ("French (fr)", "fr"),
    ("German (de)", "de"),
    ("Spanish (es)", "es"),
    ("Undetermined (und)", "und"),
]

COLUMNS = ["Track", "Codec", "Language", "Name", "Default", "Forced", "Details", "Output language"]
_LANG_COL = 7


def _flag_text(v: bool | None) -> str:
    if v is None: return "?"
    return "yes" if v else "no"


class TrackTable(QTreeWidget):
    pathsDropped = Signal(list)  # list[str]

    def __init__(self, *a, **kw):
        super().__init__(*a, **kw)
        self.setAcceptDrops(True)
        self.setColumnCount(len(COLUMNS))
        self.setHeaderLabels(COLUMNS)
        self.setRootIsDecorated(False)
        self.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.setUniformRowHeights(True)
        hdr = self.header()
        hdr.setStretchLastSection(False)
        for i in range(len(COLUMNS)):
            hdr.setSectionResizeMode(i, QHeaderView.ResizeToContents)
        hdr.setSectionResizeMode(3, QHeaderView.Stretch)

    def dragEnterEvent(self, event):
        """Accept the drag action if it contains file URLs."""
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
        else:
            super().dragEnterEvent(event)

    def dragMoveEvent(self, event):
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
        else:
            super().dragMoveEvent(event)

    def dropEvent(self, event):
        if event.mimeData().hasUrls():
            paths = []
            for url in event.mimeData().urls():
                if url.isLocalFile():
                    p = Path(url.toLocalFile())
                    if p.is_file(): paths.append(str(p))
            if paths:
                self.pathsDropped.emit(paths)
                event.acceptProposedAction()
                return
        super().dropEvent(event)


class TrackPanel(QWidget):
    """File picker, probe status and track table for one track kind."""
    fileRequested = Signal(str)                 # kind
    fileDropped = Signal(str, str)              # kind, path
    selectionToggled = Signal(str, str, bool)   # kind, track_id, selected
    languageChanged = Signal(str, str, str)     # kind, track_id, lang

    def __init__(self, kind: TrackKind, parent=None):
        super().__init__(parent)
        self.kind = kind
        self._probed: ProbedFile | None = None
        self._filling = False

        self.path_label = QLabel(f"No {kind.value} file selected")
        self.path_label.setTextInteractionFlags(Qt.TextSelectableByMouse)
        self.status_label = QLabel("")
        self.busy = QProgressBar(); self.busy.setRange(0, 0); self.busy.setFixedHeight(10); self.busy.hide()
        self.btn_add = QPushButton(f"Choose {kind.label} File…")
        self.btn_add.clicked.connect(lambda: self.fileRequested.emit(self.kind.value))

        self.table = TrackTable()
        self.table.pathsDropped.connect(lambda paths: self.fileDropped.emit(self.kind.value, paths[0]))
        self.table.itemChanged.connect(self._on_item_changed)

        top = QHBoxLayout(); top.addWidget(self.btn_add); top.addWidget(self.path_label, 1)
        v = QVBoxLayout(self)
        v.addLayout(top); v.addWidget(self.busy); v.addWidget(self.status_label); v.addWidget(self.table)

    @property
    def probed(self) -> ProbedFile | None:
        return self._probed

    def set_busy(self, path: str):
        self.path_label.setText(path)
        self.status_label.setText("Probing…")
        self.busy.show()
        self.table.clear()
        self._probed = None

    def set_error(self, path: str, err: str):
        self.busy.hide()
        self.path_label.setText(path)
        self.status_label.setText(f"Probe error: {err}")
        self.status_label.setStyleSheet("color: #c0392b;")
        self.table.clear()
        self._probed = None

    def clear(self):
        self.busy.hide()
        self.path_label.setText(f"No {self.kind.value} file selected")
        self.status_label.setText(""); self.status_label.setStyleSheet("")
        self.table.clear()
        self._probed = None

    def show_tracks(self, probed: ProbedFile, selection: TrackSelection):
        self._probed = probed
        self.busy.hide()
        self.status_label.setStyleSheet("")
        meta = [x for x in (probed.tracks[0].container, probed.tracks[0].file_size) if x] if probed.tracks else []
        self.status_label.setText(f"{len(probed.tracks)} {self.kind.value} track(s)" + (f" • {' • '.join(meta)}" if meta else ""))
        self.path_label.setText(str(probed.path))

        self._filling = True
        try:
            self.table.clear()
            for t in probed.tracks:
                item = QTreeWidgetItem([
                    f"#{t.track_id}", t.codec, t.language_name or t.lang or "", t.track_name or "",
                    _flag_text(t.is_default), _flag_text(t.is_forced), t.attributes or "", "",
                ])
                item.setData(0, Qt.UserRole, t.track_id)
                item.setFlags(item.flags() | Qt.ItemIsUserCheckable)
                checked = selection.is_selected(probed.path, t.track_id)
                item.setCheckState(0, Qt.CheckState.Checked if checked else Qt.CheckState.Unchecked)
                self.table.addTopLevelItem(item)

                combo = QComboBox()
                for label, value in LANGUAGE_OPTIONS:
                    combo.addItem(label, value)
                current = selection.lang_override(probed.path, t.track_id) or ""
                if (idx := combo.findData(current)) < 0:
                    combo.addItem(current, current); idx = combo.count() - 1
                combo.setCurrentIndex(idx)
                combo.currentIndexChanged.connect(
                    lambda _i, c=combo, tid=t.track_id: self.languageChanged.emit(self.kind.value, tid, c.currentData() or "")
                )
                self.table.setItemWidget(item, _LANG_COL, combo)
        finally:
            self._filling = False

    def _on_item_changed(self, item: QTreeWidgetItem, column: int):
        if self._filling or column != 0:
            return
        tid = item.data(0, Qt.UserRole)
        if tid is not None:
            self.selectionToggled.emit(self.kind.value, str(tid), item.checkState(0) == Qt.CheckState.Checked)

    def current_track_id(self) -> str | None:
        if item := self.table.currentItem():
            return item.data(0, Qt.UserRole)
        return None
