# trackmix/widgets/queue_tree.py
from PySide6.QtCore import Qt
from PySide6.QtGui import QBrush, QColor
from PySide6.QtWidgets import QAbstractItemView, QHeaderView, QProgressBar, QTreeWidget, QTreeWidgetItem

from ..models.job import JobStatus, MixJobRecord

COLUMNS = ["#", "Created", "Output", "Tracks", "Status", "Progress"]
_STATUS_COL, _PROGRESS_COL = 4, 5

_STATUS_COLORS = {
    JobStatus.SUCCESS: "#27ae60",
    JobStatus.FAILED: "#c0392b",
    JobStatus.CANCELLED: "#7f8c8d",
    JobStatus.RUNNING: "#2980b9",
}


class JobQueueTree(QTreeWidget):
    """Mix job list, newest on top."""

    def __init__(self, *a, **kw):
        super().__init__(*a, **kw)
        self.setColumnCount(len(COLUMNS))
        self.setHeaderLabels(COLUMNS)
        self.setRootIsDecorated(False)
        self.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.setUniformRowHeights(True)
        self._items: dict[int, QTreeWidgetItem] = {}

        hdr = self.header()
        hdr.setStretchLastSection(False)
        for i in range(len(COLUMNS)):
            hdr.setSectionResizeMode(i, QHeaderView.ResizeToContents)
        hdr.setSectionResizeMode(2, QHeaderView.Stretch)

    def upsert(self, rec: MixJobRecord):
        if (item := self._items.get(rec.id)) is None:
            item = QTreeWidgetItem([str(rec.id), rec.job.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                                    str(rec.job.output_path), str(rec.job.track_count), "", ""])
            item.setData(0, Qt.UserRole, rec.id)
            self.insertTopLevelItem(0, item)
            bar = QProgressBar(); bar.setRange(0, 100); bar.setFixedHeight(12); bar.setTextVisible(True)
            self.setItemWidget(item, _PROGRESS_COL, bar)
            self._items[rec.id] = item

        item.setText(_STATUS_COL, rec.status.value)
        item.setToolTip(_STATUS_COL, rec.message or "")
        color = _STATUS_COLORS.get(rec.status)
        item.setForeground(_STATUS_COL, QBrush(QColor(color)) if color else QBrush())
        if bar := self.itemWidget(item, _PROGRESS_COL):
            bar.setValue(rec.progress)

    def remove(self, job_id: int):
        if (item := self._items.pop(job_id, None)) is not None:
            self.takeTopLevelItem(self.indexOfTopLevelItem(item))

    def current_job_id(self) -> int | None:
        if item := self.currentItem():
            return item.data(0, Qt.UserRole)
        return None

    def reset(self, records: list[MixJobRecord]):
        self.clear(); self._items.clear()
        for rec in sorted(records, key=lambda r: r.id):
            self.upsert(rec)
