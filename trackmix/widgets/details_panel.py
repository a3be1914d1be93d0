# trackmix/widgets/details_panel.py
from PySide6.QtWidgets import QTreeWidget, QTreeWidgetItem, QHeaderView

from ..models.job import MixJobRecord
from ..models.track import Track


class DetailsPanel(QTreeWidget):
    def __init__(self, parent=None):
        super().__init__(parent)
        self.setHeaderLabels(["Property", "Value"])
        self.setUniformRowHeights(False)
        self.setRootIsDecorated(True)
        hdr = self.header()
        hdr.setSectionResizeMode(0, QHeaderView.ResizeToContents)
        hdr.setSectionResizeMode(1, QHeaderView.Stretch)

    def show_job(self, rec: MixJobRecord):
        self.clear()
        job = rec.job
        job_node = QTreeWidgetItem(["Job", f"#{job.id}"])
        self.addTopLevelItem(job_node)
        QTreeWidgetItem(job_node, ["Status", rec.status.value])
        if rec.message:
            QTreeWidgetItem(job_node, ["Message", rec.message])
        QTreeWidgetItem(job_node, ["Output", str(job.output_path)])
        QTreeWidgetItem(job_node, ["Created", job.created_at.strftime("%Y-%m-%d %H:%M:%S")])
        if rec.started_at:
            QTreeWidgetItem(job_node, ["Started", rec.started_at.strftime("%Y-%m-%d %H:%M:%S")])
        if rec.finished_at:
            QTreeWidgetItem(job_node, ["Finished", rec.finished_at.strftime("%Y-%m-%d %H:%M:%S")])

        # Inputs in output order
        for n, inp in enumerate(job.inputs, 1):
            inp_node = QTreeWidgetItem([f"Input {n}", inp.kind.label])
            self.addTopLevelItem(inp_node)
            QTreeWidgetItem(inp_node, ["File", str(inp.path)])
            for tid in inp.track_ids:
                lang = inp.language_for(tid)
                QTreeWidgetItem(inp_node, [f"Track #{tid}", f"language → {lang}" if lang else "language kept"])
        self.expandAll()

    def show_track(self, track: Track):
        self.clear()
        node = QTreeWidgetItem([f"{track.kind.label} track", f"#{track.track_id}"])
        self.addTopLevelItem(node)
        rows = [
            ("Codec", track.codec),
            ("Language", f"{track.language_name} ({track.lang})" if track.language_name and track.lang else track.lang),
            ("Name", track.track_name),
            ("Default", None if track.is_default is None else ("yes" if track.is_default else "no")),
            ("Forced", None if track.is_forced is None else ("yes" if track.is_forced else "no")),
            ("Charset", track.charset),
            ("Details", track.attributes),
            ("Container", track.container),
            ("File Size", track.file_size),
        ]
        for label, value in rows:
            if value:
                QTreeWidgetItem(node, [label, value])
        self.expandAll()
