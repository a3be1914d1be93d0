# trackmix/main_window.py
import logging
from pathlib import Path

from PySide6.QtCore import Qt, QThread, QUrl, Signal
from PySide6.QtGui import QAction, QDesktopServices, QGuiApplication
from PySide6.QtWidgets import (
    QDialog, QFileDialog, QHBoxLayout, QLabel, QMainWindow, QMenu, QMessageBox,
    QPushButton, QSplitter, QTabWidget, QTextEdit, QVBoxLayout, QWidget
)

from .errors import InvalidTransition, JobNotFound, SubmissionError
from .mixing.history import HistoryFile
from .mixing.job_store import REMOVED, JobStore
from .mixing.mix_queue import MixQueue
from .models.job import JobStatus
from .models.selection import TrackSelection
from .models.track import TrackKind
from .dialogs.prefs import PrefsDialog
from .utils.paths import default_output_path, extensions_for
from .utils.settings import config_dir, load_settings, save_settings
from .widgets.details_panel import DetailsPanel
from .widgets.queue_tree import JobQueueTree
from .widgets.track_table import TrackPanel
from .workers.info_probe import InfoProbeWorker
from .workers.muxer import MkvmergeMuxer
from .workers.queue_watcher import QtLogHandler, QueueWatcher

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    probeRequested = Signal(str, str)  # kind, path → runs on the probe thread

    def __init__(self, settings: dict | None = None):
        super().__init__()
        self.setWindowTitle("Track Mixer")
        self.resize(1280, 860)
        self.settings = settings or load_settings()
        self.selection = TrackSelection()

        # --- track panels ---------------------------------------------------
        self.tabs = QTabWidget()
        self.panels: dict[TrackKind, TrackPanel] = {}
        for kind in TrackKind:
            panel = TrackPanel(kind)
            panel.fileRequested.connect(self._choose_file)
            panel.fileDropped.connect(self._load_file)
            panel.selectionToggled.connect(self._on_track_toggled)
            panel.languageChanged.connect(self._on_track_language)
            panel.table.currentItemChanged.connect(lambda cur, prev, k=kind: self._show_track_details(k))
            self.panels[kind] = panel
            self.tabs.addTab(panel, kind.label)

        # --- queue ---------------------------------------------------------
        self.queue_label = QLabel("Queue: 0 jobs")
        self.queue_label.setStyleSheet("font-weight:600;")
        self.tree = JobQueueTree()
        self.tree.setContextMenuPolicy(Qt.CustomContextMenu)
        self.tree.customContextMenuRequested.connect(self._row_menu)
        self.tree.currentItemChanged.connect(lambda cur, prev: self._show_job_details())
        self.details = DetailsPanel()

        self.center_split = QSplitter(Qt.Horizontal)
        self.center_split.addWidget(self.tree)
        self.center_split.addWidget(self.details)
        self.center_split.setSizes([880, 400])

        self.console = QTextEdit(); self.console.setReadOnly(True)
        self.console.setPlaceholderText("mkvmerge and queue messages will appear here…")

        self.v_split = QSplitter(Qt.Vertical)
        self.v_split.addWidget(self.tabs)
        self.v_split.addWidget(self.center_split)
        self.v_split.addWidget(self.console)
        self.v_split.setSizes([340, 320, 160])

        self.btn_enqueue = QPushButton("Add to Queue…"); self.btn_enqueue.clicked.connect(self.enqueue)
        self.btn_reset = QPushButton("Reset Tracks"); self.btn_reset.clicked.connect(self.reset_tracks)
        self.btn_cancel = QPushButton("Cancel Job"); self.btn_cancel.clicked.connect(self.cancel_selected)
        self.btn_retry = QPushButton("Resubmit"); self.btn_retry.clicked.connect(self.resubmit_selected)
        self.btn_clear = QPushButton("Clear Finished"); self.btn_clear.clicked.connect(self.clear_finished)

        top = QHBoxLayout()
        for b in (self.btn_enqueue, self.btn_reset, self.btn_cancel, self.btn_retry, self.btn_clear): top.addWidget(b)
        top.addStretch()

        central = QWidget(); v = QVBoxLayout(central)
        v.addWidget(self.queue_label); v.addLayout(top); v.addWidget(self.v_split)
        self.setCentralWidget(central)

        m = self.menuBar().addMenu("&Options")
        act_prefs = QAction("Preferences…", self); act_prefs.triggered.connect(self.open_prefs); m.addAction(act_prefs)

        # --- logging into the console --------------------------------------
        self.log_handler = QtLogHandler()
        self.log_handler.emitter.line.connect(self.console.append)
        logging.getLogger("trackmix").addHandler(self.log_handler)

        # --- store, history, queue -----------------------------------------
        self.store = JobStore(history_limit=self.settings.get("history_limit") or None)
        self.history: HistoryFile | None = None
        next_id = None
        if self.settings.get("persist_history", True):
            self.history = HistoryFile(config_dir() / "history.json")
            self.store.restore(self.history.load(), next_id=self.history.next_id)
            next_id = self.history.next_id
            self.history.save(self.store)
            self.history.attach(self.store)
        self.queue = MixQueue.from_settings(self.settings, MkvmergeMuxer(self.settings),
                                            store=self.store, next_id=next_id)

        self.watcher = QueueWatcher(self.store, self)
        self.watcher.job_changed.connect(self._on_job_changed)
        self.tree.reset(self.store.list())

        # --- probe thread ----------------------------------------------------
        self.probe_worker = InfoProbeWorker(self.settings)
        self.probe_thread = QThread(self); self.probe_worker.moveToThread(self.probe_thread)
        self.probeRequested.connect(self.probe_worker.probe)
        self.probe_worker.probed.connect(self._on_probed)
        self.probe_thread.start()

        self._restore_layout()
        self._refresh_queue_label()

    def _restore_layout(self):
        if cs := self.settings.get("center_split_sizes"): self.center_split.setSizes([int(x) for x in cs])
        if vs := self.settings.get("v_split_sizes"): self.v_split.setSizes([int(x) for x in vs])

    def _save_layout(self):
        self.settings["center_split_sizes"] = self.center_split.sizes()
        self.settings["v_split_sizes"] = self.v_split.sizes()
        save_settings(self.settings)

    def closeEvent(self, e):
        self.queue.shutdown(cancel_running=True, wait=True)
        self.watcher.detach()
        if self.probe_thread.isRunning(): self.probe_thread.quit(); self.probe_thread.wait(3000)
        logging.getLogger("trackmix").removeHandler(self.log_handler)
        self._save_layout()
        super().closeEvent(e)

    # --- track side ----------------------------------------------------------

    def _choose_file(self, kind: str):
        k = TrackKind.parse(kind)
        exts = " ".join(f"*.{x}" for x in extensions_for(k.value))
        start = self.settings.get("last_output_dir") or str(Path.home())
        f, _ = QFileDialog.getOpenFileName(self, f"Select {k.value} file", start, f"{k.label} files ({exts});;All files (*)")
        if f: self._load_file(k.value, f)

    def _load_file(self, kind: str, path: str):
        k = TrackKind.parse(kind)
        self.selection.unload(k)
        self.panels[k].set_busy(path)
        self.probeRequested.emit(k.value, path)

    def _on_probed(self, kind: str, path: str, probed, err: str):
        k = TrackKind.parse(kind)
        panel = self.panels[k]
        if panel.path_label.text() != path:
            return  # a newer file was chosen meanwhile
        if err or probed is None:
            panel.set_error(path, err or "unknown error")
            return
        self.selection.load(k, probed)
        panel.show_tracks(probed, self.selection)
        if not probed.tracks:
            panel.status_label.setText(f"No {k.value} tracks in this file.")

    def _on_track_toggled(self, kind: str, track_id: str, selected: bool):
        if probed := self.panels[TrackKind.parse(kind)].probed:
            self.selection.set_selected(probed.path, track_id, selected)

    def _on_track_language(self, kind: str, track_id: str, lang: str):
        if probed := self.panels[TrackKind.parse(kind)].probed:
            self.selection.set_lang_override(probed.path, track_id, lang)

    def _show_track_details(self, kind: TrackKind):
        panel = self.panels[kind]
        if (probed := panel.probed) and (tid := panel.current_track_id()) is not None:
            if track := probed.track(tid):
                self.details.show_track(track)

    def reset_tracks(self):
        self.selection.reset()
        for panel in self.panels.values(): panel.clear()

    def enqueue(self):
        inputs = self.selection.mix_inputs(self.settings.get("default_languages"))
        if not any(inp.kind == TrackKind.VIDEO for inp in inputs):
            QMessageBox.warning(self, "Nothing to mix", "Probe a video file and select at least one video track first.")
            return

        video = self.selection.probed(TrackKind.VIDEO)
        suggestion = default_output_path(video.path if video else None, self.settings.get("last_output_dir") or None)
        out, _ = QFileDialog.getSaveFileName(self, "Save mixed file", str(suggestion), "Matroska (*.mkv)")
        if not out:
            return
        try:
            job_id = self.queue.submit(out, inputs)
        except SubmissionError as e:
            QMessageBox.warning(self, "Cannot queue job", str(e.detail or e.kind.value))
            return

        self.settings["last_output_dir"] = str(Path(out).parent)
        save_settings(self.settings)
        self.console.append(f"Job #{job_id} added to the queue.")
        self.reset_tracks()

    # --- queue side ------------------------------------------------------------

    def _on_job_changed(self, event: str, rec):
        if event == REMOVED:
            self.tree.remove(rec.id)
        else:
            self.tree.upsert(rec)
        if self.tree.current_job_id() == rec.id and event != REMOVED:
            self.details.show_job(rec)
        self._refresh_queue_label()

    def _show_job_details(self):
        if (job_id := self.tree.current_job_id()) is None:
            return
        try:
            self.details.show_job(self.store.get(job_id))
        except JobNotFound:
            self.details.clear()

    def _row_menu(self, pos):
        if not (item := self.tree.itemAt(pos)): return
        job_id = item.data(0, Qt.UserRole)
        try:
            rec = self.store.get(job_id)
        except JobNotFound:
            return

        menu = QMenu(self)
        def _open(p: Path):
            if p.exists(): QDesktopServices.openUrl(QUrl.fromLocalFile(str(p)))

        act_open = QAction("Open Output Folder", self); act_open.triggered.connect(lambda: _open(rec.job.output_path.parent)); menu.addAction(act_open)
        act_copy = QAction("Copy Message", self); act_copy.triggered.connect(lambda: QGuiApplication.clipboard().setText(rec.message or "")); menu.addAction(act_copy)
        menu.addSeparator()
        act_cancel = QAction("Cancel", self); act_cancel.setEnabled(not rec.status.is_terminal)
        act_cancel.triggered.connect(self.cancel_selected); menu.addAction(act_cancel)
        act_retry = QAction("Resubmit", self); act_retry.setEnabled(rec.status.is_terminal)
        act_retry.triggered.connect(self.resubmit_selected); menu.addAction(act_retry)

        menu.exec(self.tree.viewport().mapToGlobal(pos))

    def cancel_selected(self):
        if (job_id := self.tree.current_job_id()) is None: return
        if not self.queue.cancel(job_id):
            self.console.append(f"Job #{job_id} has already finished.")

    def resubmit_selected(self):
        if (job_id := self.tree.current_job_id()) is None: return
        try:
            new_id = self.queue.resubmit(job_id)
        except (InvalidTransition, SubmissionError) as e:
            self.console.append(f"Cannot resubmit job #{job_id}: {e}")
            return
        self.console.append(f"Job #{job_id} resubmitted as #{new_id}.")

    def clear_finished(self):
        n = self.store.clear_finished()
        self.details.clear()
        self.console.append(f"Removed {n} finished job(s).")

    def _refresh_queue_label(self):
        c = self.store.counts()
        total = sum(c.values())
        active = c[JobStatus.QUEUED] + c[JobStatus.RUNNING]
        text = f"Queue: {total} jobs • {c[JobStatus.RUNNING]} running • {c[JobStatus.QUEUED]} waiting"
        if not active and total:
            text += f" • {c[JobStatus.SUCCESS]} done, {c[JobStatus.FAILED]} failed"
        self.queue_label.setText(text)

    def open_prefs(self):
        dlg = PrefsDialog(self.settings, self)
        if dlg.exec() == QDialog.Accepted:
            before = self.settings.get("max_concurrent_mix_jobs")
            self.settings.update(dlg.get_values())
            save_settings(self.settings)
            self.store.history_limit = self.settings.get("history_limit") or None
            self.queue.timeout = self.settings.get("mix_timeout_sec") or None
            self.console.append("Saved preferences.")
            if self.settings.get("max_concurrent_mix_jobs") != before:
                self.console.append("Parallel job count takes effect after a restart.")
