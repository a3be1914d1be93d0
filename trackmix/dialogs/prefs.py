# trackmix/dialogs/prefs.py
from PySide6.QtWidgets import (
    QCheckBox, QComboBox, QDialog, QDialogButtonBox, QFileDialog, QFormLayout, QHBoxLayout,
    QLabel, QLineEdit, QPushButton, QSpinBox, QVBoxLayout
)

from ..widgets.track_table import LANGUAGE_OPTIONS


class PrefsDialog(QDialog):
    def __init__(self, settings: dict, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Preferences")
        self.settings = settings
        self.setMinimumWidth(640)

        self.mk_edit = QLineEdit(self.settings["mkvmerge_path"])
        btn_browse_mk = QPushButton("Browse…"); btn_browse_mk.clicked.connect(lambda: self._browse_tool(self.mk_edit, "mkvmerge"))
        self.ff_edit = QLineEdit(self.settings["ffprobe_path"])
        btn_browse_ff = QPushButton("Browse…"); btn_browse_ff.clicked.connect(lambda: self._browse_tool(self.ff_edit, "ffprobe"))

        self.workers_spin = QSpinBox(); self.workers_spin.setRange(1, 16)
        self.workers_spin.setValue(int(self.settings["max_concurrent_mix_jobs"]))
        workers_hint = QLabel("(applied next time the application starts)")

        self.timeout_spin = QSpinBox(); self.timeout_spin.setRange(0, 7 * 24 * 3600)
        self.timeout_spin.setValue(int(self.settings["mix_timeout_sec"])); self.timeout_spin.setSuffix(" s (0 = none)")

        self.probe_timeout_spin = QSpinBox(); self.probe_timeout_spin.setRange(0, 3600)
        self.probe_timeout_spin.setValue(int(self.settings["probe_timeout_sec"])); self.probe_timeout_spin.setSuffix(" s (0 = none)")

        self.history_spin = QSpinBox(); self.history_spin.setRange(0, 100000)
        self.history_spin.setValue(int(self.settings["history_limit"])); self.history_spin.setSuffix(" finished jobs (0 = unlimited)")

        self.lang_combos = {}
        for kind in ("video", "audio", "subtitle"):
            combo = QComboBox()
            for label, value in LANGUAGE_OPTIONS:
                combo.addItem(label, value)
            current = self.settings["default_languages"].get(kind, "")
            if (idx := combo.findData(current)) < 0:
                combo.addItem(current, current); idx = combo.count() - 1
            combo.setCurrentIndex(idx)
            self.lang_combos[kind] = combo

        self.chk_flags = QCheckBox("Reset track names and set default=yes / forced=no on mixed tracks")
        self.chk_flags.setChecked(self.settings.get("normalize_track_flags", True))
        self.chk_history = QCheckBox("Remember job history between sessions")
        self.chk_history.setChecked(self.settings.get("persist_history", True))

        self.log_level = QComboBox(); self.log_level.addItems(["DEBUG", "INFO", "WARNING", "ERROR"])
        self.log_level.setCurrentText(str(self.settings.get("log_level", "INFO")).upper())

        form = QFormLayout()
        row_mk = QHBoxLayout(); row_mk.addWidget(self.mk_edit); row_mk.addWidget(btn_browse_mk)
        form.addRow("mkvmerge path:", row_mk)
        row_ff = QHBoxLayout(); row_ff.addWidget(self.ff_edit); row_ff.addWidget(btn_browse_ff)
        form.addRow("ffprobe path:", row_ff)
        form.addRow("Parallel mix jobs:", self.workers_spin); form.addRow("", workers_hint)
        form.addRow("Mix timeout:", self.timeout_spin)
        form.addRow("Probe timeout:", self.probe_timeout_spin)
        form.addRow("Keep history:", self.history_spin)
        form.addRow("Default video language:", self.lang_combos["video"])
        form.addRow("Default audio language:", self.lang_combos["audio"])
        form.addRow("Default subtitle language:", self.lang_combos["subtitle"])
        form.addRow("Log level:", self.log_level)
        form.addRow("", self.chk_flags)
        form.addRow("", self.chk_history)

        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self.accept); buttons.rejected.connect(self.reject)

        layout = QVBoxLayout(self); layout.addLayout(form); layout.addWidget(buttons)

    def _browse_tool(self, edit: QLineEdit, name: str):
        f, _ = QFileDialog.getOpenFileName(self, f"Locate {name}", edit.text() or "/usr/bin", "All (*)")
        if f: edit.setText(f)

    def get_values(self) -> dict:
        return {
            "mkvmerge_path": self.mk_edit.text().strip() or "mkvmerge",
            "ffprobe_path": self.ff_edit.text().strip() or "ffprobe",
            "max_concurrent_mix_jobs": int(self.workers_spin.value()),
            "mix_timeout_sec": int(self.timeout_spin.value()),
            "probe_timeout_sec": int(self.probe_timeout_spin.value()),
            "history_limit": int(self.history_spin.value()),
            "default_languages": {k: c.currentData() or "" for k, c in self.lang_combos.items()},
            "normalize_track_flags": self.chk_flags.isChecked(),
            "persist_history": self.chk_history.isChecked(),
            "log_level": self.log_level.currentText(),
        }
