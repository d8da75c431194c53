"""
main_window.py: Main application window.
Open a PDF, edit text in place, export the edited document.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QThread, pyqtSignal
from PyQt6.QtGui import QAction, QKeySequence
from PyQt6.QtWidgets import (
    QFileDialog, QLabel, QMainWindow, QMessageBox, QStatusBar, QToolBar,
)

from config import EditorConfig
from controller import EditorController
from editor_view import EditorView
from session import SessionState


# ─────────────────────────────────────────────
# Background file writer
# ─────────────────────────────────────────────

class FileSaveWorker(QThread):
    finished_save = pyqtSignal(bool, str)  # success, path or message

    def __init__(self, doc_bytes: bytes, save_path: str):
        super().__init__()
        self._doc_bytes = doc_bytes
        self._save_path = save_path

    def run(self):
        try:
            with open(self._save_path, "wb") as f:
                f.write(self._doc_bytes)
            self._doc_bytes = None  # free memory
            self.finished_save.emit(True, self._save_path)
        except OSError as e:
            self.finished_save.emit(False, str(e))


# ─────────────────────────────────────────────
# Main Window
# ─────────────────────────────────────────────

class MainWindow(QMainWindow):

    def __init__(self, config: Optional[EditorConfig] = None):
        super().__init__()
        self.setWindowTitle("PDF Overlay Editor")
        self.setMinimumSize(900, 700)
        self.resize(1100, 860)

        self._controller = EditorController(config or EditorConfig.from_settings())
        self._save_worker: Optional[FileSaveWorker] = None
        self._file_path: str = ""

        self._build_ui()
        self._connect_signals()
        self._update_toolbar_state()
        self.setAcceptDrops(True)

    # ── UI Build ──────────────────────────────

    def _build_ui(self):
        toolbar = QToolBar("Main")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        self._open_action = QAction("Open PDF…", self)
        self._open_action.setShortcut(QKeySequence.StandardKey.Open)
        self._open_action.triggered.connect(self._open_file_dialog)
        toolbar.addAction(self._open_action)

        self._export_action = QAction("Export PDF", self)
        self._export_action.setShortcut(QKeySequence.StandardKey.Save)
        self._export_action.triggered.connect(self._export)
        toolbar.addAction(self._export_action)

        self._view = EditorView(self._controller, self)
        self.setCentralWidget(self._view)

        status = QStatusBar()
        self._status_label = QLabel("Open a PDF to start editing")
        status.addWidget(self._status_label)
        self.setStatusBar(status)

    def _connect_signals(self):
        c = self._controller
        c.state_changed.connect(lambda _state: self._update_toolbar_state())
        c.document_ready.connect(self._on_document_ready)
        c.load_failed.connect(self._on_load_failed)
        c.export_finished.connect(self._on_export_finished)
        c.export_failed.connect(self._on_export_failed)

    def _update_toolbar_state(self):
        state = self._controller.session.state
        self._export_action.setEnabled(state == SessionState.READY)
        self._export_action.setText("Exporting..." if state == SessionState.EXPORTING else "Export PDF")

    def _set_status(self, msg: str):
        self._status_label.setText(msg)

    # ── Load ──────────────────────────────────

    def _open_file_dialog(self):
        path, _ = QFileDialog.getOpenFileName(self, "Open PDF", "", "PDF files (*.pdf)")
        if path:
            self.load_file(path)

    def load_file(self, path: str):
        try:
            data = Path(path).read_bytes()
        except OSError as e:
            QMessageBox.critical(self, "Error", f"Could not open file:\n{e}")
            return
        self._file_path = path
        self._view.clear()
        self._set_status("Loading PDF...")
        self._controller.upload(data)

    def _on_document_ready(self):
        session = self._controller.session
        name = Path(self._file_path).name if self._file_path else "document"
        self._set_status(f"{name}: {len(session.pages)}p, {len(session.registry)} text fragments")

    def _on_load_failed(self, message: str):
        self._view.clear()
        self._set_status("Error loading PDF")
        QMessageBox.critical(self, "Error", "Failed to load PDF. Please try another file.")

    # ── Export ────────────────────────────────

    def _export(self):
        self._view.commit_pending_edit()
        self._set_status("Exporting...")
        self._controller.export()

    def _on_export_finished(self, data: bytes, filename: str):
        start_dir = os.path.dirname(self._file_path) if self._file_path else ""
        path, _ = QFileDialog.getSaveFileName(
            self, "Save edited PDF", os.path.join(start_dir, filename), "PDF files (*.pdf)"
        )
        if not path:
            self._set_status("Export cancelled")
            return
        self._save_worker = FileSaveWorker(data, path)
        self._save_worker.finished_save.connect(self._on_save_finished)
        self._save_worker.start()

    def _on_save_finished(self, success: bool, msg: str):
        if success:
            self._set_status(f"Saved {Path(msg).name}")
        else:
            QMessageBox.critical(self, "Save error", msg)
            self._set_status("Save failed")

    def _on_export_failed(self, message: str):
        self._set_status("Export failed")
        QMessageBox.critical(self, "Error", f"Failed to export PDF. Please try again.\n{message}")

    # ── Drag & Drop ───────────────────────────

    def dragEnterEvent(self, event):
        if event.mimeData().hasUrls():
            for url in event.mimeData().urls():
                if url.toLocalFile().lower().endswith(".pdf"):
                    event.acceptProposedAction()
                    return
        event.ignore()

    def dropEvent(self, event):
        for url in event.mimeData().urls():
            path = url.toLocalFile()
            if path.lower().endswith(".pdf"):
                self.load_file(path)
                return

    def closeEvent(self, event):
        self._controller.shutdown()
        if self._save_worker is not None and self._save_worker.isRunning():
            self._save_worker.wait(2000)
        super().closeEvent(event)
