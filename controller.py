"""
controller.py: EditorController, the boundary between the UI and EditSession.
Starts decode/export workers, drops superseded results and turns every
failure into a signal so nothing from the core reaches the UI as an exception.
"""

from __future__ import annotations

import logging
from typing import Optional

from PyQt6.QtCore import QObject, QThread, pyqtSignal

from config import EditorConfig
from errors import SessionNotReady
from models import FragmentId
from pdf_backend import FitzDecoder, FitzMutator
from session import EditSession, ExportJob, LoadResult
from workers import ExportWorker, LoadWorker


class EditorController(QObject):
    state_changed = pyqtSignal(str)           # SessionState value
    document_ready = pyqtSignal()
    load_failed = pyqtSignal(str)
    fragment_changed = pyqtSignal(object)     # FragmentId
    export_finished = pyqtSignal(bytes, str)  # data, suggested file name
    export_failed = pyqtSignal(str)

    def __init__(self, config: Optional[EditorConfig] = None,
                 decoder: Optional[FitzDecoder] = None,
                 mutator: Optional[FitzMutator] = None,
                 parent=None):
        super().__init__(parent)
        self.session = EditSession(config, decoder, mutator)
        self._load_worker: Optional[LoadWorker] = None
        self._export_worker: Optional[ExportWorker] = None
        # Superseded workers keep running until done; hold them so Qt doesn't destroy a live thread
        self._retired: list[QThread] = []

    # ── Worker lifecycle helper ───────────────

    def _retire(self, worker: Optional[QThread]):
        if worker is None:
            return
        if worker.isRunning():
            self._retired.append(worker)
            worker.finished.connect(self._on_retired_finished)
        else:
            worker.deleteLater()

    def _on_retired_finished(self):
        worker = self.sender()
        if worker in self._retired:
            self._retired.remove(worker)
            worker.deleteLater()

    def shutdown(self, timeout_ms: int = 2000):
        """Wait for all workers before the application exits."""
        for worker in [self._load_worker, self._export_worker, *self._retired]:
            if worker is not None and worker.isRunning():
                worker.wait(timeout_ms)
        self._retired.clear()

    # ── Load ──────────────────────────────────

    def upload(self, data: bytes):
        generation = self.session.begin_load(data)
        self.state_changed.emit(self.session.state.value)

        self._retire(self._load_worker)
        worker = LoadWorker(self.session, data, generation)
        worker.loaded.connect(self._on_loaded)
        worker.failed.connect(self._on_load_failed)
        self._load_worker = worker
        worker.start()

    def _on_loaded(self, result: LoadResult):
        if not self.session.apply_load(result):
            return
        self.state_changed.emit(self.session.state.value)
        self.document_ready.emit()

    def _on_load_failed(self, generation: int, message: str):
        if not self.session.fail_load(generation, message):
            return
        self.state_changed.emit(self.session.state.value)
        self.load_failed.emit(message)

    # ── Edit ──────────────────────────────────

    def begin_edit(self, fragment_id: FragmentId) -> Optional[str]:
        try:
            return self.session.begin_edit(fragment_id)
        except SessionNotReady as e:
            logging.warning(f"Edit refused: {e}")
            return None

    def confirm_edit(self, text: str) -> bool:
        fragment_id = self.session.editing
        if not self.session.confirm_edit(text):
            return False
        self.fragment_changed.emit(fragment_id)
        return True

    def cancel_edit(self) -> bool:
        fragment_id = self.session.editing
        if not self.session.cancel_edit():
            return False
        self.fragment_changed.emit(fragment_id)
        return True

    def edit(self, fragment_id: FragmentId, text: str) -> bool:
        changed = self.session.edit(fragment_id, text)
        if changed:
            self.fragment_changed.emit(fragment_id)
        return changed

    # ── Export ────────────────────────────────

    def export(self):
        try:
            job = self.session.begin_export()
        except SessionNotReady as e:
            logging.warning(f"Export refused: {e}")
            self.export_failed.emit(str(e))
            return
        self.state_changed.emit(self.session.state.value)

        self._retire(self._export_worker)
        worker = ExportWorker(self.session, job)
        worker.exported.connect(self._on_exported)
        worker.failed.connect(self._on_export_failed)
        self._export_worker = worker
        worker.start()

    def _on_exported(self, job: ExportJob, data: bytes):
        if not self.session.finish_export(job):
            # Document was replaced while exporting; the bytes belong to the old one
            return
        self.state_changed.emit(self.session.state.value)
        self.export_finished.emit(data, self.session.config.export_filename)

    def _on_export_failed(self, job: ExportJob, message: str):
        if not self.session.finish_export(job):
            return
        logging.error(f"Export failed: {message}")
        self.state_changed.emit(self.session.state.value)
        self.export_failed.emit(message)
