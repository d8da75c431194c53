"""
workers.py: Background threads for document decode and export.
Workers only call the session's thread-safe helpers; results are handed back
through signals and applied on the GUI thread.
"""

from __future__ import annotations

from PyQt6.QtCore import QThread, pyqtSignal

from session import EditSession, ExportJob


class LoadWorker(QThread):
    loaded = pyqtSignal(object)        # LoadResult
    failed = pyqtSignal(int, str)      # generation, message

    def __init__(self, session: EditSession, data: bytes, generation: int, parent=None):
        super().__init__(parent)
        self._session = session
        self._data = data
        self.generation = generation

    def run(self):
        try:
            result = self._session.decode_document(self._data, self.generation)
        except Exception as e:
            self.failed.emit(self.generation, str(e))
            return
        finally:
            self._data = None  # free memory
        self.loaded.emit(result)


class ExportWorker(QThread):
    exported = pyqtSignal(object, bytes)   # ExportJob, document bytes
    failed = pyqtSignal(object, str)       # ExportJob, message

    def __init__(self, session: EditSession, job: ExportJob, parent=None):
        super().__init__(parent)
        self._session = session
        self.job = job

    def run(self):
        try:
            data = self._session.run_export(self.job)
        except Exception as e:
            self.failed.emit(self.job, str(e))
            return
        self.exported.emit(self.job, data)
