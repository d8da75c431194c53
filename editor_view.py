"""
editor_view.py: Page view with the editable text overlay.

Each page is its rendered raster with one FragmentLabel per text fragment
on top. Label geometry comes only from overlay_placement(); nothing is read
back from the widgets.
"""

from __future__ import annotations

from typing import Optional

import fitz  # PyMuPDF
from PyQt6.QtCore import QPointF, QRectF, Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QColor, QFont, QFontMetricsF, QImage, QPainter
from PyQt6.QtWidgets import QLabel, QLineEdit, QScrollArea, QVBoxLayout, QWidget

from controller import EditorController
from coords import overlay_placement
from models import FragmentId, PageInfo, TextFragment


PAGE_GAP = 16  # pixels between pages
MIN_EDITOR_WIDTH = 200


def fitz_pixmap_to_qimage(pix: fitz.Pixmap) -> QImage:
    """Convert fitz.Pixmap to QImage."""
    fmt = QImage.Format.Format_RGB888 if pix.n == 3 else QImage.Format.Format_RGBA8888
    img = QImage(pix.samples, pix.width, pix.height, pix.stride, fmt)
    return img.copy()  # copy to detach from fitz memory


# ─────────────────────────────────────────────
# Overlay label
# ─────────────────────────────────────────────

class FragmentLabel(QLabel):
    """Overlay element for one fragment.

    Unedited text is drawn transparent so the raster shows through; edited
    text is drawn on a white box so the replacement is visible before export.
    """

    double_clicked = pyqtSignal(object)  # FragmentId

    def __init__(self, fragment: TextFragment, glyph_width_ratio: float, parent=None):
        super().__init__(parent)
        self.fragment_id: FragmentId = fragment.id
        self._placement = overlay_placement(fragment, glyph_width_ratio)
        self._dirty = False

        font = QFont(self._placement.font_family)
        font.setPixelSize(max(int(round(self._placement.font_size)), 1))
        self.setFont(font)
        self.setCursor(Qt.CursorShape.IBeamCursor)
        self.setToolTip(str(fragment.id))
        self.set_fragment_text(fragment.current_text, fragment.is_dirty)

    def set_fragment_text(self, text: str, dirty: bool):
        self._dirty = dirty
        self.setText(text)
        metrics = QFontMetricsF(self.font())
        width = max(metrics.horizontalAdvance(text) * self._placement.scale_x, 4.0)
        height = max(self._placement.font_size * 1.2, metrics.height())
        self.setGeometry(
            int(self._placement.x), int(self._placement.y),
            int(width) + 1, int(height) + 1,
        )
        self.update()

    def paintEvent(self, event):
        painter = QPainter(self)
        if self._dirty:
            painter.fillRect(self.rect(), QColor("white"))
            painter.setPen(QColor("black"))
        else:
            painter.setPen(QColor(0, 0, 0, 0))
        if self.underMouse():
            painter.fillRect(self.rect(), QColor(41, 121, 255, 40))
        painter.setFont(self.font())
        # Horizontal stretch around the left edge, like a CSS scaleX with left origin
        painter.scale(self._placement.scale_x, 1.0)
        painter.drawText(QPointF(0, QFontMetricsF(self.font()).ascent()), self.text())
        painter.end()

    def enterEvent(self, event):
        self.update()
        super().enterEvent(event)

    def leaveEvent(self, event):
        self.update()
        super().leaveEvent(event)

    def mouseDoubleClickEvent(self, event):
        event.accept()
        self.double_clicked.emit(self.fragment_id)


# ─────────────────────────────────────────────
# Page canvas
# ─────────────────────────────────────────────

class PageCanvas(QWidget):
    def __init__(self, page: PageInfo, parent=None):
        super().__init__(parent)
        self.page_index = page.page_index
        self._image: Optional[QImage] = (
            fitz_pixmap_to_qimage(page.raster) if page.raster is not None else None
        )
        self.setFixedSize(int(round(page.viewport_width)), int(round(page.viewport_height)))

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.fillRect(self.rect(), QColor("white"))
        if self._image is not None:
            painter.drawImage(QRectF(self.rect()), self._image)
        painter.end()


# ─────────────────────────────────────────────
# Editor view
# ─────────────────────────────────────────────

class EditorView(QScrollArea):
    """Scrollable stack of pages with inline text editing."""

    def __init__(self, controller: EditorController, parent=None):
        super().__init__(parent)
        self.setObjectName("pdfScrollArea")
        self.setWidgetResizable(True)
        self.setAlignment(Qt.AlignmentFlag.AlignHCenter)

        self._controller = controller
        self._labels: dict[FragmentId, FragmentLabel] = {}
        self._edit_widget: Optional[QLineEdit] = None
        self._edit_label: Optional[FragmentLabel] = None

        controller.document_ready.connect(self.show_document)
        controller.fragment_changed.connect(self.refresh_fragment)
        self.clear()

    def clear(self):
        self._close_editor_widget()
        self._labels.clear()
        container = QWidget()
        QVBoxLayout(container)
        self.setWidget(container)

    def show_document(self):
        self.clear()
        session = self._controller.session
        ratio = session.config.glyph_width_ratio
        container = self.widget()
        layout = container.layout()
        layout.setSpacing(PAGE_GAP)
        layout.setAlignment(Qt.AlignmentFlag.AlignHCenter)

        for page in session.pages:
            canvas = PageCanvas(page, container)
            for fragment in session.registry.for_page(page.page_index):
                label = FragmentLabel(fragment, ratio, canvas)
                label.double_clicked.connect(self._begin_text_edit)
                self._labels[fragment.id] = label
            layout.addWidget(canvas)

    def refresh_fragment(self, fragment_id: FragmentId):
        label = self._labels.get(fragment_id)
        fragment = self._controller.session.registry.get(fragment_id)
        if label is None or fragment is None:
            return
        label.set_fragment_text(fragment.current_text, fragment.is_dirty)
        label.show()

    # ── Inline Text Editing ───────────────────

    def _begin_text_edit(self, fragment_id: FragmentId):
        if self._edit_label is not None and self._edit_label.fragment_id == fragment_id:
            return
        if self._edit_widget is not None:
            self._commit_text_edit()

        text = self._controller.begin_edit(fragment_id)
        label = self._labels.get(fragment_id)
        if text is None or label is None:
            return

        editor = QLineEdit(label.parentWidget())
        editor.setText(text)
        editor.setFont(label.font())
        editor.setGeometry(
            label.x(), label.y(),
            max(MIN_EDITOR_WIDTH, label.width()), max(label.height(), 22),
        )
        editor.setStyleSheet(
            "QLineEdit { background: rgba(255,255,255,245); border: 2px solid #2979FF; "
            "padding: 0px 2px; }"
        )
        label.hide()
        editor.show()
        editor.setFocus()
        editor.selectAll()

        self._edit_widget = editor
        self._edit_label = label

        # Enter commits
        editor.returnPressed.connect(self._commit_text_edit)

        # Escape cancels
        original_key_press = editor.keyPressEvent
        def _on_key_press(event):
            if event.key() == Qt.Key.Key_Escape:
                self._cancel_text_edit()
                return
            original_key_press(event)
        editor.keyPressEvent = _on_key_press

        # Focus-out commits, but only while this editor is still the open one
        _orig_focus_out = editor.focusOutEvent
        def _on_focus_out(event):
            _orig_focus_out(event)
            QTimer.singleShot(0, lambda w=editor: self._commit_if_current(w))
        editor.focusOutEvent = _on_focus_out

    def _close_editor_widget(self) -> Optional[QLineEdit]:
        widget = self._edit_widget
        label = self._edit_label
        # Clear state to prevent re-entry
        self._edit_widget = None
        self._edit_label = None
        if widget is not None:
            widget.hide()
            widget.deleteLater()
        if label is not None:
            label.show()
        return widget

    def _commit_text_edit(self):
        widget = self._close_editor_widget()
        if widget is None:
            return
        self._controller.confirm_edit(widget.text())

    def _commit_if_current(self, widget: QLineEdit):
        if self._edit_widget is widget:
            self._commit_text_edit()

    def _cancel_text_edit(self):
        if self._close_editor_widget() is None:
            return
        self._controller.cancel_edit()

    def commit_pending_edit(self):
        """Confirm an open inline editor (e.g. before export)."""
        self._commit_text_edit()
