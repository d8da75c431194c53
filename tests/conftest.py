from __future__ import annotations

import os
import threading
from typing import Optional

import fitz
import pytest
from PyQt6.QtWidgets import QApplication

from config import EditorConfig
from coords import viewport_transform
from pdf_backend import DecodedDocument, MutatorPage, RawTextItem, RenderedPage


os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

PAGE_WIDTH = 612.0
PAGE_HEIGHT = 792.0


def text_item(text: str, x: float, y: float, size: float = 12.0, width: Optional[float] = None,
              font_name: str = "Helvetica") -> RawTextItem:
    """Unrotated glyph run with its baseline at (x, y) in document space."""
    if width is None:
        width = len(text) * size * 0.5
    return RawTextItem(text=text, transform=(size, 0.0, 0.0, size, x, y), width=width,
                       font_name=font_name)


class FakeDecoder:
    """Decoder returning canned pages, keyed by the uploaded bytes.

    gates: bytes → threading.Event that decode() waits on before returning.
    fail_on_page: page number whose text extraction raises.
    """

    def __init__(self, documents: dict[bytes, list[list[RawTextItem]]],
                 gates: Optional[dict[bytes, threading.Event]] = None,
                 fail_on_page: Optional[int] = None):
        self.documents = documents
        self.gates = gates or {}
        self.fail_on_page = fail_on_page
        self.closed = 0

    def decode(self, data: bytes) -> DecodedDocument:
        gate = self.gates.get(data)
        if gate is not None:
            gate.wait(5)
        if data not in self.documents:
            raise ValueError("not a PDF")
        return DecodedDocument(document=self.documents[data], page_count=len(self.documents[data]))

    def get_page(self, decoded: DecodedDocument, page_number: int):
        return (page_number, decoded.document[page_number - 1])

    def render(self, page, scale: float) -> RenderedPage:
        return RenderedPage(
            raster=None,
            viewport_width=PAGE_WIDTH * scale,
            viewport_height=PAGE_HEIGHT * scale,
            viewport_transform=viewport_transform(scale, PAGE_HEIGHT),
            page_height=PAGE_HEIGHT,
        )

    def get_text_fragments(self, page) -> list[RawTextItem]:
        page_number, items = page
        if page_number == self.fail_on_page:
            raise RuntimeError(f"broken content stream on page {page_number}")
        return list(items)

    def close(self, decoded: DecodedDocument):
        self.closed += 1


class FakeMutator:
    """Records every mutator call as a tuple."""

    def __init__(self, fail_on_save: bool = False, fail_on_draw: bool = False):
        self.calls: list[tuple] = []
        self.fail_on_save = fail_on_save
        self.fail_on_draw = fail_on_draw

    def load(self, data: bytes):
        self.calls.append(("load", data))
        return "doc"

    def get_pages(self, doc) -> list[MutatorPage]:
        return [MutatorPage(page=i + 1, height=PAGE_HEIGHT) for i in range(10)]

    def embed_standard_font(self, doc, name: str) -> str:
        self.calls.append(("embed_standard_font", name))
        return name

    def draw_rectangle(self, page, x, y, width, height, color):
        if self.fail_on_draw:
            raise RuntimeError("cannot draw on page")
        self.calls.append(("draw_rectangle", page.page, x, y, width, height, color))

    def draw_text(self, page, text, x, y, size, font, color):
        self.calls.append(("draw_text", page.page, text, x, y, size, font, color))

    def save(self, doc) -> bytes:
        if self.fail_on_save:
            raise OSError("disk full")
        self.calls.append(("save",))
        return b"%PDF-edited"

    def close(self, doc):
        self.calls.append(("close",))

    def draws(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("draw_rectangle", "draw_text")]


def make_pdf(lines: list[tuple[str, float, float]], fontsize: float = 12.0) -> bytes:
    """Build a one-page PDF; each line is (text, x, baseline_y) in PyMuPDF page coords."""
    doc = fitz.open()
    page = doc.new_page(width=PAGE_WIDTH, height=PAGE_HEIGHT)
    for text, x, y in lines:
        page.insert_text(fitz.Point(x, y), text, fontsize=fontsize)
    try:
        return doc.tobytes()
    finally:
        doc.close()


@pytest.fixture
def config() -> EditorConfig:
    return EditorConfig()


@pytest.fixture
def mutator() -> FakeMutator:
    return FakeMutator()


@pytest.fixture(scope="session")
def qapp():
    app = QApplication.instance() or QApplication([])
    yield app
