"""
pdf_backend.py: PyMuPDF bindings for decoding and mutating documents.

FitzDecoder reports text geometry in PDF user space (origin bottom-left),
FitzMutator draws in the same space and converts to PyMuPDF's top-left
page coordinates internally.
"""

from __future__ import annotations

from dataclasses import dataclass

import fitz  # PyMuPDF

from coords import viewport_transform


# ─────────────────────────────────────────────
# Decoder
# ─────────────────────────────────────────────

@dataclass
class RawTextItem:
    text: str
    transform: tuple[float, float, float, float, float, float]
    width: float          # document units
    font_name: str


@dataclass
class DecodedDocument:
    document: fitz.Document
    page_count: int


@dataclass
class RenderedPage:
    raster: fitz.Pixmap
    viewport_width: float
    viewport_height: float
    viewport_transform: fitz.Matrix
    page_height: float


class FitzDecoder:
    """Decoder contract backed by PyMuPDF."""

    def decode(self, data: bytes) -> DecodedDocument:
        doc = fitz.open(stream=data, filetype="pdf")
        if doc.needs_pass or doc.page_count == 0:
            reason = "is encrypted" if doc.needs_pass else "has no pages"
            doc.close()
            raise ValueError(f"Document {reason}")
        return DecodedDocument(document=doc, page_count=doc.page_count)

    def get_page(self, decoded: DecodedDocument, page_number: int) -> fitz.Page:
        return decoded.document[page_number - 1]

    def render(self, page: fitz.Page, scale: float) -> RenderedPage:
        rect = page.rect
        pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
        return RenderedPage(
            raster=pix,
            viewport_width=rect.width * scale,
            viewport_height=rect.height * scale,
            viewport_transform=viewport_transform(scale, rect.height),
            page_height=rect.height,
        )

    def get_text_fragments(self, page: fitz.Page) -> list[RawTextItem]:
        """One item per span, in content order. Blank spans are included."""
        height = page.rect.height
        items: list[RawTextItem] = []
        text_dict = page.get_text("dict", flags=fitz.TEXT_PRESERVE_WHITESPACE)
        for block in text_dict.get("blocks", []):
            if block.get("type") != 0:
                continue
            for line in block.get("lines", []):
                # dir is in page space (Y down); flip the sine for PDF space
                cos, sin = line.get("dir", (1.0, 0.0))
                for span in line.get("spans", []):
                    size = span.get("size", 0.0)
                    ox, oy = span.get("origin", (0.0, 0.0))
                    bbox = fitz.Rect(span["bbox"])
                    items.append(RawTextItem(
                        text=span.get("text", ""),
                        transform=(size * cos, -size * sin, size * sin, size * cos, ox, height - oy),
                        width=abs(bbox.width * cos) + abs(bbox.height * sin),
                        font_name=span.get("font", ""),
                    ))
        return items

    def close(self, decoded: DecodedDocument):
        decoded.document.close()


# ─────────────────────────────────────────────
# Mutator
# ─────────────────────────────────────────────

# Standard font names → PyMuPDF Base-14 short names
STANDARD_FONTS = {
    "helvetica": "helv",
    "helvetica-oblique": "heit",
    "helvetica-bold": "hebo",
    "helvetica-boldoblique": "hebi",
    "times-roman": "tiro",
    "times-italic": "tiit",
    "times-bold": "tibo",
    "times-bolditalic": "tibi",
    "courier": "cour",
    "courier-oblique": "coit",
    "courier-bold": "cobo",
    "courier-boldoblique": "cobi",
    "symbol": "symb",
    "zapfdingbats": "zadb",
}
# Short names map to themselves
STANDARD_FONTS.update({short: short for short in list(STANDARD_FONTS.values())})


def is_standard_font(name: str) -> bool:
    return name.lower() in STANDARD_FONTS


@dataclass
class MutatorPage:
    page: fitz.Page
    height: float


class FitzMutator:
    """Mutator contract backed by PyMuPDF."""

    def load(self, data: bytes) -> fitz.Document:
        return fitz.open(stream=data, filetype="pdf")

    def get_pages(self, doc: fitz.Document) -> list[MutatorPage]:
        return [MutatorPage(page=page, height=page.rect.height) for page in doc]

    def embed_standard_font(self, doc: fitz.Document, name: str) -> str:
        fontname = STANDARD_FONTS.get(name.lower())
        if fontname is None:
            raise ValueError(f"Not a standard font: {name}")
        return fontname

    def draw_rectangle(self, page: MutatorPage, x: float, y: float, width: float, height: float,
                       color: tuple[float, float, float]):
        rect = fitz.Rect(x, page.height - y - height, x + width, page.height - y)
        # overlay=True: paint above existing content so old glyphs are hidden
        page.page.draw_rect(rect, color=None, fill=color, width=0, overlay=True)

    def draw_text(self, page: MutatorPage, text: str, x: float, y: float, size: float,
                  font: str, color: tuple[float, float, float]):
        page.page.insert_text(
            fitz.Point(x, page.height - y),
            text,
            fontsize=size,
            fontname=font,
            color=color,
            render_mode=0,
        )

    def save(self, doc: fitz.Document) -> bytes:
        return doc.tobytes(garbage=3, deflate=True)

    def close(self, doc: fitz.Document):
        if not doc.is_closed:
            doc.close()
