"""
models.py: Data models: FragmentId, TextFragment, PageInfo, FragmentRegistry
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Optional

import fitz  # PyMuPDF

from errors import DuplicateFragmentError


# ─────────────────────────────────────────────
# Text Fragment
# ─────────────────────────────────────────────

@dataclass(frozen=True, order=True)
class FragmentId:
    """Identifies one glyph run: 1-based page number + item ordinal on that page."""
    page_index: int
    ordinal: int

    def __str__(self) -> str:
        return f"page{self.page_index}-text{self.ordinal}"


@dataclass
class TextFragment:
    """One editable run of text as decoded from a page.

    Render geometry is top-left anchored and fixed at decode time.
    """
    id: FragmentId
    original_text: str
    render_x: float
    render_y: float
    font_size_render: float
    render_width: float
    document_transform: tuple[float, float, float, float, float, float]
    font_family: str = "sans-serif"
    current_text: Optional[str] = None

    def __post_init__(self):
        if self.current_text is None:
            self.current_text = self.original_text

    @property
    def page_index(self) -> int:
        return self.id.page_index

    @property
    def render_position(self) -> tuple[float, float]:
        return (self.render_x, self.render_y)

    @property
    def is_dirty(self) -> bool:
        return self.current_text != self.original_text


# ─────────────────────────────────────────────
# Page Info
# ─────────────────────────────────────────────

@dataclass
class PageInfo:
    """Render-time facts about one page, kept for overlay layout and export."""
    page_index: int
    render_scale: float
    viewport_width: float
    viewport_height: float
    viewport_transform: fitz.Matrix
    page_height: float               # document space (PDF points)
    raster: Optional[fitz.Pixmap] = None


# ─────────────────────────────────────────────
# Fragment Registry
# ─────────────────────────────────────────────

class FragmentRegistry:
    """Holds every fragment of one loaded document, keyed by FragmentId.

    Entries are only ever added; the single mutation is commit_edit().
    """

    def __init__(self):
        self._fragments: dict[FragmentId, TextFragment] = {}

    def __len__(self) -> int:
        return len(self._fragments)

    def __contains__(self, fragment_id: object) -> bool:
        return fragment_id in self._fragments

    def __iter__(self) -> Iterator[TextFragment]:
        return iter(list(self._fragments.values()))

    def get(self, fragment_id: FragmentId) -> Optional[TextFragment]:
        return self._fragments.get(fragment_id)

    def register(self, fragment: TextFragment):
        if fragment.id in self._fragments:
            raise DuplicateFragmentError(f"Fragment {fragment.id} is already registered")
        self._fragments[fragment.id] = fragment

    def commit_edit(self, fragment_id: FragmentId, new_text: str) -> bool:
        """Set the current text of a fragment. Returns False for unknown ids."""
        fragment = self._fragments.get(fragment_id)
        if fragment is None:
            # Stale reference from a superseded load
            logging.debug(f"Ignoring edit for unknown fragment {fragment_id}")
            return False
        fragment.current_text = new_text
        return True

    def iter_dirty(self) -> Iterator[TextFragment]:
        """Yield fragments whose current text differs from the decoded text."""
        for fragment in list(self._fragments.values()):
            if fragment.is_dirty:
                yield fragment

    def for_page(self, page_index: int) -> list[TextFragment]:
        return [f for f in self._fragments.values() if f.page_index == page_index]

    def clear(self):
        self._fragments.clear()
