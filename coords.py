"""
coords.py: Coordinate conversion between document space and render space.

Document space is PDF user space: points, origin bottom-left, Y up.
Render space is the rasterized page: pixels, origin top-left, Y down,
scaled by the session's render scale.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import fitz  # PyMuPDF

from errors import ReconcileError
from models import TextFragment


@dataclass(frozen=True)
class DocumentPoint:
    """Top-left corner of a glyph box in document space, with its font size."""
    x: float
    y: float
    font_size: float

    @property
    def baseline_y(self) -> float:
        return self.y - self.font_size


@dataclass(frozen=True)
class OverlayPlacement:
    x: float
    y: float
    font_size: float
    font_family: str
    scale_x: float


def _check_finite(*values: float):
    for v in values:
        if not math.isfinite(v):
            raise ReconcileError(f"Degenerate geometry: {values!r}")


def viewport_transform(render_scale: float, page_height: float) -> fitz.Matrix:
    """Document space → render space for an unrotated page."""
    if render_scale <= 0:
        raise ReconcileError(f"render_scale must be > 0, got {render_scale!r}")
    return fitz.Matrix(render_scale, 0, 0, -render_scale, 0, render_scale * page_height)


def to_render_space(
    document_transform: Sequence[float],
    page_viewport_transform: Sequence[float],
) -> tuple[float, float, float]:
    """Place a glyph run in render space.

    Returns (x, y, font_size_render). The transform anchors the baseline, so
    y is moved up by one font size to get the top-left of the glyph box.
    """
    tx = fitz.Matrix(*document_transform) * fitz.Matrix(*page_viewport_transform)
    font_size = math.hypot(tx.a, tx.b)
    x = tx.e
    y = tx.f - font_size
    _check_finite(x, y, font_size)
    return x, y, font_size


def horizontal_scale_factor(render_width: float, text: str, font_size_render: float,
                            glyph_width_ratio: float = 0.5) -> float:
    """Approximate horizontal stretch for an overlay run.

    Assumes every glyph advances glyph_width_ratio * font size, which is a
    rough monospace estimate, not real font metrics. The result only makes
    the overlay span about the same width as the original run.
    """
    if not text or font_size_render <= 0:
        return 1.0
    factor = render_width / (len(text) * font_size_render * glyph_width_ratio)
    _check_finite(factor)
    return factor


def to_document_space(
    render_x: float,
    render_y: float,
    render_font_size: float,
    render_scale: float,
    page_height: float,
) -> DocumentPoint:
    """Inverse of the scale-only mapping.

    page_height is the document-space page height, not the viewport height.
    """
    if render_scale <= 0:
        raise ReconcileError(f"render_scale must be > 0, got {render_scale!r}")
    x = render_x / render_scale
    y = page_height - (render_y / render_scale)
    size = render_font_size / render_scale
    _check_finite(x, y, size)
    return DocumentPoint(x, y, size)


def cover_rect(point: DocumentPoint, width: float, padding: float) -> tuple[float, float, float, float]:
    """(x, y, width, height) of the box hiding the original glyph run,
    bottom-left anchored, padded on every side to include descenders."""
    return (
        point.x - padding,
        point.baseline_y - padding,
        width + 2 * padding,
        point.font_size + 2 * padding,
    )


def overlay_placement(fragment: TextFragment, glyph_width_ratio: float = 0.5) -> OverlayPlacement:
    """Where and how big the overlay element for a fragment is drawn."""
    return OverlayPlacement(
        x=fragment.render_x,
        y=fragment.render_y,
        font_size=fragment.font_size_render,
        font_family=fragment.font_family,
        scale_x=horizontal_scale_factor(
            fragment.render_width,
            fragment.original_text,
            fragment.font_size_render,
            glyph_width_ratio,
        ),
    )
