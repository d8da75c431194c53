"""
config.py: Editor settings (render scale, cover geometry, export defaults).
Values can be overridden through QSettings.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Optional

from PyQt6.QtCore import QSettings

from errors import InvalidConfiguration
from pdf_backend import is_standard_font


SETTINGS_ORG = "PDFOverlayEditor"
SETTINGS_APP = "Settings"


@dataclass(frozen=True)
class EditorConfig:
    render_scale: float = 1.5
    # Average glyph advance as a fraction of the font size (overlay stretch heuristic)
    glyph_width_ratio: float = 0.5
    cover_padding: float = 2.0
    substitute_font: str = "helv"   # PyMuPDF built-in Helvetica
    cover_color: tuple[float, float, float] = (1.0, 1.0, 1.0)
    text_color: tuple[float, float, float] = (0.0, 0.0, 0.0)
    export_filename: str = "edited-document.pdf"

    def validate(self) -> "EditorConfig":
        """Raise InvalidConfiguration if the values cannot drive a session."""
        if not math.isfinite(self.render_scale) or self.render_scale <= 0:
            raise InvalidConfiguration(f"render_scale must be > 0, got {self.render_scale!r}")
        if not math.isfinite(self.glyph_width_ratio) or self.glyph_width_ratio <= 0:
            raise InvalidConfiguration(
                f"glyph_width_ratio must be > 0, got {self.glyph_width_ratio!r}"
            )
        if self.cover_padding < 0:
            raise InvalidConfiguration(f"cover_padding must be >= 0, got {self.cover_padding!r}")
        if not is_standard_font(self.substitute_font):
            raise InvalidConfiguration(
                f"substitute_font must be a standard PDF font, got {self.substitute_font!r}"
            )
        if not self.export_filename:
            raise InvalidConfiguration("export_filename must not be empty")
        return self

    @classmethod
    def from_settings(cls, settings: Optional[QSettings] = None) -> "EditorConfig":
        """Build a config from stored settings, falling back to defaults."""
        if settings is None:
            settings = QSettings(SETTINGS_ORG, SETTINGS_APP)
        defaults = cls()
        config = replace(
            defaults,
            render_scale=settings.value("render_scale", defaults.render_scale, type=float),
            glyph_width_ratio=settings.value(
                "glyph_width_ratio", defaults.glyph_width_ratio, type=float
            ),
            cover_padding=settings.value("cover_padding", defaults.cover_padding, type=float),
            substitute_font=settings.value("substitute_font", defaults.substitute_font, type=str),
            export_filename=settings.value("export_filename", defaults.export_filename, type=str),
        )
        logging.info(f"Editor config loaded (render_scale={config.render_scale})")
        return config
