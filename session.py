"""
session.py: EditSession, the lifecycle of one uploaded document.

Load:   bytes → pages → text fragments → FragmentRegistry
Export: FragmentRegistry → cover/text draws → new bytes

Decoding and export application only read the config and the backends, so
they can run on a worker thread; every change to session state happens in
the begin_*/apply_*/finish_* methods on the owning thread. A generation
counter tags each load so results from a superseded upload are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from config import EditorConfig
from coords import cover_rect, to_document_space, to_render_space
from errors import DecodeFailure, ExportFailure, SessionNotReady
from models import FragmentId, FragmentRegistry, PageInfo, TextFragment
from pdf_backend import FitzDecoder, FitzMutator


class SessionState(Enum):
    EMPTY = "empty"
    LOADING = "loading"
    READY = "ready"
    EXPORTING = "exporting"
    ERROR = "error"


@dataclass
class LoadResult:
    generation: int
    pages: list[PageInfo]
    registry: FragmentRegistry


@dataclass(frozen=True)
class CoverEdit:
    """Mutator calls for one dirty fragment, in document space."""
    fragment_id: FragmentId
    page_index: int
    rect: tuple[float, float, float, float]   # x, y, width, height
    text: Optional[str]                       # None: erase only
    x: float
    y: float
    font_size: float


@dataclass
class ExportJob:
    generation: int
    document_bytes: bytes
    edits: list[CoverEdit] = field(default_factory=list)


@dataclass
class ExportResult:
    data: bytes
    filename: str


class EditSession:

    def __init__(self, config: Optional[EditorConfig] = None,
                 decoder: Optional[FitzDecoder] = None,
                 mutator: Optional[FitzMutator] = None):
        self.config = (config or EditorConfig()).validate()
        self.decoder = decoder or FitzDecoder()
        self.mutator = mutator or FitzMutator()

        self.state = SessionState.EMPTY
        self.generation = 0
        self.document_bytes: Optional[bytes] = None
        self.pages: list[PageInfo] = []
        self.registry = FragmentRegistry()
        self.editing: Optional[FragmentId] = None
        self._edit_snapshot: str = ""
        self.last_error: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.state == SessionState.READY

    def _reset(self):
        self.document_bytes = None
        self.pages = []
        self.registry = FragmentRegistry()
        self.editing = None
        self._edit_snapshot = ""

    # ── Load ──────────────────────────────────

    def begin_load(self, data: bytes) -> int:
        """Start a new upload from any state. Returns its generation tag."""
        self.generation += 1
        self._reset()
        self.document_bytes = bytes(data)
        self.last_error = None
        self.state = SessionState.LOADING
        logging.info(f"Loading document ({len(data)} bytes, generation {self.generation})")
        return self.generation

    def decode_document(self, data: bytes, generation: int) -> LoadResult:
        """Decode every page into a fresh registry. Does not touch session state.

        Any failure is raised as DecodeFailure and nothing is kept.
        """
        scale = self.config.render_scale
        registry = FragmentRegistry()
        pages: list[PageInfo] = []
        decoded = None
        try:
            decoded = self.decoder.decode(data)
            for page_number in range(1, decoded.page_count + 1):
                page = self.decoder.get_page(decoded, page_number)
                rendered = self.decoder.render(page, scale)
                pages.append(PageInfo(
                    page_index=page_number,
                    render_scale=scale,
                    viewport_width=rendered.viewport_width,
                    viewport_height=rendered.viewport_height,
                    viewport_transform=rendered.viewport_transform,
                    page_height=rendered.page_height,
                    raster=rendered.raster,
                ))
                items = self.decoder.get_text_fragments(page)
                for ordinal, item in enumerate(items):
                    # Blank runs cannot be meaningfully edited
                    if not item.text.strip():
                        continue
                    x, y, font_size = to_render_space(item.transform, rendered.viewport_transform)
                    registry.register(TextFragment(
                        id=FragmentId(page_number, ordinal),
                        original_text=item.text,
                        render_x=x,
                        render_y=y,
                        font_size_render=font_size,
                        render_width=item.width * scale,
                        document_transform=tuple(item.transform),
                        font_family=item.font_name or "sans-serif",
                    ))
        except Exception as e:
            raise DecodeFailure(f"Could not decode document: {e}") from e
        finally:
            if decoded is not None and hasattr(self.decoder, "close"):
                self.decoder.close(decoded)
        return LoadResult(generation=generation, pages=pages, registry=registry)

    def apply_load(self, result: LoadResult) -> bool:
        """Install a decode result. Results from a superseded upload are dropped."""
        if result.generation != self.generation:
            logging.info(
                f"Discarding stale load result (generation {result.generation}, "
                f"current {self.generation})"
            )
            return False
        self.pages = result.pages
        self.registry = result.registry
        self.state = SessionState.READY
        logging.info(f"Document ready: {len(self.pages)} pages, {len(self.registry)} fragments")
        return True

    def fail_load(self, generation: int, error: Exception | str) -> bool:
        if generation != self.generation:
            logging.info(f"Ignoring failure of superseded load (generation {generation})")
            return False
        logging.error(f"Document load failed: {error}")
        self._reset()
        self.last_error = str(error)
        self.state = SessionState.ERROR
        return True

    def load(self, data: bytes) -> bool:
        """Synchronous upload: begin, decode and install in one call."""
        generation = self.begin_load(data)
        try:
            result = self.decode_document(data, generation)
        except DecodeFailure as e:
            self.fail_load(generation, e)
            raise
        return self.apply_load(result)

    def page(self, page_index: int) -> PageInfo:
        return self.pages[page_index - 1]

    # ── Inline edit ───────────────────────────

    def begin_edit(self, fragment_id: FragmentId) -> Optional[str]:
        """Open the inline editor for a fragment and return its pre-fill text.

        Returns None if that fragment is already being edited or is unknown.
        An edit open on another fragment is closed with its text unchanged.
        """
        if not self.is_ready:
            raise SessionNotReady("No document is ready for editing")
        if self.editing == fragment_id:
            return None
        fragment = self.registry.get(fragment_id)
        if fragment is None:
            return None
        if self.editing is not None:
            self.cancel_edit()
        self.editing = fragment_id
        self._edit_snapshot = fragment.current_text
        return fragment.current_text

    def confirm_edit(self, text: str) -> bool:
        """Commit the inline editor's text (commit key or focus loss)."""
        if self.editing is None:
            return False
        fragment_id = self.editing
        self.editing = None
        return self.registry.commit_edit(fragment_id, text)

    def cancel_edit(self) -> bool:
        """Close the inline editor, committing the pre-edit text unchanged."""
        if self.editing is None:
            return False
        return self.confirm_edit(self._edit_snapshot)

    def edit(self, fragment_id: FragmentId, text: str) -> bool:
        if not self.is_ready:
            # Nothing is registered outside READY, so the id is stale
            logging.debug(f"Ignoring edit of {fragment_id} while {self.state.value}")
            return False
        if self.editing == fragment_id:
            self.editing = None
        return self.registry.commit_edit(fragment_id, text)

    # ── Export ────────────────────────────────

    def plan_export(self) -> list[CoverEdit]:
        """Convert every dirty fragment into document-space draw calls."""
        scale = self.config.render_scale
        padding = self.config.cover_padding
        edits: list[CoverEdit] = []
        for fragment in self.registry.iter_dirty():
            page = self.page(fragment.page_index)
            point = to_document_space(
                fragment.render_x, fragment.render_y, fragment.font_size_render,
                scale, page.page_height,
            )
            text = fragment.current_text if fragment.current_text.strip() else None
            edits.append(CoverEdit(
                fragment_id=fragment.id,
                page_index=fragment.page_index,
                rect=cover_rect(point, fragment.render_width / scale, padding),
                text=text,
                x=point.x,
                y=point.baseline_y,
                font_size=point.font_size,
            ))
        return edits

    def begin_export(self) -> ExportJob:
        if not self.is_ready:
            raise SessionNotReady(f"Cannot export while {self.state.value}")
        if self.editing is not None:
            self.cancel_edit()
        job = ExportJob(
            generation=self.generation,
            document_bytes=self.document_bytes,
            edits=self.plan_export(),
        )
        self.state = SessionState.EXPORTING
        logging.info(f"Exporting {len(job.edits)} edited fragment(s)")
        return job

    def run_export(self, job: ExportJob) -> bytes:
        """Apply an export job through the mutator. Does not touch session state."""
        cfg = self.config
        doc = None
        try:
            doc = self.mutator.load(job.document_bytes)
            pages = self.mutator.get_pages(doc)
            font = self.mutator.embed_standard_font(doc, cfg.substitute_font)
            for edit in job.edits:
                page = pages[edit.page_index - 1]
                x, y, width, height = edit.rect
                self.mutator.draw_rectangle(page, x, y, width, height, cfg.cover_color)
                if edit.text is not None:
                    self.mutator.draw_text(
                        page, edit.text, edit.x, edit.y, edit.font_size, font, cfg.text_color,
                    )
            return self.mutator.save(doc)
        except Exception as e:
            raise ExportFailure(f"Could not export document: {e}") from e
        finally:
            if doc is not None:
                self.mutator.close(doc)

    def finish_export(self, job: ExportJob) -> bool:
        """Return to READY after an export, unless a newer upload took over."""
        if job.generation != self.generation:
            logging.info(f"Export finished for superseded generation {job.generation}")
            return False
        if self.state == SessionState.EXPORTING:
            self.state = SessionState.READY
        return True

    def export(self) -> ExportResult:
        job = self.begin_export()
        try:
            data = self.run_export(job)
        except ExportFailure as e:
            logging.error(str(e))
            raise
        finally:
            self.finish_export(job)
        return ExportResult(data=data, filename=self.config.export_filename)
