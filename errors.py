"""
errors.py: Exception types raised by the editing core.
"""


class EditorError(Exception):
    """Base class for every error the editing core raises."""


class InvalidConfiguration(EditorError):
    """Editor configuration cannot be used (e.g. non-positive render scale)."""


class DecodeFailure(EditorError):
    """The uploaded bytes could not be decoded into pages and fragments."""


class ExportFailure(EditorError):
    """Applying edits to the document or serializing it failed."""


class SessionNotReady(EditorError):
    """An operation needs a fully loaded document, but none is ready."""


class ReconcileError(EditorError):
    """Coordinate conversion would produce degenerate geometry."""


class DuplicateFragmentError(EditorError, ValueError):
    """A fragment id was registered twice within one document load."""
