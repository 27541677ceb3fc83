from __future__ import annotations


class NarrativeError(Exception):
    """Base error for narrative construction."""


class CompletionError(NarrativeError):
    """Raised when the completion service cannot produce a response."""


class StructureParseError(NarrativeError):
    """Raised when a planning response holds no usable section blocks."""
