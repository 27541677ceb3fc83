"""Deep narrative builder: planned, chunked, parallel long-form synthesis."""

from __future__ import annotations

from .versioning import VERSION as __version__

__all__ = ["NarrativeBuilder", "BuildReport", "build_narrative", "NarrativeConfig", "ResearchContext", "__version__"]


def __getattr__(name: str):
    if name in {"NarrativeBuilder", "BuildReport", "build_narrative"}:
        from . import builder

        return getattr(builder, name)
    if name == "NarrativeConfig":
        from .config import NarrativeConfig

        return NarrativeConfig
    if name == "ResearchContext":
        from .models import ResearchContext

        return ResearchContext
    raise AttributeError(f"module 'deepnarrative' has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(__all__)
