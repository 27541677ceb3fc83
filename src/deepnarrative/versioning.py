from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version as package_version

DEFAULT_VERSION = "0.1.0"


def resolve_version(distribution: str = "deepnarrative") -> str:
    """Installed distribution version, or the source-tree default when not installed."""
    try:
        return package_version(distribution) or DEFAULT_VERSION
    except PackageNotFoundError:
        return DEFAULT_VERSION


VERSION = resolve_version()
