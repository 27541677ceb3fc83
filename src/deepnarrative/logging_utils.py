from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_logging(level: str = "INFO", stream=None, name: str = "deepnarrative") -> logging.Logger:
    """Attach a single console handler to the package logger (idempotent)."""
    root = logging.getLogger(name)
    resolved = logging.getLevelName(str(level or "INFO").upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO
    root.setLevel(resolved)
    if not any(getattr(handler, "_deepnarrative", False) for handler in root.handlers):
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._deepnarrative = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    for handler in root.handlers:
        handler.setLevel(resolved)
    root.propagate = False
    return root


def format_event(tag: str, **fields: object) -> str:
    parts = [f"[{tag}]"]
    for key, value in fields.items():
        if value is None or value == "":
            continue
        text = str(value).replace("\n", " ").strip()
        parts.append(f"{key}={text}")
    return " ".join(parts)
