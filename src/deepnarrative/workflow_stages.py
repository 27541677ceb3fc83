from __future__ import annotations

from typing import Optional
import datetime as dt


STAGE_INFO: dict[str, str] = {
    "plan": "Plan an adaptive section structure from the research context.",
    "chunk": "Split synthesized knowledge into overlapping, budget-sized chunks.",
    "sections": "Generate every section in parallel with isolated fallbacks.",
    "assemble": "Order summary, sections, transitions, conclusion and references.",
    "enhance": "Expand short narratives or run a per-chunk coherence pass.",
}

STAGE_ORDER: tuple[str, ...] = ("plan", "chunk", "sections", "assemble", "enhance")

TERMINAL_STATUSES = frozenset({"ran", "fallback", "failed", "skipped"})


def initialize_stage_status(
    *,
    stage_order: Optional[list[str]] = None,
) -> dict[str, dict[str, str]]:
    return {name: {"status": "pending", "detail": ""} for name in (stage_order or STAGE_ORDER)}


def record_stage(
    stage_status: dict[str, dict[str, str]],
    *,
    name: str,
    status: str,
    detail: str = "",
) -> None:
    if name not in stage_status:
        return
    stage_status[name]["status"] = status
    if detail:
        stage_status[name]["detail"] = detail


def append_stage_event(
    stage_events: list[dict[str, str]],
    *,
    name: str,
    status: str,
    detail: str = "",
) -> dict[str, str]:
    event = {
        "index": str(len(stage_events) + 1),
        "timestamp": dt.datetime.now().isoformat(timespec="seconds"),
        "stage": name,
        "status": status,
        "detail": detail,
    }
    stage_events.append(event)
    return event


def skip_pending_stages(stage_status: dict[str, dict[str, str]], detail: str) -> list[str]:
    skipped: list[str] = []
    for name, entry in stage_status.items():
        if entry.get("status") not in TERMINAL_STATUSES:
            record_stage(stage_status, name=name, status="skipped", detail=detail)
            skipped.append(name)
    return skipped


def summarize_stage_status(
    stage_status: dict[str, dict[str, str]],
    stage_order: Optional[list[str]] = None,
) -> list[str]:
    lines: list[str] = []
    for idx, name in enumerate(stage_order or list(stage_status), start=1):
        entry = stage_status.get(name, {})
        line = f"{idx}. {name}: {entry.get('status', 'unknown')}"
        if entry.get("detail"):
            line = f"{line} ({entry['detail']})"
        lines.append(line)
    return lines
