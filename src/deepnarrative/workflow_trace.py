from __future__ import annotations

import datetime as dt
import json
from pathlib import Path
from typing import Optional

from .workflow_stages import summarize_stage_status


def _normalize_stage_events(
    stage_events: Optional[list[dict[str, str]]],
    stage_order: list[str],
    stage_status: dict[str, dict[str, str]],
) -> list[dict[str, str]]:
    if stage_events:
        normalized: list[dict[str, str]] = []
        for idx, event in enumerate(stage_events, start=1):
            stage_name = str(event.get("stage") or "").strip().lower()
            if not stage_name:
                continue
            normalized.append(
                {
                    "index": str(event.get("index") or idx),
                    "timestamp": str(event.get("timestamp") or ""),
                    "stage": stage_name,
                    "status": str(event.get("status") or "").strip().lower() or "unknown",
                    "detail": str(event.get("detail") or "").strip(),
                }
            )
        if normalized:
            return normalized
    inferred: list[dict[str, str]] = []
    for idx, stage_name in enumerate(stage_order, start=1):
        entry = stage_status.get(stage_name, {})
        inferred.append(
            {
                "index": str(idx),
                "timestamp": "",
                "stage": stage_name,
                "status": str(entry.get("status") or "unknown"),
                "detail": str(entry.get("detail") or ""),
            }
        )
    return inferred


def _build_mermaid(
    stage_order: list[str],
    stage_status: dict[str, dict[str, str]],
) -> str:
    order = [name for name in stage_order if name in stage_status]
    if not order:
        return ""
    lines = ["flowchart LR"]
    for stage_name in order:
        status = str((stage_status.get(stage_name) or {}).get("status") or "unknown")
        safe_label = f"{stage_name}\\n{status}".replace('"', "'")
        lines.append(f'    {stage_name}["{safe_label}"]')
    for idx in range(len(order) - 1):
        lines.append(f"    {order[idx]} --> {order[idx + 1]}")
    for stage_name in order:
        if str((stage_status.get(stage_name) or {}).get("status") or "") == "fallback":
            lines.append(f"    style {stage_name} stroke-dasharray: 4 2")
    return "\n".join(lines)


def write_workflow_summary(
    *,
    stage_status: dict[str, dict[str, str]],
    stage_order: list[str],
    trace_dir: Path,
    session_id: str = "",
    stage_events: Optional[list[dict[str, str]]] = None,
) -> tuple[list[str], Path]:
    trace_dir.mkdir(parents=True, exist_ok=True)
    workflow_summary = summarize_stage_status(stage_status, stage_order)
    workflow_path = trace_dir / "narrative_workflow.md"
    workflow_lines = ["# Narrative Workflow", ""]
    if session_id:
        workflow_lines.extend([f"Session: {session_id}", ""])
    workflow_lines.extend(["## Stages", *workflow_summary, ""])
    timeline = _normalize_stage_events(stage_events, stage_order, stage_status)
    if timeline:
        workflow_lines.extend(["## Timeline", ""])
        for idx, event in enumerate(timeline, start=1):
            stamp = f"[{event['timestamp']}] " if event.get("timestamp") else ""
            detail = f" ({event['detail']})" if event.get("detail") else ""
            workflow_lines.append(f"{idx}. {stamp}{event['stage']}: {event['status']}{detail}")
        workflow_lines.append("")
    mermaid = _build_mermaid(stage_order, stage_status)
    if mermaid:
        workflow_lines.extend(["## Diagram", "", "```mermaid", mermaid, "```", ""])
    workflow_path.write_text("\n".join(workflow_lines).strip() + "\n", encoding="utf-8")
    workflow_json_path = trace_dir / "narrative_workflow.json"
    workflow_payload = {
        "created_at": dt.datetime.now().isoformat(),
        "session_id": session_id,
        "stages": stage_status,
        "order": list(stage_order),
        "timeline": timeline,
        "diagram_mermaid": mermaid,
    }
    workflow_json_path.write_text(
        json.dumps(workflow_payload, ensure_ascii=False, indent=2), encoding="utf-8"
    )
    return workflow_summary, workflow_path
