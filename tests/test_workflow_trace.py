from __future__ import annotations

import json
from pathlib import Path

from deepnarrative.workflow_trace import write_workflow_summary


def test_write_workflow_summary_writes_markdown_and_json(tmp_path: Path) -> None:
    stage_order = ["plan", "chunk", "sections"]
    stage_status = {
        "plan": {"status": "fallback", "detail": "no sections parsed"},
        "chunk": {"status": "ran", "detail": "chunks=2"},
        "sections": {"status": "ran", "detail": ""},
    }
    events = [
        {"index": "1", "timestamp": "2026-01-01T10:00:00", "stage": "plan", "status": "fallback", "detail": ""},
        {"index": "2", "timestamp": "", "stage": "chunk", "status": "ran", "detail": "chunks=2"},
    ]

    summary, workflow_path = write_workflow_summary(
        stage_status=stage_status,
        stage_order=stage_order,
        trace_dir=tmp_path / "trace",
        session_id="abc",
        stage_events=events,
    )

    assert summary == [
        "1. plan: fallback (no sections parsed)",
        "2. chunk: ran (chunks=2)",
        "3. sections: ran",
    ]
    assert workflow_path == tmp_path / "trace" / "narrative_workflow.md"
    markdown = workflow_path.read_text(encoding="utf-8")
    assert "## Timeline" in markdown
    assert "1. [2026-01-01T10:00:00] plan: fallback" in markdown
    assert "2. chunk: ran (chunks=2)" in markdown
    assert "style plan stroke-dasharray: 4 2" in markdown

    payload = json.loads((tmp_path / "trace" / "narrative_workflow.json").read_text(encoding="utf-8"))
    assert payload["stages"] == stage_status
    assert payload["order"] == stage_order
    assert payload["session_id"] == "abc"
    assert payload["diagram_mermaid"].startswith("flowchart LR")
    assert isinstance(payload.get("created_at"), str) and payload["created_at"]


def test_timeline_is_inferred_without_events(tmp_path: Path) -> None:
    write_workflow_summary(
        stage_status={"plan": {"status": "ran", "detail": ""}},
        stage_order=["plan"],
        trace_dir=tmp_path,
    )
    payload = json.loads((tmp_path / "narrative_workflow.json").read_text(encoding="utf-8"))
    assert payload["timeline"] == [{"index": "1", "timestamp": "", "stage": "plan", "status": "ran", "detail": ""}]
