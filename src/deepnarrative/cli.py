from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional
import json
import sys

from .builder import NarrativeBuilder
from .cli_args import parse_args
from .config import (
    apply_config_overrides,
    load_config_file,
    load_narrative_config,
    resolve_model_name,
    resolve_temperature,
)
from .errors import NarrativeError
from .llm import ChatCompletionService, EchoCompletionService
from .logging_utils import configure_logging
from .models import ResearchContext
from .quality import NarrativeQualityValidator


def load_context(path: Path) -> ResearchContext:
    if not path.exists():
        raise SystemExit(f"Research context not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SystemExit(f"Invalid research context JSON: {exc}") from exc
    try:
        return ResearchContext.from_dict(payload)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc


def load_knowledge(path: Path) -> str:
    if not path.exists():
        raise SystemExit(f"Knowledge file not found: {path}")
    return path.read_text(encoding="utf-8", errors="replace")


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(list(argv) if argv is not None else None)
    log = configure_logging(args.log_level)

    context = load_context(Path(args.context))
    knowledge = load_knowledge(Path(args.knowledge))
    try:
        config = load_narrative_config(args.config)
        _, model_section = load_config_file(args.config)
    except (OSError, ValueError) as exc:
        raise SystemExit(f"Invalid narrative config: {exc}") from exc
    config = apply_config_overrides(
        config,
        {"max_workers": args.max_workers, "context_window_limit": args.context_window},
    )

    if args.offline:
        completion = EchoCompletionService()
    else:
        try:
            completion = ChatCompletionService(
                resolve_model_name(args.model, model_section),
                temperature=resolve_temperature(args.temperature, model_section),
            )
        except NarrativeError as exc:
            raise SystemExit(str(exc)) from exc

    builder = NarrativeBuilder(completion, config, logger=log)
    try:
        report = builder.build(context, knowledge, trace_dir=Path(args.trace_dir) if args.trace_dir else None)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(report.narrative, encoding="utf-8")
        print(f"Wrote narrative: {output_path}", file=sys.stderr)
    else:
        print(report.narrative)
    for line in report.workflow_summary():
        print(line, file=sys.stderr)
    if report.workflow_path:
        print(f"Workflow trace: {report.workflow_path}", file=sys.stderr)
    if args.quality:
        quality = NarrativeQualityValidator().validate(report.narrative, context)
        print("Quality checks:", file=sys.stderr)
        for line in quality.summary_lines():
            print(line, file=sys.stderr)
    return 0
