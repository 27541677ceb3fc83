from __future__ import annotations

import argparse
import shutil
from typing import Optional

from .config import CONTEXT_WINDOW_ENV, DEFAULT_MODEL, MAX_WORKERS_ENV, MODEL_ENV, parse_positive_int
from .workflow_stages import STAGE_INFO, STAGE_ORDER


class CleanHelpFormatter(argparse.RawDescriptionHelpFormatter):
    def __init__(self, prog: str) -> None:
        width = shutil.get_terminal_size((120, 20)).columns
        super().__init__(prog, width=width, max_help_position=32)


def build_parser() -> argparse.ArgumentParser:
    stage_lines = "\n".join(f"  {name}: {STAGE_INFO[name]}" for name in STAGE_ORDER)
    epilog = (
        "Inputs:\n"
        "  --context points at a JSON research context (session_id, original_query,\n"
        "  research_questions, insights, citations, config.research_depth).\n"
        "  --knowledge points at the synthesized knowledge text (markdown or plain).\n\n"
        "Stages:\n"
        f"{stage_lines}\n\n"
        "Overrides (lowest to highest): --config file, environment, CLI flags.\n"
        "  The --config file may also hold a 'model' object (name, temperature).\n\n"
        "Examples:\n"
        "  deepnarrative --context ./ctx.json --knowledge ./knowledge.md --output ./narrative.md\n"
        "  deepnarrative --context ./ctx.json --knowledge ./knowledge.md --offline --trace-dir ./trace\n"
    )
    ap = argparse.ArgumentParser(
        prog="deepnarrative",
        description="Build a long-form multi-section narrative from synthesized research.",
        formatter_class=CleanHelpFormatter,
        epilog=epilog,
    )
    ap.add_argument("--context", required=True, help="Path to the research context JSON file.")
    ap.add_argument("--knowledge", required=True, help="Path to the synthesized knowledge text file.")
    ap.add_argument("--output", help="Write the narrative to this path (default: print to stdout).")
    ap.add_argument(
        "--model",
        help=f"Chat model name (default: config model.name, env {MODEL_ENV}, or {DEFAULT_MODEL}).",
    )
    ap.add_argument("--config", help="JSON file with a 'config' object of narrative settings.")
    ap.add_argument(
        "--max-workers",
        dest="max_workers",
        type=int,
        help=f"Parallel section workers (env: {MAX_WORKERS_ENV}).",
    )
    ap.add_argument(
        "--context-window",
        dest="context_window",
        type=int,
        help=f"Context window limit in tokens (env: {CONTEXT_WINDOW_ENV}).",
    )
    ap.add_argument("--temperature", type=float, help="Sampling temperature passed to the chat model.")
    ap.add_argument("--trace-dir", dest="trace_dir", help="Write narrative_workflow.md/.json to this directory.")
    ap.add_argument(
        "--quality",
        action="store_true",
        help="Print heuristic quality checks to stderr after the build.",
    )
    ap.add_argument(
        "--offline",
        action="store_true",
        help="Use a deterministic local completion service (no network).",
    )
    ap.add_argument("--log-level", dest="log_level", default="INFO", help="Logging level (default: INFO).")
    return ap


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    args = build_parser().parse_args(argv)
    if args.max_workers is not None and parse_positive_int(args.max_workers) is None:
        raise SystemExit("--max-workers must be >= 1.")
    if args.context_window is not None and parse_positive_int(args.context_window) is None:
        raise SystemExit("--context-window must be >= 1.")
    return args
