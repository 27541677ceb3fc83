from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional
import json
import os

MAX_WORKERS_ENV = "DEEPNARRATIVE_MAX_WORKERS"
CONTEXT_WINDOW_ENV = "DEEPNARRATIVE_CONTEXT_WINDOW"
MODEL_ENV = "DEEPNARRATIVE_MODEL"

DEFAULT_MODEL = "gpt-4o-mini"
MIN_PROMPT_BUDGET = 16


@dataclass(frozen=True)
class NarrativeConfig:
    target_narrative_length: int = 8000
    max_section_length: int = 1200
    context_window_limit: int = 32000
    chunk_overlap_ratio: float = 0.15
    chars_per_token: float = 4.0
    max_relevant_chunks: int = 5
    max_workers: int = 4
    prompt_reserve_tokens: int = 2000
    expansion_threshold: float = 0.8

    def __post_init__(self) -> None:
        if self.context_window_limit < MIN_PROMPT_BUDGET:
            raise ValueError(f"context_window_limit must be >= {MIN_PROMPT_BUDGET}")
        if not 0.0 <= self.chunk_overlap_ratio < 1.0:
            raise ValueError("chunk_overlap_ratio must be in [0, 1)")
        if self.chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")
        if self.max_workers <= 0:
            raise ValueError("max_workers must be positive")

    @property
    def chunk_token_budget(self) -> int:
        reserve = min(self.prompt_reserve_tokens, self.context_window_limit // 2)
        return max(MIN_PROMPT_BUDGET, self.context_window_limit - reserve)


def parse_positive_int(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = int(text)
        except ValueError:
            return None
        return parsed if parsed > 0 else None
    return None


def parse_ratio(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    if parsed < 0.0 or parsed >= 1.0:
        return None
    return round(parsed, 4)


_INT_KEYS = (
    "target_narrative_length",
    "max_section_length",
    "context_window_limit",
    "max_relevant_chunks",
    "max_workers",
    "prompt_reserve_tokens",
)
_RATIO_KEYS = ("chunk_overlap_ratio", "expansion_threshold")


def normalize_config_overrides(raw: Mapping[str, object]) -> dict:
    if not isinstance(raw, Mapping):
        return {}
    overrides: dict[str, object] = {}
    for key in _INT_KEYS:
        parsed = parse_positive_int(raw.get(key))
        if parsed is not None:
            overrides[key] = parsed
    for key in _RATIO_KEYS:
        parsed_ratio = parse_ratio(raw.get(key))
        if parsed_ratio is not None:
            overrides[key] = parsed_ratio
    chars = raw.get("chars_per_token")
    if isinstance(chars, (int, float)) and not isinstance(chars, bool) and chars > 0:
        overrides["chars_per_token"] = float(chars)
    if overrides.get("context_window_limit", MIN_PROMPT_BUDGET) < MIN_PROMPT_BUDGET:
        overrides.pop("context_window_limit")
    return overrides


def apply_config_overrides(config: NarrativeConfig, overrides: Mapping[str, object]) -> NarrativeConfig:
    normalized = normalize_config_overrides(overrides)
    if not normalized:
        return config
    return replace(config, **normalized)


def apply_env_overrides(config: NarrativeConfig, environ: Optional[Mapping[str, str]] = None) -> NarrativeConfig:
    env = os.environ if environ is None else environ
    overrides: dict[str, object] = {}
    workers = parse_positive_int(env.get(MAX_WORKERS_ENV))
    if workers:
        overrides["max_workers"] = workers
    window = parse_positive_int(env.get(CONTEXT_WINDOW_ENV))
    if window:
        overrides["context_window_limit"] = window
    return apply_config_overrides(config, overrides)


def load_config_file(path: Optional[str]) -> tuple[dict, dict]:
    if not path:
        return {}, {}
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Narrative config not found: {config_path}")
    raw = json.loads(config_path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("Narrative config must be a JSON object.")
    config = raw.get("config") if isinstance(raw.get("config"), dict) else {}
    model = raw.get("model") if isinstance(raw.get("model"), dict) else {}
    return config, model


def load_narrative_config(
    path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> NarrativeConfig:
    config_section, _ = load_config_file(path)
    config = apply_config_overrides(NarrativeConfig(), config_section)
    return apply_env_overrides(config, environ)


def resolve_model_name(
    cli_value: Optional[str],
    model_section: Optional[Mapping[str, object]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    env = os.environ if environ is None else environ
    section = model_section or {}
    for candidate in (cli_value, section.get("name") or section.get("model"), env.get(MODEL_ENV)):
        if candidate and str(candidate).strip():
            return str(candidate).strip()
    return DEFAULT_MODEL


def resolve_temperature(cli_value: Optional[float], model_section: Optional[Mapping[str, object]] = None) -> Optional[float]:
    if cli_value is not None:
        return cli_value
    raw = (model_section or {}).get("temperature")
    if isinstance(raw, bool):
        return None
    try:
        return float(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None
