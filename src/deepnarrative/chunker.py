from __future__ import annotations

from typing import Optional, Protocol
import logging
import math
import re

from .config import MIN_PROMPT_BUDGET, NarrativeConfig
from .logging_utils import format_event, get_logger
from .models import ContentChunk, NarrativeStructure, PromptChunk, ResearchContext

TRUNCATION_MARKER = "\n... [truncated] ...\n"
OMITTED_MARKER = "[omitted]"

# Least essential first: evidence blocks shrink before any instruction block.
COMPRESSIBLE_BLOCKS: tuple[str, ...] = (
    "RELEVANT CONTENT CHUNK",
    "AUTHORITATIVE SOURCES",
    "SUPPORTING INSIGHTS",
    "EXISTING INSIGHTS OVERVIEW",
)

_BLOCK_HEADER_RE = re.compile(r"(?m)^[ \t]*([A-Z][A-Z0-9 /&()-]+):[ \t]*$")
_HEADING_RE = re.compile(r"(?m)^(?=#{1,6} )")
_BOUNDARIES: tuple[str, ...] = ("\n\n", "\n", ". ", " ")


class TokenEstimator(Protocol):
    def estimate(self, text: str) -> int: ...

    def max_chars(self, tokens: int) -> int: ...


class CharRatioEstimator:
    """Length based token heuristic: ceil(chars / chars_per_token).

    This is an approximation, not a tokenizer. Real token counts drift from it
    (code, non-latin scripts), so budgets computed with it are soft limits.
    """

    def __init__(self, chars_per_token: float = 4.0) -> None:
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")
        self.chars_per_token = float(chars_per_token)

    def estimate(self, text: str) -> int:
        if not text:
            return 0
        return int(math.ceil(len(text) / self.chars_per_token))

    def max_chars(self, tokens: int) -> int:
        return max(0, int(math.floor(tokens * self.chars_per_token)))


def truncate_middle(text: str, max_chars: int, marker: str = TRUNCATION_MARKER) -> str:
    if max_chars <= 0:
        return ""
    if len(text) <= max_chars:
        return text
    keep = max_chars - len(marker)
    if keep <= 0:
        return text[:max_chars]
    head = keep - keep // 2
    tail = keep // 2
    return f"{text[:head]}{marker}{text[len(text) - tail:] if tail else ''}"


def _find_split(text: str, start: int, end: int, min_end: int) -> int:
    if end >= len(text):
        return len(text)
    window = text[min_end:end]
    for boundary in _BOUNDARIES:
        pos = window.rfind(boundary)
        if pos >= 0:
            return min_end + pos + len(boundary)
    return end


class ContentChunker:
    def __init__(
        self,
        config: Optional[NarrativeConfig] = None,
        estimator: Optional[TokenEstimator] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config or NarrativeConfig()
        self.estimator = estimator or CharRatioEstimator(self.config.chars_per_token)
        self.log = logger or get_logger(__name__)

    @property
    def context_window_limit(self) -> int:
        return self.config.context_window_limit

    def estimate_tokens(self, text: str) -> int:
        return self.estimator.estimate(text or "")

    def _spans(self, text: str, size: int, overlap_ratio: float) -> list[tuple[int, int]]:
        spans: list[tuple[int, int]] = []
        size = max(1, size)
        start = 0
        length = len(text)
        while start < length:
            hard_end = min(length, start + size)
            min_end = start + max(1, int(size * 0.8))
            end = _find_split(text, start, hard_end, min(min_end, hard_end))
            spans.append((start, end))
            if end >= length:
                break
            overlap = int((end - start) * overlap_ratio)
            start = max(start + 1, end - overlap)
        return spans

    def _fit_spans(self, text: str, token_budget: int, overlap_ratio: float) -> list[tuple[int, int]]:
        size = max(1, self.estimator.max_chars(token_budget))
        spans = self._spans(text, size, overlap_ratio)
        attempts = 0
        while any(self.estimator.estimate(text[a:b]) > token_budget for a, b in spans):
            attempts += 1
            size = max(1, int(size * 0.85))
            spans = self._spans(text, size, overlap_ratio)
            if size == 1 or attempts > 32:
                break
        return spans

    def chunk(
        self,
        content: str,
        context: Optional[ResearchContext] = None,
        structure: Optional[NarrativeStructure] = None,
    ) -> list[ContentChunk]:
        if not content or not content.strip():
            return []
        spans = self._fit_spans(content, self.config.chunk_token_budget, self.config.chunk_overlap_ratio)
        chunks = [
            ContentChunk(content=content[start:end], index=idx, start=start, end=end)
            for idx, (start, end) in enumerate(spans)
        ]
        self.log.debug(
            format_event(
                "chunker",
                session=context.session_id if context else None,
                sections=len(structure) if structure else None,
                chars=len(content),
                chunks=len(chunks),
            )
        )
        return chunks

    def _split_pieces(self, text: str, token_budget: int) -> list[str]:
        return [text[a:b] for a, b in self._fit_spans(text, token_budget, 0.0)]

    def chunk_prompt(self, prompt_text: str) -> list[PromptChunk]:
        budget = self.context_window_limit
        if self.estimate_tokens(prompt_text) <= budget:
            return [PromptChunk(content=prompt_text or "", index=0, total=1)]
        # Header width depends on the part count; re-split until the count stops gaining digits.
        total = 1
        while True:
            room = budget - self.estimate_tokens(f"[PART {total}/{total}]\n")
            if room < 1:
                self.log.warning(
                    format_event("chunker", action="chunk_prompt", status="compressed", detail="no room for part headers")
                )
                return [PromptChunk(content=self.compress_prompt(prompt_text, budget), index=0, total=1)]
            pieces = self._split_pieces(prompt_text, room)
            if len(str(len(pieces))) <= len(str(total)):
                break
            total = len(pieces)
        total = len(pieces)
        return [
            PromptChunk(content=f"[PART {idx + 1}/{total}]\n{piece}", index=idx, total=total)
            for idx, piece in enumerate(pieces)
        ]

    def chunk_narrative(self, narrative_text: str) -> list[PromptChunk]:
        if not narrative_text or not narrative_text.strip():
            return []
        budget = self.context_window_limit
        blocks = [block for block in _HEADING_RE.split(narrative_text) if block]
        pieces: list[str] = []
        current = ""
        for block in blocks:
            if self.estimate_tokens(block) > budget:
                if current:
                    pieces.append(current)
                    current = ""
                pieces.extend(self._split_pieces(block, budget))
                continue
            candidate = current + block
            if current and self.estimate_tokens(candidate) > budget:
                pieces.append(current)
                current = block
            else:
                current = candidate
        if current:
            pieces.append(current)
        cleaned = [piece.rstrip() for piece in pieces if piece.strip()]
        total = len(cleaned)
        return [PromptChunk(content=piece, index=idx, total=total) for idx, piece in enumerate(cleaned)]

    def _shrink_block(self, text: str, name: str, excess_chars: int) -> str:
        matches = list(_BLOCK_HEADER_RE.finditer(text))
        for pos, match in enumerate(matches):
            if match.group(1).strip() != name:
                continue
            body_start = match.end()
            body_end = matches[pos + 1].start() if pos + 1 < len(matches) else len(text)
            body = text[body_start:body_end].strip("\n")
            if not body or body == OMITTED_MARKER:
                return text
            keep = len(body) - excess_chars
            if keep <= len(TRUNCATION_MARKER) + 8:
                replacement = OMITTED_MARKER
            else:
                replacement = truncate_middle(body, keep)
            return f"{text[:body_start]}\n{replacement}\n\n{text[body_end:].lstrip(chr(10))}"
        return text

    def compress_prompt(self, prompt_text: str, token_budget: Optional[int] = None) -> str:
        budget = self.context_window_limit if token_budget is None else int(token_budget)
        if budget < MIN_PROMPT_BUDGET:
            raise ValueError(f"Token budget must be >= {MIN_PROMPT_BUDGET}: {budget}")
        text = prompt_text or ""
        original_tokens = self.estimate_tokens(text)
        if original_tokens <= budget:
            return text
        for name in COMPRESSIBLE_BLOCKS:
            excess = len(text) - self.estimator.max_chars(budget)
            if excess <= 0 and self.estimate_tokens(text) <= budget:
                break
            text = self._shrink_block(text, name, max(1, excess))
            if self.estimate_tokens(text) <= budget:
                self._log_compression(original_tokens, text, budget, strategy="blocks")
                return text
        max_chars = self.estimator.max_chars(budget)
        compressed = truncate_middle(text, max_chars)
        while self.estimate_tokens(compressed) > budget and max_chars > 1:
            max_chars = int(max_chars * 0.9)
            compressed = truncate_middle(text, max_chars)
        self._log_compression(original_tokens, compressed, budget, strategy="middle")
        return compressed

    def _log_compression(self, original_tokens: int, text: str, budget: int, strategy: str) -> None:
        self.log.info(
            format_event(
                "chunker",
                action="compress",
                strategy=strategy,
                tokens_before=original_tokens,
                tokens_after=self.estimate_tokens(text),
                budget=budget,
            )
        )
