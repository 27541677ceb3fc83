from __future__ import annotations

from typing import Protocol, Sequence
import re

from .models import Citation, ContentChunk, NarrativeSection, ResearchContext

WORD_RE = re.compile(r"[A-Za-z]{2,}|[가-힣]{2,}")
STOPWORDS = frozenset(
    {"the", "and", "for", "with", "from", "into", "that", "this", "of", "to", "in", "on", "an", "a", "by", "or"}
)


def tokenize(text: str) -> list[str]:
    if not text:
        return []
    return [token for token in WORD_RE.findall(text.lower()) if token not in STOPWORDS]


def section_tokens(section: NarrativeSection) -> set[str]:
    return set(tokenize(f"{section.title} {section.focus}"))


def overlap_score(tokens: set[str], text: str) -> float:
    if not tokens:
        return 0.0
    return len(tokens & set(tokenize(text))) / len(tokens)


class ChunkSelector(Protocol):
    def select(self, section: NarrativeSection, chunks: Sequence[ContentChunk]) -> list[ContentChunk]: ...


class FirstChunksSelector:
    """Keeps the first ``limit`` chunks regardless of section."""

    def __init__(self, limit: int = 5) -> None:
        self.limit = max(1, limit)

    def select(self, section: NarrativeSection, chunks: Sequence[ContentChunk]) -> list[ContentChunk]:
        return list(chunks)[: self.limit]


class KeywordChunkSelector:
    """Ranks chunks by title/focus token overlap, then restores document order."""

    def __init__(self, limit: int = 5) -> None:
        self.limit = max(1, limit)

    def select(self, section: NarrativeSection, chunks: Sequence[ContentChunk]) -> list[ContentChunk]:
        tokens = section_tokens(section)
        ranked = sorted(
            enumerate(chunks),
            key=lambda item: (-overlap_score(tokens, item[1].content), item[0]),
        )
        picked = sorted(ranked[: self.limit], key=lambda item: item[0])
        return [chunk for _, chunk in picked]


class EvidenceSelector(Protocol):
    def insights(self, section: NarrativeSection, context: ResearchContext) -> list[str]: ...

    def citations(self, section: NarrativeSection, context: ResearchContext) -> list[Citation]: ...


class NoEvidenceSelector:
    def insights(self, section: NarrativeSection, context: ResearchContext) -> list[str]:
        return []

    def citations(self, section: NarrativeSection, context: ResearchContext) -> list[Citation]:
        return []


class KeywordEvidenceSelector:
    def __init__(self, max_insights: int = 3, max_citations: int = 4) -> None:
        self.max_insights = max_insights
        self.max_citations = max_citations

    def insights(self, section: NarrativeSection, context: ResearchContext) -> list[str]:
        tokens = section_tokens(section)
        values = list(context.insights.values())
        ranked = sorted(enumerate(values), key=lambda item: (-overlap_score(tokens, item[1]), item[0]))
        return [value for _, value in ranked[: self.max_insights]]

    def citations(self, section: NarrativeSection, context: ResearchContext) -> list[Citation]:
        tokens = section_tokens(section)
        ranked = sorted(
            enumerate(context.citations),
            key=lambda item: (-overlap_score(tokens, f"{item[1].title} {item[1].content}"), item[0]),
        )
        return [citation for _, citation in ranked[: self.max_citations]]
