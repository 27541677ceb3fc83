from __future__ import annotations

import logging

import pytest

from deepnarrative.chunker import ContentChunker
from deepnarrative.coherence import CoherenceEnhancer
from deepnarrative.config import NarrativeConfig

NARRATIVE = "# Executive Summary\n\nshort\n\n## Alpha\n\nalpha body\n"


class Append:
    def expand(self, narrative, context):
        return narrative + "\n\nMore detail."


class Shorten:
    def expand(self, narrative, context):
        return narrative[:5]


class Upper:
    def improve(self, chunk, context):
        return chunk.content.upper()


class Broken:
    def improve(self, chunk, context):
        raise RuntimeError("improver crashed")


def test_expansion_floor_uses_threshold() -> None:
    enhancer = CoherenceEnhancer(ContentChunker(NarrativeConfig(target_narrative_length=1000)))
    assert enhancer.expansion_floor == 800


def test_short_narrative_is_expanded(context) -> None:
    enhancer = CoherenceEnhancer(ContentChunker(), expander=Append(), improver=Upper())
    outcome = enhancer.enhance_outcome(NARRATIVE, context)
    assert not outcome.degraded
    assert outcome.value == NARRATIVE + "\n\nMore detail."


def test_default_expansion_keeps_text(context) -> None:
    assert CoherenceEnhancer(ContentChunker()).enhance(NARRATIVE, context) == NARRATIVE


def test_expansion_that_shortens_is_rejected(context) -> None:
    outcome = CoherenceEnhancer(ContentChunker(), expander=Shorten()).enhance_outcome(NARRATIVE, context)
    assert outcome.degraded
    assert outcome.value == NARRATIVE


def test_long_narrative_is_improved_per_chunk(context) -> None:
    chunker = ContentChunker(NarrativeConfig(target_narrative_length=10))
    enhancer = CoherenceEnhancer(chunker, expander=Shorten(), improver=Upper())

    result = enhancer.enhance(NARRATIVE, context)

    assert result == NARRATIVE.rstrip().upper() + "\n"


def test_per_chunk_pass_keeps_chunk_order(context) -> None:
    chunker = ContentChunker(NarrativeConfig(target_narrative_length=10, context_window_limit=16))
    narrative = "# One\n\n" + "a" * 40 + "\n\n## Two\n\n" + "b" * 40 + "\n"

    result = CoherenceEnhancer(chunker, improver=Upper()).enhance(narrative, context)

    assert result.index("# ONE") < result.index("## TWO")
    assert result.endswith("\n")
    assert result.count("\n## TWO") == 1


def test_enhancer_errors_return_input(context, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="deepnarrative")
    chunker = ContentChunker(NarrativeConfig(target_narrative_length=10))

    outcome = CoherenceEnhancer(chunker, improver=Broken()).enhance_outcome(NARRATIVE, context)

    assert outcome.degraded
    assert outcome.value == NARRATIVE
    assert "improver crashed" in caplog.text
