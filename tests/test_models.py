from __future__ import annotations

import pytest

from deepnarrative.logging_utils import format_event
from deepnarrative.models import (
    NarrativeSection,
    NarrativeStructure,
    Priority,
    ResearchContext,
    ResearchDepth,
    StageOutcome,
)


def test_research_depth_parse_and_ordinal() -> None:
    assert ResearchDepth.parse("COMPREHENSIVE") is ResearchDepth.COMPREHENSIVE
    assert ResearchDepth.parse(3) is ResearchDepth.EXPERT
    assert ResearchDepth.parse("unknown") is ResearchDepth.STANDARD
    assert [depth.ordinal for depth in ResearchDepth] == [0, 1, 2, 3]


def test_priority_parse_tolerates_brackets() -> None:
    assert Priority.parse("[High]") is Priority.HIGH
    assert Priority.parse("low priority") is Priority.LOW
    assert Priority.parse(None) is Priority.MEDIUM


def test_structure_requires_sections() -> None:
    with pytest.raises(ValueError):
        NarrativeStructure(())
    with pytest.raises(ValueError):
        NarrativeSection("", "focus", 100)
    with pytest.raises(ValueError):
        NarrativeSection("Title", "focus", 0)


def test_with_unique_titles_skips_taken_suffixes() -> None:
    structure = NarrativeStructure(
        (
            NarrativeSection("Intro", "a", 100),
            NarrativeSection("Intro (2)", "b", 100),
            NarrativeSection("Intro", "c", 100),
        )
    )
    assert structure.with_unique_titles().titles() == ["Intro", "Intro (2)", "Intro (3)"]


def test_context_from_dict() -> None:
    context = ResearchContext.from_dict(
        {
            "session_id": "s1",
            "query": "q",
            "questions": ["plain question", {"question": "typed", "category": "market"}],
            "insights": ["first", "second"],
            "citations": [{"title": "T", "snippet": "S", "url": "u"}, "ignored"],
            "research_depth": "basic",
        }
    )
    assert context.original_query == "q"
    assert context.research_categories() == ["general", "market"]
    assert context.insights == {"insight_1": "first", "insight_2": "second"}
    assert context.citations[0].content == "S"
    assert context.research_depth is ResearchDepth.BASIC
    with pytest.raises(ValueError):
        ResearchContext.from_dict(["not", "a", "mapping"])


def test_stage_outcome_status() -> None:
    assert StageOutcome.ok(1).status == "ran"
    fallback = StageOutcome.fallback(2, "")
    assert fallback.status == "fallback"
    assert fallback.reason == "unknown"


def test_format_event_skips_empty_fields() -> None:
    assert format_event("narrative", stage="plan", detail="", extra=None, note="a\nb") == "[narrative] stage=plan note=a b"


def test_context_from_dict_keeps_string_insight_whole() -> None:
    context = ResearchContext.from_dict({"query": "q", "insights": "one insight"})
    assert context.insights == {"insight_1": "one insight"}
    assert ResearchContext.from_dict({"query": "q", "insights": 42}).insights == {}
