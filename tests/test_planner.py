from __future__ import annotations

import logging

import pytest

from deepnarrative.chunker import ContentChunker
from deepnarrative.config import NarrativeConfig
from deepnarrative.errors import StructureParseError
from deepnarrative.llm import CallableCompletionService, CompletionResponse
from deepnarrative.models import NarrativeSection, NarrativeStructure, Priority, ResearchDepth
from deepnarrative.planner import (
    StructurePlanner,
    complexity_score,
    default_structure,
    merge_structures,
    parse_structure_response,
)

from conftest import RecordingCompletion, build_context

PLAN_RESPONSE = """Here is the plan.

**SECTION:** Background
FOCUS: History of solid electrolytes
TARGET_LENGTH: 1,200 words
PRIORITY: High
DEPENDENCIES: None

SECTION: Methods
- FOCUS: Synthesis techniques
TARGET_LENGTH: [900]
PRIORITY: [Low]
DEPENDENCIES: Background
"""


def test_complexity_score_matches_reference_scenario() -> None:
    context = build_context(questions=3, citations=25, insights=12, depth=ResearchDepth.COMPREHENSIVE)
    assert complexity_score(context) == 7


def test_complexity_score_handles_empty_context() -> None:
    context = build_context(questions=0, citations=0, insights=0, depth=ResearchDepth.BASIC)
    assert complexity_score(context) == 2


@pytest.mark.parametrize("depth", list(ResearchDepth))
@pytest.mark.parametrize("counts", [(0, 0, 0), (1, 19, 10), (40, 400, 50)])
def test_complexity_score_stays_in_bounds(depth: ResearchDepth, counts: tuple[int, int, int]) -> None:
    questions, citations, insights = counts
    score = complexity_score(build_context(questions, citations, insights, depth))
    assert 0 <= score <= 10


def test_complexity_score_is_capped() -> None:
    context = build_context(questions=40, citations=400, insights=50, depth=ResearchDepth.EXPERT)
    assert complexity_score(context) == 10


def test_parse_structure_response_reads_fields() -> None:
    structure = parse_structure_response(PLAN_RESPONSE)
    assert structure.titles() == ["Background", "Methods"]
    background, methods = structure.sections
    assert background.focus == "History of solid electrolytes"
    assert background.target_length == 1200
    assert background.priority is Priority.HIGH
    assert background.dependencies == ()
    assert methods.target_length == 900
    assert methods.priority is Priority.LOW
    assert methods.dependencies == ("Background",)


def test_parse_structure_response_defaults_missing_fields() -> None:
    structure = parse_structure_response("SECTION: Outlook")
    (section,) = structure.sections
    assert section.focus == "Outlook"
    assert section.target_length == 1000
    assert section.priority is Priority.MEDIUM


def test_parse_structure_response_disambiguates_duplicate_titles() -> None:
    structure = parse_structure_response("SECTION: Overview\nSECTION: Overview\nSECTION: Overview")
    assert structure.titles() == ["Overview", "Overview (2)", "Overview (3)"]


def test_parse_structure_response_rejects_text_without_sections() -> None:
    with pytest.raises(StructureParseError):
        parse_structure_response("I could not plan anything useful.")


def test_merge_structures_keeps_first_and_extends() -> None:
    first = NarrativeStructure((NarrativeSection("A", "first a", 100), NarrativeSection("B", "b", 100)))
    second = NarrativeStructure((NarrativeSection("A", "second a", 300), NarrativeSection("C", "c", 100)))

    merged = merge_structures(first, second)

    assert merged.titles() == ["A", "B", "C"]
    assert merged.sections[0].focus == "first a"
    assert merge_structures(None, second) is second
    assert merge_structures(first, None) is first


def test_planner_uses_parsed_structure(context) -> None:
    completion = RecordingCompletion(plan_text=PLAN_RESPONSE)
    planner = StructurePlanner(completion, ContentChunker())

    outcome = planner.plan_outcome(context)

    assert not outcome.degraded
    assert outcome.value.titles() == ["Background", "Methods"]
    assert len(completion.prompts) == 1
    prompt = completion.prompts[0]
    assert "solid-state batteries" in prompt
    assert "- Complexity Score: 4/10" in prompt
    assert "- Research Categories: market, technical" in prompt
    assert "SECTION: [Title]" in prompt


def test_planner_falls_back_on_completion_error(context, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="deepnarrative")

    def explode(prompt: str) -> str:
        raise RuntimeError("service down")

    planner = StructurePlanner(CallableCompletionService(explode), ContentChunker())
    outcome = planner.plan_outcome(context)

    assert outcome.degraded
    assert outcome.value == default_structure()
    assert "[narrative] stage=plan status=fallback" in caplog.text
    assert "service down" in caplog.text


def test_planner_falls_back_when_nothing_parses(context) -> None:
    planner = StructurePlanner(RecordingCompletion(plan_text="no structure here"), ContentChunker())
    structure = planner.plan(context)
    assert structure.titles() == ["Introduction", "Technical Analysis", "Implementation Guide"]
    assert [section.target_length for section in structure] == [800, 1200, 1000]
    assert [section.priority for section in structure] == [Priority.HIGH, Priority.HIGH, Priority.MEDIUM]


def test_planner_merges_responses_from_prompt_parts(context) -> None:
    calls: list[str] = []

    class PartCompletion:
        def complete(self, prompt: str, expected_shape: type = str) -> CompletionResponse:
            calls.append(prompt)
            return CompletionResponse(text=f"SECTION: Part {len(calls)}\nFOCUS: piece {len(calls)}")

    planner = StructurePlanner(PartCompletion(), ContentChunker(NarrativeConfig(context_window_limit=120)))
    structure = planner.plan(context)

    assert len(calls) > 1
    assert all(call.startswith("[PART ") for call in calls)
    assert structure.titles() == [f"Part {idx}" for idx in range(1, len(calls) + 1)]
