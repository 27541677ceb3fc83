from __future__ import annotations

import re
import threading

import pytest

from deepnarrative.llm import CompletionResponse
from deepnarrative.models import (
    Citation,
    NarrativeSection,
    NarrativeStructure,
    Priority,
    ResearchConfig,
    ResearchContext,
    ResearchDepth,
    ResearchQuestion,
)

SECTION_TITLE_RE = re.compile(r'Write a comprehensive section: "(.+)"')


def section_title(prompt: str) -> str:
    match = SECTION_TITLE_RE.search(prompt)
    return match.group(1) if match else ""


class RecordingCompletion:
    """Thread-safe stub: answers planning prompts with ``plan_text`` and sections by title."""

    def __init__(self, plan_text: str = "", fail_titles: tuple[str, ...] = ()) -> None:
        self.plan_text = plan_text
        self.fail_titles = set(fail_titles)
        self.prompts: list[str] = []
        self._lock = threading.Lock()

    def complete(self, prompt: str, expected_shape: type = str) -> CompletionResponse:
        with self._lock:
            self.prompts.append(prompt)
        title = section_title(prompt)
        if not title:
            return CompletionResponse(text=self.plan_text, model="stub")
        if title in self.fail_titles:
            raise RuntimeError(f"boom for {title}")
        return CompletionResponse(text=f"Generated body for {title}.", model="stub")


def build_context(
    questions: int = 3,
    citations: int = 5,
    insights: int = 4,
    depth: ResearchDepth = ResearchDepth.STANDARD,
    query: str = "solid-state batteries",
) -> ResearchContext:
    return ResearchContext(
        session_id="session-1",
        original_query=query,
        research_questions=[
            ResearchQuestion(f"Question {idx}?", category="technical" if idx % 2 else "market")
            for idx in range(questions)
        ],
        insights={f"insight_{idx}": f"Insight number {idx} about electrolytes" for idx in range(insights)},
        citations=[
            Citation(title=f"Source {idx}", content=f"Evidence {idx} on anode stability", url=f"https://example.org/{idx}")
            for idx in range(citations)
        ],
        config=ResearchConfig(research_depth=depth),
    )


@pytest.fixture
def context() -> ResearchContext:
    return build_context()


@pytest.fixture
def two_sections() -> NarrativeStructure:
    return NarrativeStructure(
        (
            NarrativeSection("Alpha", "alpha focus", 500, Priority.HIGH),
            NarrativeSection("Beta", "beta focus", 700, Priority.LOW, ("Alpha",)),
        )
    )
