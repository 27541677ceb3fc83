from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .models import ResearchContext

MIN_NARRATIVE_CHARS = 3000
MIN_CITATIONS = 15
MIN_COHERENT_CHARS = 2000
SPECIFICITY_INDICATORS = ("example", "implementation", "case study", "specific", "detailed")


@dataclass(frozen=True)
class QualityCheck:
    name: str
    passed: bool
    description: str


@dataclass
class QualityReport:
    checks: dict[str, QualityCheck] = field(default_factory=dict)

    def add_check(self, name: str, passed: bool, description: str) -> None:
        self.checks[name] = QualityCheck(name=name, passed=bool(passed), description=description)

    def all_passed(self) -> bool:
        return all(check.passed for check in self.checks.values())

    def failed(self) -> list[str]:
        return [name for name, check in self.checks.items() if not check.passed]

    def summary_lines(self) -> list[str]:
        lines = []
        for check in self.checks.values():
            mark = "ok" if check.passed else "fail"
            lines.append(f"- {check.name}: {mark} ({check.description})")
        return lines


def has_specific_examples(text: str) -> bool:
    lowered = (text or "").lower()
    return any(token in lowered for token in SPECIFICITY_INDICATORS)


def has_logical_flow(text: str) -> bool:
    text = text or ""
    return "##" in text and "###" in text and len(text) > MIN_COHERENT_CHARS


class NarrativeQualityValidator:
    """Heuristic post-build checks on a finished narrative."""

    def __init__(
        self,
        min_chars: int = MIN_NARRATIVE_CHARS,
        min_citations: int = MIN_CITATIONS,
    ) -> None:
        self.min_chars = min_chars
        self.min_citations = min_citations

    def validate(self, narrative: str, context: Optional[ResearchContext] = None) -> QualityReport:
        narrative = narrative or ""
        citation_count = len(context.citations) if context is not None else 0
        report = QualityReport()
        report.add_check(
            "narrative_length",
            len(narrative) >= self.min_chars,
            f"Report length: {len(narrative)} characters",
        )
        report.add_check(
            "citation_coverage",
            citation_count >= self.min_citations,
            f"Citations: {citation_count} sources",
        )
        report.add_check(
            "specificity",
            has_specific_examples(narrative),
            "Contains specific examples and implementation details",
        )
        report.add_check(
            "coherence",
            has_logical_flow(narrative),
            "Logical flow and narrative coherence",
        )
        return report
