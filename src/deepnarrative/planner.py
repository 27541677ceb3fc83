from __future__ import annotations

from typing import Optional
import logging
import re

from . import prompts
from .chunker import ContentChunker
from .errors import StructureParseError
from .llm import CompletionService
from .logging_utils import format_event, get_logger
from .models import (
    NarrativeSection,
    NarrativeStructure,
    Priority,
    ResearchContext,
    StageOutcome,
    coerce_titles,
    default_structure_sections,
)

MAX_COMPLEXITY = 10
DEFAULT_TARGET_LENGTH = 1000

_FIELD_RE = re.compile(
    r"^\s*(?:[-*]\s*|\d+[.)]\s*)?[*_#\s]*"
    r"(SECTION|FOCUS|TARGET[_ ]LENGTH|PRIORITY|DEPENDENCIES)"
    r"[*_\s]*:[*_\s]*(.*?)[*_\s]*$",
    re.IGNORECASE,
)
_INT_RE = re.compile(r"\d+")


def complexity_score(context: ResearchContext) -> int:
    score = 0
    score += min(len(context.research_questions) // 2, 3)
    score += min(len(context.citations) // 20, 3)
    score += 2 if len(context.insights) > 10 else 1
    score += context.research_depth.ordinal + 1
    return max(0, min(score, MAX_COMPLEXITY))


def default_structure() -> NarrativeStructure:
    return NarrativeStructure(default_structure_sections())


def _clean_value(value: str) -> str:
    return value.strip().strip("[]").strip().strip('"').strip("'").strip()


def _parse_dependencies(value: str) -> tuple[str, ...]:
    cleaned = _clean_value(value)
    if not cleaned or cleaned.lower() in {"none", "n/a", "-"}:
        return ()
    return coerce_titles(_clean_value(part) for part in re.split(r"[,;]", cleaned))


def _parse_target(value: str) -> int:
    match = _INT_RE.search(value.replace(",", ""))
    if not match:
        return DEFAULT_TARGET_LENGTH
    parsed = int(match.group(0))
    return parsed if parsed > 0 else DEFAULT_TARGET_LENGTH


def _build_section(fields: dict[str, str]) -> Optional[NarrativeSection]:
    title = _clean_value(fields.get("section", ""))
    if not title:
        return None
    return NarrativeSection(
        title=title,
        focus=_clean_value(fields.get("focus", "")) or title,
        target_length=_parse_target(fields.get("target_length", "")),
        priority=Priority.parse(fields.get("priority")),
        dependencies=_parse_dependencies(fields.get("dependencies", "")),
    )


def parse_structure_response(response: object) -> NarrativeStructure:
    text = str(response or "")
    sections: list[NarrativeSection] = []
    current: Optional[dict[str, str]] = None
    for line in text.splitlines():
        match = _FIELD_RE.match(line)
        if not match:
            continue
        key = match.group(1).lower().replace(" ", "_")
        value = match.group(2)
        if key == "section":
            if current:
                section = _build_section(current)
                if section:
                    sections.append(section)
            current = {"section": value}
        elif current is not None:
            current[key] = value
    if current:
        section = _build_section(current)
        if section:
            sections.append(section)
    if not sections:
        raise StructureParseError("no SECTION blocks found in planning response")
    return NarrativeStructure(tuple(sections)).with_unique_titles()


def merge_structures(
    existing: Optional[NarrativeStructure],
    incoming: Optional[NarrativeStructure],
) -> Optional[NarrativeStructure]:
    """Ordered union by title: earlier sections win, later ones only extend."""
    if existing is None:
        return incoming
    if incoming is None:
        return existing
    known = set(existing.titles())
    extra = [section for section in incoming.sections if section.title not in known]
    if not extra:
        return existing
    return NarrativeStructure(existing.sections + tuple(extra))


class StructurePlanner:
    def __init__(
        self,
        completion: CompletionService,
        chunker: ContentChunker,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.completion = completion
        self.chunker = chunker
        self.log = logger or get_logger(__name__)

    def plan(self, context: ResearchContext) -> NarrativeStructure:
        return self.plan_outcome(context).value

    def plan_outcome(self, context: ResearchContext) -> StageOutcome:
        try:
            complexity = complexity_score(context)
            prompt = prompts.build_structure_prompt(context, complexity)
            structure: Optional[NarrativeStructure] = None
            pieces = self.chunker.chunk_prompt(prompt)
            for piece in pieces:
                response = self.completion.complete(piece.content, str)
                try:
                    parsed = parse_structure_response(response.structured_output())
                except StructureParseError as exc:
                    self.log.debug(format_event("planner", part=f"{piece.index + 1}/{piece.total}", detail=exc))
                    continue
                structure = merge_structures(structure, parsed)
        except Exception as exc:
            self.log.warning(format_event("narrative", stage="plan", status="fallback", detail=exc))
            return StageOutcome.fallback(default_structure(), f"planning failed: {exc}")
        if structure is None:
            self.log.warning(format_event("narrative", stage="plan", status="fallback", detail="no sections parsed"))
            return StageOutcome.fallback(default_structure(), "no sections parsed")
        self.log.info(
            format_event(
                "narrative",
                stage="plan",
                status="ran",
                complexity=complexity,
                sections=len(structure),
                parts=len(pieces),
            )
        )
        return StageOutcome.ok(structure)
