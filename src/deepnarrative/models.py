from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Optional


class ResearchDepth(Enum):
    BASIC = "basic"
    STANDARD = "standard"
    COMPREHENSIVE = "comprehensive"
    EXPERT = "expert"

    @property
    def ordinal(self) -> int:
        return list(ResearchDepth).index(self)

    @classmethod
    def parse(cls, value: object, default: Optional["ResearchDepth"] = None) -> "ResearchDepth":
        fallback = default or cls.STANDARD
        if isinstance(value, cls):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            members = list(cls)
            return members[value] if 0 <= value < len(members) else fallback
        token = str(value or "").strip().lower()
        for member in cls:
            if token in {member.value, member.name.lower()}:
                return member
        return fallback


class Priority(Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"

    @classmethod
    def parse(cls, value: object, default: Optional["Priority"] = None) -> "Priority":
        fallback = default or cls.MEDIUM
        if isinstance(value, cls):
            return value
        token = str(value or "").strip().strip("[]").lower()
        for member in cls:
            if token.startswith(member.value.lower()):
                return member
        return fallback


@dataclass(frozen=True)
class ResearchConfig:
    research_depth: ResearchDepth = ResearchDepth.STANDARD


@dataclass(frozen=True)
class ResearchQuestion:
    question: str
    category: str = "general"


@dataclass(frozen=True)
class Citation:
    title: str
    content: str
    url: str = ""
    source: str = ""
    metadata: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ResearchContext:
    """Read-only research state handed to one narrative build."""

    session_id: str
    original_query: str
    research_questions: tuple[ResearchQuestion, ...] = ()
    insights: Mapping[str, str] = field(default_factory=dict)
    citations: tuple[Citation, ...] = ()
    config: ResearchConfig = field(default_factory=ResearchConfig)

    def __post_init__(self) -> None:
        object.__setattr__(self, "research_questions", tuple(self.research_questions))
        object.__setattr__(self, "citations", tuple(self.citations))
        object.__setattr__(self, "insights", dict(self.insights))

    @property
    def research_depth(self) -> ResearchDepth:
        return self.config.research_depth

    def research_categories(self) -> list[str]:
        seen: list[str] = []
        for question in self.research_questions:
            category = (question.category or "").strip()
            if category and category not in seen:
                seen.append(category)
        return seen

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ResearchContext":
        if not isinstance(payload, Mapping):
            raise ValueError("Research context must be a JSON object.")
        questions: list[ResearchQuestion] = []
        for entry in payload.get("research_questions") or payload.get("questions") or []:
            if isinstance(entry, str):
                questions.append(ResearchQuestion(question=entry))
            elif isinstance(entry, Mapping):
                questions.append(
                    ResearchQuestion(
                        question=str(entry.get("question") or entry.get("text") or ""),
                        category=str(entry.get("category") or "general"),
                    )
                )
        citations: list[Citation] = []
        for entry in payload.get("citations") or []:
            if not isinstance(entry, Mapping):
                continue
            citations.append(
                Citation(
                    title=str(entry.get("title") or ""),
                    content=str(entry.get("content") or entry.get("snippet") or ""),
                    url=str(entry.get("url") or ""),
                    source=str(entry.get("source") or ""),
                    metadata=dict(entry.get("metadata") or {}),
                )
            )
        raw_insights = payload.get("insights") or {}
        if isinstance(raw_insights, Mapping):
            insights = {str(key): str(value) for key, value in raw_insights.items()}
        elif isinstance(raw_insights, str):
            insights = {"insight_1": raw_insights}
        elif isinstance(raw_insights, (list, tuple)):
            insights = {f"insight_{idx}": str(value) for idx, value in enumerate(raw_insights, start=1)}
        else:
            insights = {}
        config_payload = payload.get("config") if isinstance(payload.get("config"), Mapping) else {}
        depth = ResearchDepth.parse(config_payload.get("research_depth", payload.get("research_depth")))
        return cls(
            session_id=str(payload.get("session_id") or "session"),
            original_query=str(payload.get("original_query") or payload.get("query") or ""),
            research_questions=tuple(questions),
            insights=insights,
            citations=tuple(citations),
            config=ResearchConfig(research_depth=depth),
        )


@dataclass(frozen=True)
class NarrativeSection:
    title: str
    focus: str
    target_length: int
    priority: Priority = Priority.MEDIUM
    dependencies: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not str(self.title or "").strip():
            raise ValueError("Narrative section title must not be empty.")
        if int(self.target_length) <= 0:
            raise ValueError(f"Target length must be positive: {self.target_length}")
        object.__setattr__(self, "dependencies", tuple(self.dependencies))


@dataclass(frozen=True)
class NarrativeStructure:
    sections: tuple[NarrativeSection, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "sections", tuple(self.sections))
        if not self.sections:
            raise ValueError("Narrative structure requires at least one section.")

    def __len__(self) -> int:
        return len(self.sections)

    def __iter__(self):
        return iter(self.sections)

    def titles(self) -> list[str]:
        return [section.title for section in self.sections]

    def with_unique_titles(self) -> "NarrativeStructure":
        counts: dict[str, int] = {}
        taken = set(self.titles())
        renamed: list[NarrativeSection] = []
        changed = False
        for section in self.sections:
            seen = counts.get(section.title, 0) + 1
            counts[section.title] = seen
            if seen == 1:
                renamed.append(section)
                continue
            suffix = seen
            candidate = f"{section.title} ({suffix})"
            while candidate in taken:
                suffix += 1
                candidate = f"{section.title} ({suffix})"
            taken.add(candidate)
            renamed.append(
                NarrativeSection(
                    title=candidate,
                    focus=section.focus,
                    target_length=section.target_length,
                    priority=section.priority,
                    dependencies=section.dependencies,
                )
            )
            changed = True
        return NarrativeStructure(tuple(renamed)) if changed else self


@dataclass(frozen=True)
class ContentChunk:
    content: str
    index: int
    start: int = 0
    end: int = 0


@dataclass(frozen=True)
class PromptChunk:
    content: str
    index: int
    total: int = 1


@dataclass(frozen=True)
class StageOutcome:
    value: Any
    degraded: bool = False
    reason: str = ""

    @classmethod
    def ok(cls, value: Any) -> "StageOutcome":
        return cls(value=value)

    @classmethod
    def fallback(cls, value: Any, reason: str) -> "StageOutcome":
        return cls(value=value, degraded=True, reason=reason or "unknown")

    @property
    def status(self) -> str:
        return "fallback" if self.degraded else "ran"


def default_structure_sections() -> tuple[NarrativeSection, ...]:
    return (
        NarrativeSection("Introduction", "Overview of the research topic", 800, Priority.HIGH),
        NarrativeSection("Technical Analysis", "Technical deep dive", 1200, Priority.HIGH),
        NarrativeSection("Implementation Guide", "Practical implementation", 1000, Priority.MEDIUM),
    )


def coerce_titles(values: Optional[Iterable[str]]) -> tuple[str, ...]:
    if not values:
        return ()
    return tuple(str(value).strip() for value in values if str(value).strip())
