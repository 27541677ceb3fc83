from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Optional, Sequence
import logging
import threading

from . import prompts
from .logging_utils import format_event, get_logger
from .models import ContentChunk, NarrativeSection, NarrativeStructure, ResearchContext, StageOutcome
from .sections import SectionGenerator


@dataclass
class SectionBatch:
    texts: dict[str, str] = field(default_factory=dict)
    outcomes: dict[str, StageOutcome] = field(default_factory=dict)
    mode: str = "parallel"

    def fallback_titles(self) -> list[str]:
        return [title for title, outcome in self.outcomes.items() if outcome.degraded]


class ParallelOrchestrator:
    """Fans section generation out over a bounded pool and joins by title.

    Two degradation tiers: a failing section gets its own fallback text inside
    the parallel path, and a pool that cannot run at all yields placeholders
    for every section.
    """

    def __init__(
        self,
        generator: SectionGenerator,
        max_workers: int = 4,
        executor: Optional[Executor] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.generator = generator
        self.max_workers = max(1, int(max_workers))
        self._executor = executor
        self.log = logger or get_logger(__name__)

    def generate_all(
        self,
        structure: NarrativeStructure,
        chunks: Sequence[ContentChunk],
        context: ResearchContext,
    ) -> dict[str, str]:
        return self.generate_all_outcome(structure, chunks, context).value.texts

    def _run_section(
        self,
        section: NarrativeSection,
        chunks: Sequence[ContentChunk],
        context: ResearchContext,
        batch: SectionBatch,
        lock: threading.Lock,
    ) -> None:
        try:
            outcome = self.generator.generate_outcome(section, chunks, context)
        except Exception as exc:
            outcome = StageOutcome.fallback(prompts.build_section_fallback(section, context), str(exc))
        with lock:
            batch.texts[section.title] = outcome.value
            batch.outcomes[section.title] = outcome

    def _run_parallel(
        self,
        structure: NarrativeStructure,
        chunks: Sequence[ContentChunk],
        context: ResearchContext,
    ) -> SectionBatch:
        batch = SectionBatch(mode="parallel")
        lock = threading.Lock()
        executor = self._executor
        owns_executor = executor is None
        if executor is None:
            executor = ThreadPoolExecutor(
                max_workers=min(self.max_workers, len(structure)),
                thread_name_prefix="deepnarrative-section",
            )
        try:
            futures = {
                executor.submit(self._run_section, section, chunks, context, batch, lock): section.title
                for section in structure.sections
            }
            for future in as_completed(futures):
                future.result()
        finally:
            if owns_executor:
                executor.shutdown(wait=True)
        return batch

    def generate_sequential_placeholders(self, structure: NarrativeStructure) -> SectionBatch:
        batch = SectionBatch(mode="sequential")
        for section in structure.sections:
            text = prompts.build_section_placeholder(section)
            batch.texts[section.title] = text
            batch.outcomes[section.title] = StageOutcome.fallback(text, "parallel execution unavailable")
        return batch

    def generate_all_outcome(
        self,
        structure: NarrativeStructure,
        chunks: Sequence[ContentChunk],
        context: ResearchContext,
    ) -> StageOutcome:
        try:
            batch = self._run_parallel(structure, chunks, context)
        except Exception as exc:
            self.log.warning(format_event("narrative", stage="sections", status="fallback", detail=exc))
            batch = self.generate_sequential_placeholders(structure)
            return StageOutcome.fallback(batch, f"parallel execution failed: {exc}")
        failed = batch.fallback_titles()
        self.log.info(
            format_event(
                "narrative",
                stage="sections",
                status="ran",
                sections=len(structure),
                fallback=len(failed),
                workers=min(self.max_workers, len(structure)),
            )
        )
        return StageOutcome.ok(batch)
