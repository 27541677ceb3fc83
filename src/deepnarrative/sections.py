from __future__ import annotations

from typing import Optional, Protocol, Sequence
import logging

from . import prompts
from .chunker import ContentChunker
from .llm import CompletionService
from .logging_utils import format_event, get_logger
from .models import ContentChunk, NarrativeSection, ResearchContext, StageOutcome
from .relevance import ChunkSelector, EvidenceSelector, FirstChunksSelector, KeywordEvidenceSelector


class SectionEnhancer(Protocol):
    def enhance(self, text: str, section: NarrativeSection, context: ResearchContext) -> str: ...


class IdentitySectionEnhancer:
    def enhance(self, text: str, section: NarrativeSection, context: ResearchContext) -> str:
        return text.rstrip()


class SectionGenerator:
    def __init__(
        self,
        completion: CompletionService,
        chunker: ContentChunker,
        selector: Optional[ChunkSelector] = None,
        evidence: Optional[EvidenceSelector] = None,
        enhancer: Optional[SectionEnhancer] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.completion = completion
        self.chunker = chunker
        self.selector = selector or FirstChunksSelector(chunker.config.max_relevant_chunks)
        self.evidence = evidence or KeywordEvidenceSelector()
        self.enhancer = enhancer or IdentitySectionEnhancer()
        self.log = logger or get_logger(__name__)

    def build_prompt(self, section: NarrativeSection, chunk: ContentChunk, context: ResearchContext) -> str:
        prompt = prompts.build_section_prompt(
            section,
            chunk,
            context,
            insights=self.evidence.insights(section, context),
            citations=self.evidence.citations(section, context),
        )
        limit = self.chunker.context_window_limit
        if self.chunker.estimate_tokens(prompt) > limit:
            prompt = self.chunker.compress_prompt(prompt, limit)
        return prompt

    def generate(self, section: NarrativeSection, chunks: Sequence[ContentChunk], context: ResearchContext) -> str:
        return self.generate_outcome(section, chunks, context).value

    def generate_outcome(
        self,
        section: NarrativeSection,
        chunks: Sequence[ContentChunk],
        context: ResearchContext,
    ) -> StageOutcome:
        try:
            relevant = self.selector.select(section, chunks)
            if not relevant:
                raise ValueError("no relevant content chunks")
            parts: list[str] = []
            for chunk in relevant:
                prompt = self.build_prompt(section, chunk, context)
                response = self.completion.complete(prompt, str)
                parts.append(str(response.structured_output() or ""))
            raw_section = "\n\n".join(parts)
            text = self.enhancer.enhance(raw_section, section, context)
        except Exception as exc:
            self.log.warning(
                format_event("narrative", stage="section", title=section.title, status="fallback", detail=exc)
            )
            return StageOutcome.fallback(prompts.build_section_fallback(section, context), str(exc))
        self.log.debug(format_event("narrative", stage="section", title=section.title, chunks=len(relevant)))
        return StageOutcome.ok(text)
