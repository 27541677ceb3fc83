from __future__ import annotations

from typing import Optional, Protocol
import logging

from .chunker import ContentChunker
from .logging_utils import format_event, get_logger
from .models import PromptChunk, ResearchContext, StageOutcome


class NarrativeExpander(Protocol):
    def expand(self, narrative: str, context: ResearchContext) -> str: ...


class ChunkImprover(Protocol):
    def improve(self, chunk: PromptChunk, context: ResearchContext) -> str: ...


class IdentityExpander:
    def expand(self, narrative: str, context: ResearchContext) -> str:
        return narrative


class IdentityChunkImprover:
    def improve(self, chunk: PromptChunk, context: ResearchContext) -> str:
        return chunk.content


class CoherenceEnhancer:
    def __init__(
        self,
        chunker: ContentChunker,
        expander: Optional[NarrativeExpander] = None,
        improver: Optional[ChunkImprover] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.chunker = chunker
        self.expander = expander or IdentityExpander()
        self.improver = improver or IdentityChunkImprover()
        self.log = logger or get_logger(__name__)

    @property
    def expansion_floor(self) -> float:
        config = self.chunker.config
        return config.target_narrative_length * config.expansion_threshold

    def enhance(self, narrative: str, context: ResearchContext) -> str:
        return self.enhance_outcome(narrative, context).value

    def enhance_outcome(self, narrative: str, context: ResearchContext) -> StageOutcome:
        try:
            if len(narrative) < self.expansion_floor:
                expanded = self.expander.expand(narrative, context)
                if len(expanded) < len(narrative):
                    # Expansion must never shorten the document.
                    self.log.warning(
                        format_event("narrative", stage="enhance", status="fallback", detail="expansion shortened text")
                    )
                    return StageOutcome.fallback(narrative, "expansion shortened text")
                self.log.info(
                    format_event("narrative", stage="enhance", mode="expand", chars_before=len(narrative), chars_after=len(expanded))
                )
                return StageOutcome.ok(expanded)
            pieces = self.chunker.chunk_narrative(narrative)
            improved = "".join(f"{self.improver.improve(piece, context)}\n" for piece in pieces)
        except Exception as exc:
            self.log.warning(format_event("narrative", stage="enhance", status="fallback", detail=exc))
            return StageOutcome.fallback(narrative, str(exc))
        self.log.info(format_event("narrative", stage="enhance", mode="chunks", chunks=len(pieces)))
        return StageOutcome.ok(improved)
