from __future__ import annotations

from typing import Mapping, Optional
import logging

from . import prompts
from .logging_utils import format_event, get_logger
from .models import NarrativeStructure, ResearchContext


def build_executive_summary(context: ResearchContext, section_texts: Mapping[str, str]) -> str:
    return f"# Executive Summary\n\nComprehensive analysis of: {context.original_query}"


def build_conclusion(context: ResearchContext, section_texts: Mapping[str, str]) -> str:
    return f"# Conclusion\n\nThis research provides comprehensive insights into {context.original_query}"


def build_bibliography(context: ResearchContext) -> str:
    return f"# References\n\n{len(context.citations)} sources analyzed."


class NarrativeAssembler:
    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.log = logger or get_logger(__name__)

    def assemble(
        self,
        structure: NarrativeStructure,
        section_texts: Mapping[str, str],
        context: ResearchContext,
    ) -> str:
        blocks = [build_executive_summary(context, section_texts)]
        sections = structure.sections
        missing: list[str] = []
        for idx, section in enumerate(sections):
            if section.title not in section_texts:
                missing.append(section.title)
            body = section_texts.get(section.title, "") or ""
            block = f"## {section.title}\n\n{body}"
            if idx < len(sections) - 1:
                block = f"{block}\n\n{prompts.build_transition(section, sections[idx + 1])}"
            blocks.append(block)
        blocks.append(build_conclusion(context, section_texts))
        blocks.append(build_bibliography(context))
        if missing:
            self.log.warning(format_event("narrative", stage="assemble", missing=",".join(missing)))
        return "\n\n".join(blocks)
