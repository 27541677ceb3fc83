from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from deepnarrative.models import Citation, ContentChunk, NarrativeSection, ResearchContext

MAX_SUMMARY_INSIGHTS = 3
SUMMARY_INSIGHT_CHARS = 100
MAX_SECTION_INSIGHTS = 3
SECTION_INSIGHT_CHARS = 250
MAX_SECTION_CITATIONS = 4
SECTION_CITATION_CHARS = 150


def truncate(text: Optional[str], max_length: int) -> str:
    if text is None:
        return ""
    if len(text) <= max_length:
        return text
    if max_length <= 3:
        return text[:max_length]
    return text[: max_length - 3] + "..."


def condensed_insights_summary(context: "ResearchContext") -> str:
    lines: list[str] = []
    for value in list(context.insights.values())[:MAX_SUMMARY_INSIGHTS]:
        lines.append(f"- {truncate(value, SUMMARY_INSIGHT_CHARS)}")
    return "\n".join(lines)


def format_insights_for_section(insights: Sequence[str]) -> str:
    return "\n".join(f"- {truncate(item, SECTION_INSIGHT_CHARS)}" for item in list(insights)[:MAX_SECTION_INSIGHTS])


def format_citations_for_section(citations: Sequence["Citation"]) -> str:
    lines: list[str] = []
    for idx, citation in enumerate(list(citations)[:MAX_SECTION_CITATIONS], start=1):
        lines.append(f"[{idx}] {citation.title}: {truncate(citation.content, SECTION_CITATION_CHARS)}")
    return "\n".join(lines)


def build_structure_prompt(context: "ResearchContext", complexity: int) -> str:
    categories = ", ".join(context.research_categories()) or "general"
    insights = condensed_insights_summary(context) or "- (no insights recorded)"
    return "\n".join(
        [
            f'Plan a comprehensive research narrative for: "{context.original_query}"',
            "",
            "RESEARCH ANALYSIS:",
            f"- Complexity Score: {complexity}/10",
            f"- Questions Explored: {len(context.research_questions)}",
            f"- Sources Analyzed: {len(context.citations)}",
            f"- Insights Collected: {len(context.insights)}",
            f"- Research Categories: {categories}",
            f"- Processing Depth: {context.research_depth.name}",
            "",
            "EXISTING INSIGHTS OVERVIEW:",
            insights,
            "",
            "PLANNING INSTRUCTIONS:",
            "Create a detailed narrative structure (8000+ words) with:",
            "1. Adaptive section hierarchy based on research complexity",
            "2. Each section should be 1000-1500 words",
            "3. Focus on implementation details, case studies, and quantitative insights",
            "4. Ensure logical flow and seamless transitions",
            "5. Include technical specifications and real-world applications",
            "6. Prioritize actionable, evidence-based recommendations",
            "",
            "STRUCTURE FORMAT:",
            "Repeat this block once per section, in reading order:",
            "SECTION: [Title]",
            "FOCUS: [Specific focus area]",
            "TARGET_LENGTH: [Word count]",
            "PRIORITY: [High/Medium/Low]",
            "DEPENDENCIES: [Related section titles, comma separated, or None]",
            "",
            "Plan the adaptive structure:",
        ]
    )


def build_section_prompt(
    section: "NarrativeSection",
    chunk: "ContentChunk",
    context: "ResearchContext",
    insights: Sequence[str] = (),
    citations: Sequence["Citation"] = (),
) -> str:
    insight_block = format_insights_for_section(insights) or "- (none)"
    citation_block = format_citations_for_section(citations) or "(none)"
    target = section.target_length
    return "\n".join(
        [
            f'Write a comprehensive section: "{section.title}"',
            "",
            "SECTION SPECIFICATIONS:",
            f"- Focus: {section.focus}",
            f"- Target Length: {target} words",
            f"- Priority: {section.priority.value}",
            f"- Main Topic: {context.original_query}",
            "",
            "RELEVANT CONTENT CHUNK:",
            chunk.content,
            "",
            "SUPPORTING INSIGHTS:",
            insight_block,
            "",
            "AUTHORITATIVE SOURCES:",
            citation_block,
            "",
            "WRITING REQUIREMENTS:",
            f"1. Write about {target} words of detailed, technical content",
            "2. Include specific examples, implementations, and quantitative data",
            "3. Use metrics, benchmarks, and performance indicators where available",
            "4. Maintain an authoritative, professional tone throughout",
            "5. Ensure smooth logical flow and clear organization",
            "6. Include inline source references [1], [2], etc. matching the numbered sources",
            "7. Focus on actionable, practical information with evidence",
            "8. Avoid generic filler statements; be specific and data-driven",
            "9. Connect concepts to real-world applications and case studies",
            "10. Provide implementation guidance and best practices",
            "",
            "Generate the complete section content:",
        ]
    )


def build_transition(current: "NarrativeSection", following: "NarrativeSection") -> str:
    return f"Having explored {current.focus}, we now examine {following.focus}..."


def build_section_fallback(section: "NarrativeSection", context: "ResearchContext") -> str:
    return f"This section covers {section.focus} for the topic: {context.original_query}"


def build_section_placeholder(section: "NarrativeSection") -> str:
    return f"Generated content for {section.title}"


def build_fallback_narrative(synthesized_knowledge: str) -> str:
    return f"# Fallback Narrative\n\n{synthesized_knowledge}"
