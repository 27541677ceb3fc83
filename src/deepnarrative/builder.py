from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import logging

from . import prompts, workflow_stages
from .assembler import NarrativeAssembler
from .chunker import ContentChunker, TokenEstimator
from .coherence import CoherenceEnhancer
from .config import NarrativeConfig
from .llm import CompletionService
from .logging_utils import format_event, get_logger
from .models import NarrativeStructure, ResearchContext, StageOutcome
from .orchestrator import ParallelOrchestrator
from .planner import StructurePlanner
from .sections import SectionGenerator
from .workflow_trace import write_workflow_summary


@dataclass
class BuildReport:
    narrative: str
    structure: Optional[NarrativeStructure] = None
    stage_status: dict[str, dict[str, str]] = field(default_factory=dict)
    stage_events: list[dict[str, str]] = field(default_factory=list)
    outcomes: dict[str, StageOutcome] = field(default_factory=dict)
    fallback_narrative: bool = False
    workflow_path: Optional[Path] = None

    @property
    def degraded(self) -> bool:
        return self.fallback_narrative or any(outcome.degraded for outcome in self.outcomes.values())

    def workflow_summary(self) -> list[str]:
        return workflow_stages.summarize_stage_status(self.stage_status, list(workflow_stages.STAGE_ORDER))


def validate_inputs(context: Optional[ResearchContext], synthesized_knowledge: Optional[str]) -> None:
    if context is None:
        raise ValueError("Research context is required.")
    if not str(context.original_query or "").strip():
        raise ValueError("Research context must carry a non-empty original query.")
    if synthesized_knowledge is None or not str(synthesized_knowledge).strip():
        raise ValueError("Synthesized knowledge must not be empty.")


class NarrativeBuilder:
    def __init__(
        self,
        completion: CompletionService,
        config: Optional[NarrativeConfig] = None,
        *,
        estimator: Optional[TokenEstimator] = None,
        executor: Optional[Executor] = None,
        logger: Optional[logging.Logger] = None,
        planner: Optional[StructurePlanner] = None,
        generator: Optional[SectionGenerator] = None,
        orchestrator: Optional[ParallelOrchestrator] = None,
        assembler: Optional[NarrativeAssembler] = None,
        enhancer: Optional[CoherenceEnhancer] = None,
    ) -> None:
        self.config = config or NarrativeConfig()
        self.log = logger or get_logger(__name__)
        self.chunker = ContentChunker(self.config, estimator=estimator, logger=self.log)
        self.planner = planner or StructurePlanner(completion, self.chunker, logger=self.log)
        self.generator = generator or SectionGenerator(completion, self.chunker, logger=self.log)
        self.orchestrator = orchestrator or ParallelOrchestrator(
            self.generator,
            max_workers=self.config.max_workers,
            executor=executor,
            logger=self.log,
        )
        self.assembler = assembler or NarrativeAssembler(logger=self.log)
        self.enhancer = enhancer or CoherenceEnhancer(self.chunker, logger=self.log)

    def _record(self, report: BuildReport, name: str, outcome: StageOutcome, detail: str = "") -> None:
        text = outcome.reason if outcome.degraded else detail
        workflow_stages.record_stage(report.stage_status, name=name, status=outcome.status, detail=text)
        workflow_stages.append_stage_event(report.stage_events, name=name, status=outcome.status, detail=text)
        report.outcomes[name] = outcome

    def build(
        self,
        context: ResearchContext,
        synthesized_knowledge: str,
        trace_dir: Optional[Path] = None,
    ) -> BuildReport:
        validate_inputs(context, synthesized_knowledge)
        report = BuildReport(
            narrative="",
            stage_status=workflow_stages.initialize_stage_status(),
        )
        self.log.info(format_event("narrative", action="start", session=context.session_id))
        try:
            plan = self.planner.plan_outcome(context)
            structure = plan.value.with_unique_titles()
            report.structure = structure
            self._record(report, "plan", plan, detail=f"sections={len(structure)}")

            chunks = self.chunker.chunk(synthesized_knowledge, context, structure)
            self._record(report, "chunk", StageOutcome.ok(chunks), detail=f"chunks={len(chunks)}")

            sections = self.orchestrator.generate_all_outcome(structure, chunks, context)
            batch = sections.value
            failed = batch.fallback_titles()
            self._record(
                report,
                "sections",
                sections,
                detail=f"mode={batch.mode},fallback={len(failed)}",
            )

            narrative = self.assembler.assemble(structure, batch.texts, context)
            self._record(report, "assemble", StageOutcome.ok(narrative), detail=f"chars={len(narrative)}")

            enhanced = self.enhancer.enhance_outcome(narrative, context)
            self._record(report, "enhance", enhanced, detail=f"chars={len(enhanced.value)}")
            report.narrative = enhanced.value
        except Exception as exc:
            self.log.error(format_event("narrative", stage="build", status="failed", detail=exc))
            workflow_stages.skip_pending_stages(report.stage_status, detail=f"aborted: {exc}")
            workflow_stages.append_stage_event(report.stage_events, name="build", status="failed", detail=str(exc))
            report.narrative = prompts.build_fallback_narrative(synthesized_knowledge)
            report.fallback_narrative = True
        if not report.narrative.strip():
            report.narrative = prompts.build_fallback_narrative(synthesized_knowledge)
            report.fallback_narrative = True
        self.log.info(
            format_event(
                "narrative",
                action="done",
                session=context.session_id,
                chars=len(report.narrative),
                degraded=report.degraded,
            )
        )
        if trace_dir is not None:
            self._write_trace(report, context, Path(trace_dir))
        return report

    def _write_trace(self, report: BuildReport, context: ResearchContext, trace_dir: Path) -> None:
        try:
            _, report.workflow_path = write_workflow_summary(
                stage_status=report.stage_status,
                stage_order=list(workflow_stages.STAGE_ORDER),
                trace_dir=trace_dir,
                session_id=context.session_id,
                stage_events=report.stage_events,
            )
        except OSError as exc:
            self.log.warning(format_event("narrative", action="trace", status="failed", detail=exc))

    def build_narrative(self, context: ResearchContext, synthesized_knowledge: str) -> str:
        return self.build(context, synthesized_knowledge).narrative


def build_narrative(
    context: ResearchContext,
    synthesized_knowledge: str,
    completion: CompletionService,
    config: Optional[NarrativeConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> str:
    return NarrativeBuilder(completion, config, logger=logger).build_narrative(context, synthesized_knowledge)
