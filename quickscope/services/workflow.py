"""Workflow stage resolver — pure functions, no database access.

A connected account moves through an ordered pipeline:

    needs_prospect_info -> needs_transcript -> needs_analysis -> ready_for_report

The stage is never stored authoritatively. It is recomputed from facts
(does a prospect exist, how many transcripts, is there an AI analysis)
every time, so it heals itself when facts change and regresses when a
dependent record is deleted. Deleting the only transcript drops the
account back to needs_transcript on the next recompute; that is expected.

Persisting the result is prospect_service.recompute_and_persist_stage()'s
job — the only writer of Prospect.workflow_stage.
"""

from dataclasses import asdict, dataclass
from enum import Enum


class WorkflowStage(str, Enum):
    NEEDS_PROSPECT_INFO = "needs_prospect_info"
    NEEDS_TRANSCRIPT = "needs_transcript"
    NEEDS_ANALYSIS = "needs_analysis"
    READY_FOR_REPORT = "ready_for_report"

    @property
    def position(self):
        """1-based position in the pipeline."""
        return list(WorkflowStage).index(self) + 1


# Older rows and clients use a different vocabulary for the same pipeline.
LEGACY_STAGE_ALIASES = {
    "discovery": WorkflowStage.NEEDS_PROSPECT_INFO,
    "not_connected": WorkflowStage.NEEDS_PROSPECT_INFO,
    "connected": WorkflowStage.NEEDS_TRANSCRIPT,
    "analyzed": WorkflowStage.NEEDS_ANALYSIS,
    "audit_ready": WorkflowStage.READY_FOR_REPORT,
}

NEXT_ACTIONS = {
    WorkflowStage.NEEDS_PROSPECT_INFO: "Complete prospect contact information",
    WorkflowStage.NEEDS_TRANSCRIPT: "Upload discovery call transcript",
    WorkflowStage.NEEDS_ANALYSIS: "Run AI analysis on the discovery call",
    WorkflowStage.READY_FOR_REPORT: "Generate audit deck",
}


@dataclass(frozen=True)
class WorkflowFacts:
    """Existence/count facts a stage is derived from."""

    has_prospect_record: bool = False
    transcript_count: int = 0
    has_financial_snapshot: bool = False
    has_ai_analysis: bool = False

    def to_dict(self):
        return asdict(self)


def resolve_stage(facts):
    """Derive the pipeline stage from ``facts``.

    Forward-only scan: each later-stage fact overrides the earlier default.
    The financial snapshot is reported alongside the stage but does not
    gate it.
    """
    stage = WorkflowStage.NEEDS_PROSPECT_INFO
    if facts.has_prospect_record:
        stage = WorkflowStage.NEEDS_TRANSCRIPT
    if facts.transcript_count > 0:
        stage = WorkflowStage.NEEDS_ANALYSIS
    if facts.has_ai_analysis:
        stage = WorkflowStage.READY_FOR_REPORT
    return stage


def next_action(stage):
    """Human-readable recommended next step for ``stage``. Total over the enum."""
    return NEXT_ACTIONS[coerce_stage(stage)]


def coerce_stage(value):
    """Accept a WorkflowStage, a current stage name, or a legacy alias.

    Unknown values fall back to the first stage.
    """
    if isinstance(value, WorkflowStage):
        return value
    if value in LEGACY_STAGE_ALIASES:
        return LEGACY_STAGE_ALIASES[value]
    try:
        return WorkflowStage(value)
    except ValueError:
        return WorkflowStage.NEEDS_PROSPECT_INFO


def describe(facts):
    """Stage summary payload for API responses."""
    stage = resolve_stage(facts)
    return {
        "workflow_stage": stage.value,
        "stage_number": stage.position,
        "total_stages": len(WorkflowStage),
        "next_action": next_action(stage),
        "facts": facts.to_dict(),
    }
