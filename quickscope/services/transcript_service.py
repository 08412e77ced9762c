"""Transcript service — discovery call uploads and AI analysis.

Transcript text is sanitized with bleach.clean() before storage.

Functions flush but do NOT commit — the caller commits.
"""

import logging

import bleach

from quickscope.errors import NotFound, ValidationFailed
from quickscope.extensions import db
from quickscope.models.ai_analysis import AIAnalysis
from quickscope.models.call_transcript import CallTranscript
from quickscope.services import insights as insight_rules
from quickscope.services.audit_service import log_audit
from quickscope.services.financial_service import health_score_for_company
from quickscope.services.llm_client import get_analyzer
from quickscope.services.prospect_service import recompute_and_persist_stage

logger = logging.getLogger(__name__)

MAX_TRANSCRIPT_CHARS = 200_000


def add_transcript(prospect, text, file_name=None):
    """Attach a call transcript to ``prospect``.

    Raises:
        ValidationFailed: If the text is empty or too long.
    """
    text = bleach.clean(text or "", tags=[], strip=True).strip()
    if not text:
        raise ValidationFailed(details={"transcript_text": "Transcript text is required."})
    if len(text) > MAX_TRANSCRIPT_CHARS:
        raise ValidationFailed(details={
            "transcript_text": f"Transcript must be under {MAX_TRANSCRIPT_CHARS:,} characters.",
        })

    transcript = CallTranscript(
        prospect_id=prospect.id,
        company_name=prospect.company_name,
        file_name=bleach.clean(file_name, tags=[], strip=True) if file_name else None,
        transcript_text=text,
    )
    db.session.add(transcript)
    db.session.flush()

    log_audit(
        "transcript.added",
        company_id=prospect.qb_company_id,
        prospect_id=prospect.id,
        metadata={"transcript_id": transcript.id, "length": len(text)},
    )
    recompute_and_persist_stage(prospect)
    return transcript


def list_transcripts(prospect):
    return (
        CallTranscript.query.filter_by(prospect_id=prospect.id)
        .order_by(CallTranscript.created_at.desc())
        .all()
    )


def latest_analysis(prospect):
    query = AIAnalysis.query.filter(AIAnalysis.prospect_id == prospect.id)
    return query.order_by(AIAnalysis.created_at.desc()).first()


def _pick_transcript(prospect, transcript_id):
    if transcript_id:
        transcript = CallTranscript.query.filter_by(
            id=transcript_id, prospect_id=prospect.id
        ).first()
        if transcript is None:
            raise NotFound("Transcript not found.", details={"transcript_id": transcript_id})
        return transcript

    transcripts = list_transcripts(prospect)
    if not transcripts:
        raise ValidationFailed(
            "Upload a discovery call transcript before running analysis.",
            details={"transcript": "No transcript on file for this prospect."},
        )
    return transcripts[0]


def analyze_prospect(prospect, transcript_id=None, analyzer=None):
    """Run the transcript analyzer and store an AIAnalysis.

    Uses the named transcript, or the most recent one. The financial
    health score is filled in when the linked company has a snapshot.
    """
    transcript = _pick_transcript(prospect, transcript_id)
    analyzer = analyzer or get_analyzer()

    raw = analyzer.analyze(transcript.transcript_text, prospect.company_name)
    insights = insight_rules.normalize_insights(raw)
    score = insight_rules.closeability(insights)
    urgency = insight_rules.determine_urgency_level(insights)
    insights["scores"] = {
        "closeability": score,
        "urgency": urgency,
        "readiness": insight_rules.calculate_readiness_level(insights),
    }
    insights["recommendations"] = insight_rules.sales_recommendations(insights, score, urgency)

    health = None
    if prospect.qb_company_id:
        _, health = health_score_for_company(prospect.qb_company_id, industry=prospect.industry)

    analysis = AIAnalysis(
        prospect_id=prospect.id,
        company_id=prospect.qb_company_id,
        transcript_id=transcript.id,
        closeability_score=score,
        financial_health_score=health.overall_score if health else None,
        insights=insights,
        model=getattr(analyzer, "model", None),
    )
    db.session.add(analysis)
    db.session.flush()

    log_audit(
        "analysis.created",
        company_id=prospect.qb_company_id,
        prospect_id=prospect.id,
        metadata={"analysis_id": analysis.id, "closeability": score},
    )
    recompute_and_persist_stage(prospect)
    logger.info(f"Stored AI analysis {analysis.id} for prospect {prospect.id} (closeability {score})")
    return analysis
