"""Prospect service — create/update leads, link connected companies, stages.

recompute_and_persist_stage() is the only code path that writes
Prospect.workflow_stage. Every trigger (contact form, OAuth callback,
snapshot sync, transcript upload, analysis, disconnect) calls it instead
of setting the column inline.

A placeholder prospect created by the OAuth callback has no contact
email yet, but it is still a prospect record: a freshly connected
company moves straight to needs_transcript.

Functions flush but do NOT commit — the caller commits.
"""

import logging
import re

import bleach

from quickscope.errors import NotFound, ValidationFailed
from quickscope.extensions import db
from quickscope.models.ai_analysis import AIAnalysis
from quickscope.models.call_transcript import CallTranscript
from quickscope.models.financial_snapshot import FinancialSnapshot
from quickscope.models.prospect import Prospect
from quickscope.models.qbo_token import QboToken, placeholder_company_name
from quickscope.services.audit_service import log_audit
from quickscope.services.workflow import WorkflowFacts, coerce_stage, resolve_stage

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

OPTIONAL_TEXT_FIELDS = ["phone", "industry"]


def _sanitize(text):
    """Strip all HTML tags from user input."""
    if text is None:
        return text
    return bleach.clean(str(text), tags=[], strip=True).strip()


def _optional_number(data, name, cast, errors):
    raw = data.get(name)
    if raw in (None, ""):
        return None
    try:
        value = cast(raw)
    except (TypeError, ValueError):
        errors[name] = f"{name.replace('_', ' ').capitalize()} must be a number."
        return None
    if value < 0:
        errors[name] = f"{name.replace('_', ' ').capitalize()} cannot be negative."
        return None
    return value


# ──────────────────────────────────────────────
# Lookups
# ──────────────────────────────────────────────

def get_prospect(prospect_id):
    prospect = db.session.get(Prospect, prospect_id)
    if prospect is None:
        raise NotFound("Prospect not found.", details={"prospect_id": prospect_id})
    return prospect


def list_prospects(stage=None):
    query = Prospect.query
    if stage:
        query = query.filter_by(workflow_stage=coerce_stage(stage).value)
    return query.order_by(Prospect.created_at.desc()).all()


def find_by_company(company_id):
    return Prospect.query.filter_by(qb_company_id=company_id).first()


# ──────────────────────────────────────────────
# Workflow stage (single writer)
# ──────────────────────────────────────────────

def gather_facts(prospect):
    """Collect the existence/count facts the stage resolver needs."""
    transcript_count = CallTranscript.query.filter_by(prospect_id=prospect.id).count()

    analysis_filter = AIAnalysis.prospect_id == prospect.id
    if prospect.qb_company_id:
        analysis_filter = db.or_(
            analysis_filter, AIAnalysis.company_id == prospect.qb_company_id
        )
    has_analysis = db.session.query(AIAnalysis.id).filter(analysis_filter).first() is not None

    has_snapshot = False
    if prospect.qb_company_id:
        has_snapshot = (
            db.session.query(FinancialSnapshot.id)
            .filter_by(company_id=prospect.qb_company_id)
            .first()
            is not None
        )

    return WorkflowFacts(
        has_prospect_record=True,
        transcript_count=transcript_count,
        has_financial_snapshot=has_snapshot,
        has_ai_analysis=has_analysis,
    )


def recompute_and_persist_stage(prospect):
    """Recompute ``prospect``'s stage from current facts and store it.

    Returns (stage, facts). Logs and audits only when the value changes.
    """
    facts = gather_facts(prospect)
    stage = resolve_stage(facts)
    previous = prospect.workflow_stage

    if previous != stage.value:
        prospect.workflow_stage = stage.value
        log_audit(
            "workflow.stage_changed",
            company_id=prospect.qb_company_id,
            prospect_id=prospect.id,
            metadata={"from": previous, "to": stage.value},
        )
        logger.info(f"Prospect {prospect.id} stage {previous} -> {stage.value}")
    db.session.flush()
    return stage, facts


def recompute_stage_for_company(company_id):
    """Recompute every prospect linked to ``company_id``."""
    prospects = Prospect.query.filter_by(qb_company_id=company_id).all()
    for prospect in prospects:
        recompute_and_persist_stage(prospect)
    return prospects


# ──────────────────────────────────────────────
# Create / update
# ──────────────────────────────────────────────

def validate_prospect_data(data):
    """Return cleaned fields or raise ValidationFailed with per-field messages."""
    errors = {}
    company_name = _sanitize(data.get("company_name"))
    contact_name = _sanitize(data.get("contact_name"))
    email = (_sanitize(data.get("email")) or "").lower()

    if not company_name:
        errors["company_name"] = "Company name is required."
    if not contact_name:
        errors["contact_name"] = "Contact name is required."
    if not email:
        errors["email"] = "Email is required."
    elif not EMAIL_RE.match(email):
        errors["email"] = "Please enter a valid email address."

    cleaned = {
        "company_name": company_name,
        "contact_name": contact_name,
        "email": email,
        "annual_revenue": _optional_number(data, "annual_revenue", float, errors),
        "employee_count": _optional_number(data, "employee_count", int, errors),
        "notes": _sanitize(data.get("notes")) or None,
        "qb_company_id": _sanitize(data.get("company_id")) or None,
    }
    for name in OPTIONAL_TEXT_FIELDS:
        cleaned[name] = _sanitize(data.get(name)) or None

    if errors:
        raise ValidationFailed("Please correct the highlighted fields.", details=errors)
    return cleaned


def create_or_update_prospect(data):
    """Create a prospect, or update the existing one with the same email.

    If no email match exists but the submission names a connected company
    that already has a placeholder prospect, that placeholder is filled in.
    Returns (prospect, created).
    """
    cleaned = validate_prospect_data(data)

    prospect = Prospect.query.filter(
        db.func.lower(Prospect.email) == cleaned["email"]
    ).first()
    if prospect is None and cleaned["qb_company_id"]:
        placeholder = find_by_company(cleaned["qb_company_id"])
        if placeholder is not None and not placeholder.email:
            prospect = placeholder

    created = prospect is None
    if created:
        prospect = Prospect(company_name=cleaned["company_name"])
        db.session.add(prospect)

    for name, value in cleaned.items():
        # Never blank out a stored optional field on a partial resubmission
        if value is None and not created:
            continue
        setattr(prospect, name, value)
    db.session.flush()

    if prospect.qb_company_id:
        token = QboToken.query.filter_by(company_id=prospect.qb_company_id).first()
        if token is not None and token.prospect_id != prospect.id:
            token.prospect_id = prospect.id

    log_audit(
        "prospect.created" if created else "prospect.updated",
        company_id=prospect.qb_company_id,
        prospect_id=prospect.id,
        metadata={"email": prospect.email},
    )
    recompute_and_persist_stage(prospect)
    logger.info(
        f"{'Created' if created else 'Updated'} prospect {prospect.id} ({prospect.company_name})"
    )
    return prospect, created


def link_connected_company(company_id, company_name=None):
    """Ensure a prospect exists for a freshly connected company.

    Upserts a placeholder keyed by qb_company_id and points the token's
    prospect_id at it. Returns the prospect.
    """
    token = QboToken.query.filter_by(company_id=company_id).first()
    prospect = None
    if token is not None and token.prospect_id:
        prospect = db.session.get(Prospect, token.prospect_id)
    if prospect is None:
        prospect = find_by_company(company_id)

    name = company_name or placeholder_company_name(company_id)
    if prospect is None:
        prospect = Prospect(company_name=name, qb_company_id=company_id)
        db.session.add(prospect)
        db.session.flush()
        log_audit(
            "prospect.created",
            company_id=company_id,
            prospect_id=prospect.id,
            metadata={"source": "oauth_callback"},
        )
    else:
        prospect.qb_company_id = company_id
        if company_name and (
            not prospect.company_name
            or prospect.company_name == placeholder_company_name(company_id)
        ):
            prospect.company_name = company_name

    if token is not None:
        token.prospect_id = prospect.id
    recompute_and_persist_stage(prospect)
    return prospect
