"""API blueprint — /api/*

Public:
    POST /api/prospects                          create or update (contact form)

Admin only:
    GET  /api/prospects                          list (?stage=)
    GET  /api/prospects/<id>                     detail + workflow + latest analysis
    GET  /api/prospects/<id>/workflow            stage, next action, facts
    POST /api/prospects/<id>/workflow/recompute  recompute and persist stage
    POST /api/prospects/<id>/transcripts         add call transcript
    POST /api/prospects/<id>/analysis            run AI analysis
    POST /api/prospects/<id>/reports             generate audit deck
    GET  /api/companies/<cid>/snapshot           latest snapshot (?refresh=1 forces sync)
    POST /api/companies/<cid>/snapshots          manual snapshot
    GET  /api/companies/<cid>/health-score       score latest snapshot (?industry=)
"""

from flask import Blueprint, jsonify, request

from quickscope.errors import NotFound, ValidationFailed
from quickscope.extensions import db, limiter
from quickscope.decorators import admin_required
from quickscope.services import (
    financial_service,
    prospect_service,
    report_service,
    transcript_service,
)
from quickscope.services.workflow import describe

api_bp = Blueprint("api", __name__, url_prefix="/api")


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationFailed(details={"body": "Expected a JSON object."})
    return data


def _truthy(value):
    return (value or "").lower() in ("1", "true", "yes")


# ──────────────────────────────────────────────
# Prospects
# ──────────────────────────────────────────────

@api_bp.route("/prospects", methods=["POST"])
@limiter.limit("10 per minute")
def create_prospect():
    prospect, created = prospect_service.create_or_update_prospect(_json_body())
    db.session.commit()
    return jsonify(prospect=prospect.to_dict(), created=created), 201 if created else 200


@api_bp.route("/prospects")
@admin_required
def list_prospects():
    prospects = prospect_service.list_prospects(stage=request.args.get("stage"))
    return jsonify(prospects=[p.to_dict() for p in prospects])


@api_bp.route("/prospects/<prospect_id>")
@admin_required
def get_prospect(prospect_id):
    prospect = prospect_service.get_prospect(prospect_id)
    analysis = transcript_service.latest_analysis(prospect)
    return jsonify(
        prospect=prospect.to_dict(),
        workflow=describe(prospect_service.gather_facts(prospect)),
        transcripts=[t.to_dict() for t in transcript_service.list_transcripts(prospect)],
        latest_analysis=analysis.to_dict() if analysis else None,
    )


@api_bp.route("/prospects/<prospect_id>/workflow")
@admin_required
def prospect_workflow(prospect_id):
    prospect = prospect_service.get_prospect(prospect_id)
    return jsonify(describe(prospect_service.gather_facts(prospect)))


@api_bp.route("/prospects/<prospect_id>/workflow/recompute", methods=["POST"])
@admin_required
def recompute_workflow(prospect_id):
    prospect = prospect_service.get_prospect(prospect_id)
    _, facts = prospect_service.recompute_and_persist_stage(prospect)
    db.session.commit()
    return jsonify(describe(facts))


@api_bp.route("/prospects/<prospect_id>/transcripts", methods=["POST"])
@admin_required
def add_transcript(prospect_id):
    prospect = prospect_service.get_prospect(prospect_id)

    upload = request.files.get("file")
    if upload is not None:
        text = upload.read().decode("utf-8", errors="replace")
        file_name = upload.filename
    else:
        data = _json_body()
        text = data.get("transcript_text")
        file_name = data.get("file_name")

    transcript = transcript_service.add_transcript(prospect, text, file_name=file_name)
    db.session.commit()
    return jsonify(
        transcript=transcript.to_dict(),
        workflow_stage=prospect.workflow_stage,
    ), 201


@api_bp.route("/prospects/<prospect_id>/analysis", methods=["POST"])
@admin_required
def run_analysis(prospect_id):
    prospect = prospect_service.get_prospect(prospect_id)
    data = _json_body()
    analysis = transcript_service.analyze_prospect(
        prospect, transcript_id=data.get("transcript_id")
    )
    db.session.commit()
    return jsonify(
        analysis=analysis.to_dict(),
        workflow_stage=prospect.workflow_stage,
    ), 201


@api_bp.route("/prospects/<prospect_id>/reports", methods=["POST"])
@admin_required
def generate_report(prospect_id):
    prospect = prospect_service.get_prospect(prospect_id)
    data = _json_body()
    try:
        report = report_service.generate_audit_deck(prospect, pricing=data.get("pricing"))
    except ValidationFailed:
        # Keep the recomputed stage even when generation is refused
        db.session.commit()
        raise
    db.session.commit()
    return jsonify(report=report.to_dict()), 201


# ──────────────────────────────────────────────
# Companies (financial data)
# ──────────────────────────────────────────────

@api_bp.route("/companies/<company_id>/snapshot")
@admin_required
def company_snapshot(company_id):
    snapshot, created = financial_service.sync_financial_snapshot(
        company_id, force=_truthy(request.args.get("refresh"))
    )
    db.session.commit()
    return jsonify(snapshot=snapshot.to_dict(), fetched=created)


@api_bp.route("/companies/<company_id>/snapshots", methods=["POST"])
@admin_required
def record_snapshot(company_id):
    snapshot = financial_service.record_snapshot(company_id, _json_body())
    db.session.commit()
    return jsonify(snapshot=snapshot.to_dict()), 201


@api_bp.route("/companies/<company_id>/health-score")
@admin_required
def company_health_score(company_id):
    snapshot, score = financial_service.health_score_for_company(
        company_id, industry=request.args.get("industry")
    )
    if snapshot is None:
        raise NotFound(
            "No financial snapshot for this company.",
            details={"company_id": company_id},
        )
    return jsonify(
        company_id=company_id,
        snapshot_id=snapshot.id,
        snapshot_created_at=snapshot.to_dict()["created_at"],
        **score.to_dict(),
    )
