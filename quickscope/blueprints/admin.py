"""Admin blueprint — /api/admin/*

All routes require admin_required (login + is_admin).

    GET  /api/admin/connected-companies          connections, stage, data coverage
    POST /api/admin/companies/<cid>/disconnect   revoke + transactional cleanup
    POST /api/admin/refresh-tokens               rotate stale tokens (?limit=)
    GET  /api/admin/reauth                       accounts nearing refresh-token expiry
    GET  /api/admin/audit-events                 recent audit trail (?company_id=)
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from quickscope.decorators import admin_required
from quickscope.extensions import db
from quickscope.models.audit import AuditEvent
from quickscope.services.audit_service import log_audit
from quickscope.services.connection_service import connected_companies, disconnect_company
from quickscope.services.qbo_oauth import get_token_manager

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _int_arg(name, default, maximum):
    try:
        value = int(request.args.get(name, default))
    except (TypeError, ValueError):
        value = default
    return max(1, min(value, maximum))


# ──────────────────────────────────────────────
# GET /api/admin/connected-companies
# ──────────────────────────────────────────────

@admin_bp.route("/connected-companies")
@admin_required
def list_connected_companies():
    companies = connected_companies()
    stats = {
        "total": len(companies),
        "with_prospects": sum(1 for c in companies if c["prospect"]),
        "with_financials": sum(1 for c in companies if c["facts"]["has_financial_snapshot"]),
        "with_analysis": sum(1 for c in companies if c["facts"]["has_ai_analysis"]),
        "needs_reauth": sum(1 for c in companies if c["needs_reauth"]),
    }
    return jsonify(companies=companies, stats=stats)


# ──────────────────────────────────────────────
# POST /api/admin/companies/<cid>/disconnect
# ──────────────────────────────────────────────

@admin_bp.route("/companies/<company_id>/disconnect", methods=["POST"])
@admin_required
def disconnect(company_id):
    summary = disconnect_company(company_id)
    return jsonify(summary)


# ──────────────────────────────────────────────
# POST /api/admin/refresh-tokens
# ──────────────────────────────────────────────

@admin_bp.route("/refresh-tokens", methods=["POST"])
@admin_required
def refresh_tokens():
    results = get_token_manager().refresh_stale_tokens(
        older_than_days=current_app.config.get("QBO_STALE_TOKEN_DAYS", 70),
        limit=_int_arg("limit", 10, 100),
    )
    summary = {
        "processed": len(results),
        "refreshed": sum(1 for r in results if r["status"] == "refreshed"),
        "failed": sum(1 for r in results if r["status"] != "refreshed"),
    }
    log_audit("tokens.batch_refreshed", metadata=summary)
    db.session.commit()
    return jsonify(results=results, **summary)


# ──────────────────────────────────────────────
# GET /api/admin/reauth
# ──────────────────────────────────────────────

@admin_bp.route("/reauth")
@admin_required
def reauth_report():
    records = get_token_manager().accounts_needing_reauth(
        current_app.config.get("QBO_REAUTH_WARNING_DAYS", 14)
    )
    return jsonify(accounts=[r.to_dict() for r in records])


# ──────────────────────────────────────────────
# GET /api/admin/audit-events
# ──────────────────────────────────────────────

@admin_bp.route("/audit-events")
@admin_required
def audit_events():
    query = AuditEvent.query
    if request.args.get("company_id"):
        query = query.filter_by(company_id=request.args["company_id"])
    events = query.order_by(AuditEvent.created_at.desc()).limit(
        _int_arg("limit", 50, 500)
    ).all()
    return jsonify(events=[e.to_dict() for e in events])
