"""Connection service — connected-company overview and disconnect.

disconnect_company() revokes the provider tokens best-effort and then
removes every trace of the company in ONE database transaction:

    delete financial_snapshots  (company_id)
    delete ai_analyses          (company_id)
    clear prospects.qb_company_id and recompute their stage
    delete qbo_tokens row
    audit account.disconnected

Any database error rolls the whole unit back and raises StoreWriteFailed.
Revocation failures never block the local cleanup.
"""

import logging

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from quickscope.errors import NotConnected, StoreWriteFailed
from quickscope.extensions import db
from quickscope.models.ai_analysis import AIAnalysis
from quickscope.models.financial_snapshot import FinancialSnapshot
from quickscope.models.prospect import Prospect
from quickscope.services.audit_service import log_audit
from quickscope.services.financial_service import latest_snapshot
from quickscope.services.prospect_service import gather_facts, recompute_and_persist_stage
from quickscope.services.qbo_oauth import get_token_manager
from quickscope.services.workflow import WorkflowFacts, describe
from quickscope.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)


def disconnect_company(company_id, manager=None):
    """Revoke and remove a connected company. Returns a summary dict.

    Raises:
        NotConnected: No stored tokens for ``company_id``.
        StoreWriteFailed: The cleanup transaction failed and was rolled back.
    """
    manager = manager or get_token_manager()
    record = manager.store.get(company_id)
    if record is None:
        raise NotConnected(details={"company_id": company_id})

    revoked = manager.revoke(record)

    try:
        snapshots = FinancialSnapshot.query.filter_by(company_id=company_id).delete(
            synchronize_session=False
        )
        analyses = AIAnalysis.query.filter_by(company_id=company_id).delete(
            synchronize_session=False
        )

        prospects = Prospect.query.filter_by(qb_company_id=company_id).all()
        for prospect in prospects:
            prospect.qb_company_id = None
            recompute_and_persist_stage(prospect)

        manager.store.delete(company_id, commit=False)
        log_audit(
            "account.disconnected",
            company_id=company_id,
            metadata={
                "snapshots_deleted": snapshots,
                "analyses_deleted": analyses,
                "prospects_unlinked": len(prospects),
                "revoked": revoked,
            },
        )
        db.session.commit()
    except (SQLAlchemyError, StoreWriteFailed) as e:
        db.session.rollback()
        logger.error(f"Disconnect cleanup for company {company_id} rolled back: {e}")
        if isinstance(e, StoreWriteFailed):
            raise
        raise StoreWriteFailed(
            "Failed to disconnect the company. No changes were made.",
            details={"company_id": company_id, "reason": str(e)},
        ) from e

    logger.info(
        f"Disconnected company {company_id}: {snapshots} snapshots, "
        f"{analyses} analyses removed, {len(prospects)} prospects unlinked"
    )
    return {
        "company_id": company_id,
        "revoked": revoked,
        "snapshots_deleted": snapshots,
        "analyses_deleted": analyses,
        "prospects_unlinked": len(prospects),
    }


def connected_companies(manager=None):
    """Every stored connection with its prospect, stage and data coverage."""
    manager = manager or get_token_manager()
    warning_days = current_app.config.get("QBO_REAUTH_WARNING_DAYS", 14)
    now = utcnow()

    companies = []
    for record in manager.store.all():
        prospect = db.session.get(Prospect, record.prospect_id) if record.prospect_id else None
        if prospect is None:
            prospect = Prospect.query.filter_by(qb_company_id=record.company_id).first()

        entry = record.to_dict()
        entry["days_connected"] = (now - as_utc(record.created_at)).days
        entry["access_expired"] = record.is_access_expired(now)
        entry["needs_reauth"] = record.needs_reauth(warning_days, now)

        latest = latest_snapshot(record.company_id)
        entry["financial_summary"] = (
            {
                "revenue": latest.revenue,
                "expenses": latest.expenses,
                "net_income": latest.net_income,
                "profit_margin": latest.profit_margin,
            }
            if latest else None
        )

        facts = gather_facts(prospect) if prospect is not None else WorkflowFacts(
            has_financial_snapshot=latest is not None
        )
        entry["prospect"] = prospect.to_dict() if prospect is not None else None
        entry.update(describe(facts))
        companies.append(entry)
    return companies
