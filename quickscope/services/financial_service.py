"""Financial snapshot service — sync from QuickBooks, manual entry, scoring.

Snapshots are append-only. A sync inserts a new row unless the latest one
is younger than SNAPSHOT_MAX_AGE_HOURS.

normalize_snapshot_payload() is the single adapter for the field-naming
drift seen in stored and posted payloads:

    profit / net_profit          -> net_income
    assets (number)              -> total_assets
    assets {total_assets, ...}   -> total_assets, current_assets
    liabilities (number|dict)    -> total_liabilities, current_liabilities
    ratios {...}, trends {...}   -> flat ratio columns

Functions flush but do NOT commit — the caller commits.
"""

import logging
from datetime import timedelta

from flask import current_app

from quickscope.errors import ValidationFailed
from quickscope.extensions import db
from quickscope.models.financial_snapshot import FinancialSnapshot
from quickscope.services.health_score import calculate_health_score
from quickscope.services.prospect_service import recompute_stage_for_company
from quickscope.services.qbo_client import QuickBooksClient, extract_financial_metrics
from quickscope.services.qbo_oauth import get_token_manager
from quickscope.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

RATIO_FIELDS = ["current_ratio", "debt_to_equity", "gross_margin", "operating_margin"]


# ──────────────────────────────────────────────
# Normalisation
# ──────────────────────────────────────────────

def _num(value):
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _first(*values):
    for value in values:
        number = _num(value)
        if number is not None:
            return number
    return None


def _nested(payload, key):
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


def normalize_snapshot_payload(payload):
    """Map any known payload shape onto FinancialSnapshot.NUMERIC_FIELDS.

    Fields the payload does not carry come back as None so that
    derive_ratios() can fill them in.
    """
    if not isinstance(payload, dict):
        raise ValidationFailed(details={"payload": "Must be a JSON object."})

    assets = payload.get("assets")
    liabilities = payload.get("liabilities")
    assets_block = assets if isinstance(assets, dict) else {}
    liabilities_block = liabilities if isinstance(liabilities, dict) else {}
    ratios = _nested(payload, "ratios")
    trends = _nested(payload, "trends")

    normalized = {
        "revenue": _first(payload.get("revenue"), payload.get("total_revenue")),
        "expenses": _first(payload.get("expenses"), payload.get("total_expenses")),
        "net_income": _first(
            payload.get("net_income"), payload.get("profit"), payload.get("net_profit")
        ),
        "gross_profit": _first(payload.get("gross_profit")),
        "total_assets": _first(
            payload.get("total_assets"),
            None if assets_block else assets,
            assets_block.get("total_assets"),
        ),
        "current_assets": _first(
            payload.get("current_assets"), assets_block.get("current_assets")
        ),
        "total_liabilities": _first(
            payload.get("total_liabilities"),
            None if liabilities_block else liabilities,
            liabilities_block.get("total_liabilities"),
        ),
        "current_liabilities": _first(
            payload.get("current_liabilities"),
            liabilities_block.get("current_liabilities"),
        ),
        "profit_margin": _first(payload.get("profit_margin"), ratios.get("profit_margin")),
        "revenue_growth_rate": _first(
            payload.get("revenue_growth_rate"), trends.get("revenue_growth_rate")
        ),
    }
    for name in RATIO_FIELDS:
        normalized[name] = _first(payload.get(name), ratios.get(name))
    return normalized


def _pct(part, whole):
    if not whole:
        return 0.0
    return round(part / whole * 100, 2)


def derive_ratios(metrics, previous=None):
    """Fill every missing (None) ratio from the raw figures.

    Values already present are kept as given.
    """
    m = {name: metrics.get(name) for name in FinancialSnapshot.NUMERIC_FIELDS}
    for name in ("revenue", "expenses", "gross_profit", "total_assets", "current_assets",
                 "total_liabilities", "current_liabilities"):
        if m[name] is None:
            m[name] = 0.0

    revenue = m["revenue"]
    if m["net_income"] is None:
        m["net_income"] = revenue - m["expenses"]

    if m["profit_margin"] is None:
        m["profit_margin"] = _pct(m["net_income"], revenue)
    if m["operating_margin"] is None:
        m["operating_margin"] = _pct(revenue - m["expenses"], revenue)
    if m["gross_margin"] is None:
        m["gross_margin"] = _pct(m["gross_profit"], revenue)

    if m["current_ratio"] is None:
        if m["current_liabilities"]:
            m["current_ratio"] = round(m["current_assets"] / m["current_liabilities"], 2)
        elif m["total_liabilities"]:
            m["current_ratio"] = round(m["total_assets"] / m["total_liabilities"], 2)
        else:
            m["current_ratio"] = 0.0

    if m["debt_to_equity"] is None:
        equity = m["total_assets"] - m["total_liabilities"]
        m["debt_to_equity"] = round(m["total_liabilities"] / equity, 2) if equity > 0 else 0.0

    if m["revenue_growth_rate"] is None:
        if previous is not None and previous.revenue and previous.revenue > 0:
            m["revenue_growth_rate"] = _pct(revenue - previous.revenue, previous.revenue)
        else:
            m["revenue_growth_rate"] = 0.0

    return m


# ──────────────────────────────────────────────
# Queries
# ──────────────────────────────────────────────

def latest_snapshot(company_id):
    return (
        FinancialSnapshot.query.filter_by(company_id=company_id)
        .order_by(FinancialSnapshot.created_at.desc())
        .first()
    )


def is_fresh(snapshot, max_age_hours, now=None):
    if snapshot is None:
        return False
    now = now or utcnow()
    return now - as_utc(snapshot.created_at) < timedelta(hours=max_age_hours)


# ──────────────────────────────────────────────
# Writes
# ──────────────────────────────────────────────

def _insert_snapshot(company_id, metrics, source):
    previous = latest_snapshot(company_id)
    values = derive_ratios(metrics, previous=previous)
    snapshot = FinancialSnapshot(company_id=company_id, source=source, created_at=utcnow(), **values)
    db.session.add(snapshot)
    db.session.flush()

    recompute_stage_for_company(company_id)
    return snapshot


def record_snapshot(company_id, payload):
    """Store a manually supplied snapshot for ``company_id``."""
    if not company_id:
        raise ValidationFailed(details={"company_id": "company_id is required."})
    metrics = normalize_snapshot_payload(payload)
    snapshot = _insert_snapshot(company_id, metrics, source="manual")
    logger.info(f"Recorded manual financial snapshot for company {company_id}")
    return snapshot


def sync_financial_snapshot(company_id, force=False):
    """Return the latest snapshot, fetching a new one from QuickBooks if stale.

    Returns (snapshot, created). Raises NotConnected, RefreshFailed
    (reconnect required) or UpstreamFailed.
    """
    max_age = current_app.config.get("SNAPSHOT_MAX_AGE_HOURS", 24)
    latest = latest_snapshot(company_id)
    if not force and is_fresh(latest, max_age):
        return latest, False

    record = get_token_manager().get_fresh(company_id)
    client = QuickBooksClient.for_record(record, current_app.config)
    metrics = extract_financial_metrics(
        client.get_profit_and_loss(), client.get_balance_sheet()
    )
    snapshot = _insert_snapshot(company_id, metrics, source="quickbooks")
    logger.info(
        f"Synced financial snapshot for company {company_id}: revenue={snapshot.revenue}"
    )
    return snapshot, True


def health_score_for_company(company_id, industry=None):
    """Score the latest snapshot. Returns (snapshot, HealthScore) or (None, None)."""
    snapshot = latest_snapshot(company_id)
    if snapshot is None:
        return None, None
    return snapshot, calculate_health_score(snapshot, industry=industry)
