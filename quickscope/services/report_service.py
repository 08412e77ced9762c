"""Report service — assembles audit decks from stored data.

A deck is structured JSON (sections of titles, lists and numbers); turning
it into slides or a PDF is the frontend's job. Generation requires the
prospect to be at ready_for_report.

Functions flush but do NOT commit — the caller commits.
"""

import logging

from quickscope.errors import ValidationFailed
from quickscope.extensions import db
from quickscope.models.generated_report import GeneratedReport
from quickscope.services.audit_service import log_audit
from quickscope.services.financial_service import health_score_for_company
from quickscope.services.prospect_service import recompute_and_persist_stage
from quickscope.services.transcript_service import latest_analysis
from quickscope.services.workflow import WorkflowStage

logger = logging.getLogger(__name__)

SERVICES_INCLUDED = [
    "Monthly bookkeeping and reconciliation",
    "Financial statements and reporting",
    "Cash flow forecasting",
    "Strategic CFO advisory",
    "Monthly business review calls",
]


def _executive_summary(prospect, health):
    lines = []
    if health is not None:
        lines.append(f"Financial Health Score: {health.overall_score}/100")
        if health.red_flags:
            lines.append(f"{len(health.red_flags)} issue(s) requiring immediate attention")
        else:
            lines.append("No critical financial issues identified")
        if health.strengths:
            lines.append(f"{len(health.strengths)} strength(s) to build on")
    else:
        lines.append("Financial data not yet connected")
    return {
        "title": f"{prospect.company_name} Financial Analysis & Recommendations",
        "highlights": lines,
    }


def _company_overview(prospect, snapshot):
    return {
        "title": "Company Overview",
        "company_name": prospect.company_name,
        "contact_name": prospect.contact_name,
        "industry": prospect.industry,
        "employee_count": prospect.employee_count,
        "annual_revenue": snapshot.revenue if snapshot else prospect.annual_revenue,
    }


def _financial_health(snapshot, health):
    if snapshot is None or health is None:
        return {"title": "Financial Health Analysis", "available": False}
    section = {
        "title": "Financial Health Analysis",
        "available": True,
        "overall_score": health.overall_score,
        "components": health.component_scores,
        "red_flags": health.red_flags,
        "strengths": health.strengths,
        "key_metrics": {
            "revenue": snapshot.revenue,
            "net_income": snapshot.net_income,
            "profit_margin": snapshot.profit_margin,
            "current_ratio": snapshot.current_ratio,
            "debt_to_equity": snapshot.debt_to_equity,
        },
    }
    if health.benchmark:
        section["benchmark"] = health.benchmark
    return section


def _pain_points(insights):
    pain = insights.get("painPoints") or {}
    return {
        "title": "Key Challenges",
        "categories": {k: v for k, v in pain.items() if v},
        "urgency": (insights.get("scores") or {}).get("urgency"),
        "timeline": (insights.get("urgencySignals") or {}).get("timeline"),
    }


def _opportunities(health, insights):
    prioritized = []
    if health is not None:
        prioritized += [
            {"priority": "high", "recommendation": f"Address: {flag}", "timeline": "Immediate"}
            for flag in health.red_flags
        ]
        prioritized += [
            {"priority": "medium", "recommendation": rec, "timeline": "30-60 days"}
            for rec in health.recommendations
        ]
    objectives = insights.get("businessObjectives") or {}
    return {
        "title": "Strategic Recommendations",
        "recommendations": prioritized[:6],
        "aligned_objectives": objectives.get("shortTerm", []) + objectives.get("growthTargets", []),
    }


def _roi(revenue, pricing):
    try:
        monthly = float(pricing.get("monthly_retainer") or 0)
    except (TypeError, ValueError):
        raise ValidationFailed(details={"monthly_retainer": "Monthly retainer must be a number."})
    if monthly <= 0 or not revenue or revenue <= 0:
        return None
    annual = monthly * 12
    return {
        "title": "Return on Investment Projections",
        "annual_investment": annual,
        "projected_savings": {
            "year_1": round(revenue * 0.025),
            "year_2": round(revenue * 0.04),
            "year_3": round(revenue * 0.06),
        },
        "roi_percentage": round((revenue * 0.025 - annual) / annual * 100),
    }


def _next_steps(insights, pricing):
    steps = list((insights.get("salesIntelligence") or {}).get("nextSteps") or [])
    steps += [
        "Execute engagement letter",
        "Begin financial cleanup process",
        "Schedule first strategic review",
    ]
    section = {"title": "Next Steps", "steps": steps, "services_included": SERVICES_INCLUDED}
    if pricing:
        section["proposal"] = {
            "monthly_retainer": pricing.get("monthly_retainer"),
            "cleanup_cost": pricing.get("cleanup_cost"),
            "implementation_timeline": pricing.get("implementation_timeline"),
        }
    return section


def generate_audit_deck(prospect, pricing=None):
    """Build and store an audit deck for ``prospect``.

    The stage is recomputed first; anything short of ready_for_report is
    rejected with ValidationFailed naming the next action.
    """
    stage, _ = recompute_and_persist_stage(prospect)
    if stage is not WorkflowStage.READY_FOR_REPORT:
        raise ValidationFailed(
            "This prospect is not ready for an audit deck yet.",
            details={"workflow_stage": stage.value},
        )

    if pricing and not isinstance(pricing, dict):
        raise ValidationFailed(details={"pricing": "Must be a JSON object."})
    pricing = pricing or {}
    snapshot, health = (None, None)
    if prospect.qb_company_id:
        snapshot, health = health_score_for_company(prospect.qb_company_id, industry=prospect.industry)
    analysis = latest_analysis(prospect)
    insights = analysis.insights if analysis and analysis.insights else {}

    content = {
        "executive_summary": _executive_summary(prospect, health),
        "company_overview": _company_overview(prospect, snapshot),
        "financial_health": _financial_health(snapshot, health),
        "pain_points": _pain_points(insights),
        "opportunities": _opportunities(health, insights),
        "next_steps": _next_steps(insights, pricing),
        "closeability_score": analysis.closeability_score if analysis else None,
    }
    roi = _roi(snapshot.revenue if snapshot else prospect.annual_revenue, pricing)
    if roi:
        content["roi"] = roi

    report = GeneratedReport(
        prospect_id=prospect.id,
        company_id=prospect.qb_company_id,
        report_type="audit_deck",
        content=content,
    )
    db.session.add(report)
    db.session.flush()

    log_audit(
        "report.generated",
        company_id=prospect.qb_company_id,
        prospect_id=prospect.id,
        metadata={"report_id": report.id},
    )
    logger.info(f"Generated audit deck {report.id} for prospect {prospect.id}")
    return report
