"""Transcript insight shaping and scoring — pure functions.

The analyzer returns loosely-shaped JSON. normalize_insights() coerces it
into the documented structure (every key present, lists are lists) so
downstream code never has to guard against missing branches.
"""

PAIN_POINT_CATEGORIES = ["operational", "financial", "strategic", "technology"]
OBJECTIVE_CATEGORIES = ["shortTerm", "longTerm", "growthTargets", "efficiencyGoals"]

URGENT_KEYWORDS = ["urgent", "immediate", "asap", "crisis", "critical"]
MEDIUM_KEYWORDS = ["soon", "quickly", "priority", "important"]


def _list(value):
    if value is None:
        return []
    if isinstance(value, list):
        return [v for v in value if v not in (None, "")]
    return [value]


def _text(value):
    if value is None:
        return ""
    return str(value).strip()


def _block(data, key):
    value = data.get(key) if isinstance(data, dict) else None
    return value if isinstance(value, dict) else {}


def _score(value):
    try:
        return max(0, min(100, int(round(float(value)))))
    except (TypeError, ValueError):
        return None


def normalize_insights(raw):
    """Coerce analyzer output into the canonical insight shape."""
    raw = raw if isinstance(raw, dict) else {}

    pain = _block(raw, "painPoints")
    objectives = _block(raw, "businessObjectives")
    urgency = _block(raw, "urgencySignals")
    competitive = _block(raw, "competitiveContext")
    sales = _block(raw, "salesIntelligence")

    decision_makers = []
    for dm in _list(raw.get("decisionMakers")):
        if not isinstance(dm, dict):
            dm = {"name": _text(dm)}
        influence = _text(dm.get("influence")).lower()
        decision_makers.append({
            "name": _text(dm.get("name")),
            "role": _text(dm.get("role")),
            "influence": influence if influence in ("high", "medium", "low") else "medium",
            "concerns": _list(dm.get("concerns")),
            "priorities": _list(dm.get("priorities")),
        })

    return {
        "painPoints": {c: _list(pain.get(c)) for c in PAIN_POINT_CATEGORIES},
        "businessObjectives": {c: _list(objectives.get(c)) for c in OBJECTIVE_CATEGORIES},
        "decisionMakers": decision_makers,
        "urgencySignals": {
            "timeline": _text(urgency.get("timeline")),
            "pressurePoints": _list(urgency.get("pressurePoints")),
            "catalysts": _list(urgency.get("catalysts")),
            "budget": _text(urgency.get("budget")),
        },
        "competitiveContext": {
            "alternatives": _list(competitive.get("alternatives")),
            "differentiators": _list(competitive.get("differentiators")),
            "threats": _list(competitive.get("threats")),
        },
        "salesIntelligence": {
            "buyingSignals": _list(sales.get("buyingSignals")),
            "objections": _list(sales.get("objections")),
            "nextSteps": _list(sales.get("nextSteps")),
            "closeability": _score(sales.get("closeability")),
        },
    }


def calculate_closeability_score(insights):
    """Heuristic 0-100 score used when the analyzer gives none."""
    sales = insights["salesIntelligence"]
    urgency = insights["urgencySignals"]
    timeline = urgency["timeline"].lower()

    score = 50
    score += len(sales["buyingSignals"]) * 8
    if "urgent" in timeline or "soon" in timeline:
        score += 15
    if any(dm["influence"] == "high" for dm in insights["decisionMakers"]):
        score += 20
    if urgency["budget"] and "tight" not in urgency["budget"].lower():
        score += 10
    score -= len(sales["objections"]) * 5
    if len(insights["competitiveContext"]["alternatives"]) > 2:
        score -= 10
    return max(0, min(100, score))


def closeability(insights):
    reported = insights["salesIntelligence"]["closeability"]
    if reported is not None:
        return reported
    return calculate_closeability_score(insights)


def determine_urgency_level(insights):
    timeline = insights["urgencySignals"]["timeline"].lower()
    pressure = len(insights["urgencySignals"]["pressurePoints"])
    if any(k in timeline for k in URGENT_KEYWORDS) or pressure > 2:
        return "high"
    if any(k in timeline for k in MEDIUM_KEYWORDS) or pressure > 0:
        return "medium"
    return "low"


def calculate_readiness_level(insights):
    buying = len(insights["salesIntelligence"]["buyingSignals"])
    objections = len(insights["salesIntelligence"]["objections"])
    high_influence = sum(1 for dm in insights["decisionMakers"] if dm["influence"] == "high")

    if buying >= 3 and objections <= 1 and high_influence >= 1:
        return "ready"
    if buying >= 2 and high_influence >= 1:
        return "evaluating"
    if buying >= 1 or insights["businessObjectives"]["shortTerm"]:
        return "exploring"
    return "not-ready"


def sales_recommendations(insights, score, urgency_level):
    recommendations = []
    if score >= 80:
        recommendations.append("High priority: schedule the audit call within 2-3 business days")
        recommendations.append("Prepare a detailed audit deck with specific findings and ROI projections")
    elif score >= 60:
        recommendations.append("Address the identified objections in a follow-up email")
        recommendations.append("Schedule the audit call within one week with additional discovery")
    else:
        recommendations.append("Schedule an additional discovery call to understand concerns")
        recommendations.append("Send educational content to build trust and credibility")

    if urgency_level == "high":
        recommendations.append("Emphasize immediate financial risks in all communications")
    if insights["competitiveContext"]["alternatives"]:
        recommendations.append("Prepare competitive differentiation materials")
    if len(insights["decisionMakers"]) > 1:
        recommendations.append("Plan a multi-stakeholder presentation")
    return recommendations
