"""Financial health scorer — pure numeric transform.

Converts a snapshot's ratios into a 0-100 composite score:

    profitability = clamp((profit_margin + 20) * 2.5)
    liquidity     = clamp(current_ratio * 50)
    solvency      = clamp((1 - debt_to_equity) * 100)
    efficiency    = clamp(operating_margin * 5)
    growth        = clamp((revenue_growth_rate + 10) * 5)

Margins and growth are percentages (8 means 8%). Missing inputs count as
zero. Nothing here raises: every component and the overall score land in
[0, 100] for any finite input.
"""

import math
from dataclasses import dataclass, field
from typing import Optional

WEIGHTS = {
    "profitability": 0.30,
    "liquidity": 0.20,
    "solvency": 0.20,
    "efficiency": 0.15,
    "growth": 0.15,
}

INDUSTRY_BENCHMARKS = {
    "construction": {"avg_profit_margin": 3.5, "avg_current_ratio": 1.8},
    "retail": {"avg_profit_margin": 2.5, "avg_current_ratio": 1.5},
    "professional_services": {"avg_profit_margin": 15.0, "avg_current_ratio": 2.0},
    "manufacturing": {"avg_profit_margin": 8.0, "avg_current_ratio": 1.4},
}


@dataclass(frozen=True)
class ScoringInputs:
    profit_margin: float = 0.0
    current_ratio: float = 0.0
    debt_to_equity: float = 0.0
    operating_margin: float = 0.0
    revenue_growth_rate: float = 0.0

    @classmethod
    def from_mapping(cls, data):
        """Build from a dict or snapshot-like object; None/missing -> 0."""
        values = {}
        for name in cls.__dataclass_fields__:
            if isinstance(data, dict):
                raw = data.get(name)
            else:
                raw = getattr(data, name, None)
            values[name] = _number(raw)
        return cls(**values)


@dataclass
class HealthScore:
    overall_score: int
    component_scores: dict
    red_flags: list = field(default_factory=list)
    strengths: list = field(default_factory=list)
    recommendations: list = field(default_factory=list)
    benchmark: Optional[dict] = None

    def to_dict(self):
        data = {
            "overall_score": self.overall_score,
            "component_scores": self.component_scores,
            "red_flags": self.red_flags,
            "strengths": self.strengths,
            "recommendations": self.recommendations,
        }
        if self.benchmark is not None:
            data["benchmark"] = self.benchmark
        return data


def _number(value):
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return value


def clamp(value, low=0.0, high=100.0):
    return min(high, max(low, value))


def round_half_up(value):
    return int(math.floor(value + 0.5))


def component_scores(inputs):
    return {
        "profitability": clamp((inputs.profit_margin + 20) * 2.5),
        "liquidity": clamp(inputs.current_ratio * 50),
        "solvency": clamp((1 - inputs.debt_to_equity) * 100),
        "efficiency": clamp(inputs.operating_margin * 5),
        "growth": clamp((inputs.revenue_growth_rate + 10) * 5),
    }


def overall_score(components):
    weighted = sum(components[name] * weight for name, weight in WEIGHTS.items())
    return int(clamp(round_half_up(weighted)))


def identify_red_flags(inputs):
    flags = []
    if inputs.profit_margin < 0:
        flags.append("Negative profit margin")
    if inputs.current_ratio < 1:
        flags.append("Low liquidity (current ratio < 1)")
    if inputs.debt_to_equity > 2:
        flags.append("High debt-to-equity ratio")
    if inputs.revenue_growth_rate < -10:
        flags.append("Significant revenue decline")
    return flags


def identify_strengths(inputs):
    strengths = []
    if inputs.profit_margin > 15:
        strengths.append("Strong profit margin")
    if inputs.current_ratio > 2:
        strengths.append("Excellent liquidity position")
    if inputs.debt_to_equity < 1:
        strengths.append("Conservative debt levels")
    if inputs.revenue_growth_rate > 20:
        strengths.append("Strong revenue growth")
    return strengths


def generate_recommendations(inputs):
    recommendations = []
    if inputs.profit_margin < 5:
        recommendations.append(
            "Focus on improving profit margins through cost optimization"
        )
    if inputs.current_ratio < 1.5:
        recommendations.append("Strengthen working capital management")
    if inputs.debt_to_equity > 1.5:
        recommendations.append("Consider debt restructuring or equity financing")
    if inputs.revenue_growth_rate < 0:
        recommendations.append("Develop growth strategy to reverse revenue decline")
    return recommendations


def benchmark_against_industry(inputs, industry):
    """Compare against a known industry average. Returns None for unknown industries."""
    benchmark = INDUSTRY_BENCHMARKS.get((industry or "").lower())
    if benchmark is None:
        return None
    margin_score = inputs.profit_margin / benchmark["avg_profit_margin"] * 50
    ratio_score = inputs.current_ratio / benchmark["avg_current_ratio"] * 50
    return {
        "industry": industry.lower(),
        "profit_margin_vs_industry": inputs.profit_margin - benchmark["avg_profit_margin"],
        "current_ratio_vs_industry": inputs.current_ratio - benchmark["avg_current_ratio"],
        "performance_percentile": clamp((margin_score + ratio_score) / 2),
    }


def calculate_health_score(inputs, industry=None):
    """Score ``inputs`` (ScoringInputs, dict, or snapshot)."""
    if not isinstance(inputs, ScoringInputs):
        inputs = ScoringInputs.from_mapping(inputs)

    components = component_scores(inputs)
    return HealthScore(
        overall_score=overall_score(components),
        component_scores=components,
        red_flags=identify_red_flags(inputs),
        strengths=identify_strengths(inputs),
        recommendations=generate_recommendations(inputs),
        benchmark=benchmark_against_industry(inputs, industry) if industry else None,
    )
