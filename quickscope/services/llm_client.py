"""Transcript analyzer — OpenAI chat completions in JSON mode.

Pluggable: anything with an ``analyze(transcript_text, company_name)``
method returning a dict works. create_app() does not build one eagerly;
get_analyzer() constructs it from config on first use per app.
"""

import json
import logging

from flask import current_app
from openai import OpenAI, OpenAIError

from quickscope.errors import UpstreamFailed

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a senior business development analyst specializing in B2B sales "
    "for fractional CFO services. Extract actionable business intelligence from "
    "discovery call transcripts. Always respond with valid JSON."
)

ANALYSIS_PROMPT = """Analyze this discovery call transcript for {company_name} and extract key business intelligence.

TRANSCRIPT:
{transcript}

Extract:
1. PAIN POINTS (operational, financial, strategic, technology)
2. BUSINESS OBJECTIVES (short-term goals, long-term vision, growth targets, efficiency goals)
3. DECISION MAKERS (names, roles, influence level, concerns, priorities)
4. URGENCY SIGNALS (timeline, pressure points, catalysts, budget mentions)
5. COMPETITIVE CONTEXT (alternatives considered, differentiators needed, threats)
6. SALES INTELLIGENCE (buying signals, objections, next steps, closeability score 0-100)

Quote the transcript where it supports a point. Return JSON with exactly this structure:
{{
  "painPoints": {{"operational": [], "financial": [], "strategic": [], "technology": []}},
  "businessObjectives": {{"shortTerm": [], "longTerm": [], "growthTargets": [], "efficiencyGoals": []}},
  "decisionMakers": [{{"name": "", "role": "", "influence": "high|medium|low", "concerns": [], "priorities": []}}],
  "urgencySignals": {{"timeline": "", "pressurePoints": [], "catalysts": [], "budget": ""}},
  "competitiveContext": {{"alternatives": [], "differentiators": [], "threats": []}},
  "salesIntelligence": {{"buyingSignals": [], "objections": [], "nextSteps": [], "closeability": 0}}
}}"""


class TranscriptAnalyzer:

    def __init__(self, api_key, model="gpt-4o-mini", temperature=0.3,
                 max_tokens=4000, timeout=60):
        if not api_key:
            raise RuntimeError("OPENAI_API_KEY is not set")
        self.client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_config(cls, config):
        return cls(
            api_key=config.get("OPENAI_API_KEY"),
            model=config.get("LLM_MODEL", "gpt-4o-mini"),
            temperature=config.get("LLM_TEMPERATURE", 0.3),
            max_tokens=config.get("LLM_MAX_TOKENS", 4000),
            timeout=config.get("LLM_TIMEOUT", 60),
        )

    def analyze(self, transcript_text, company_name):
        """Return the raw insight dict for one transcript. Raises UpstreamFailed."""
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": ANALYSIS_PROMPT.format(
                company_name=company_name, transcript=transcript_text,
            )},
        ]
        try:
            res = self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
                messages=messages,
            )
        except OpenAIError as e:
            logger.error(f"Transcript analysis call failed for {company_name}: {e}")
            raise UpstreamFailed(
                "AI analysis failed. Please try again.",
                details={"provider": "openai"},
            ) from e

        text = res.choices[0].message.content or ""
        try:
            payload = json.loads(text)
        except ValueError:
            logger.warning(f"Analyzer returned non-JSON content for {company_name}; using empty insights")
            payload = {}
        return payload


def get_analyzer():
    analyzer = current_app.extensions.get("transcript_analyzer")
    if analyzer is None:
        analyzer = TranscriptAnalyzer.from_config(current_app.config)
        current_app.extensions["transcript_analyzer"] = analyzer
    return analyzer
