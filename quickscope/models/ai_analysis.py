"""AI analysis model.

Append-only per prospect; the latest row by created_at is authoritative.
``insights`` holds the structured transcript analysis (painPoints,
businessObjectives, decisionMakers, urgencySignals, competitiveContext,
salesIntelligence).
"""

import uuid

from quickscope.extensions import db
from quickscope.timeutils import as_utc, utcnow


class AIAnalysis(db.Model):
    __tablename__ = "ai_analyses"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    prospect_id = db.Column(db.String(36), nullable=True, index=True)
    company_id = db.Column(db.String(64), nullable=True, index=True)
    transcript_id = db.Column(db.String(36), nullable=True)
    closeability_score = db.Column(db.Integer, nullable=True)  # 0-100
    financial_health_score = db.Column(db.Integer, nullable=True)  # 0-100
    insights = db.Column(db.JSON, default=dict)
    model = db.Column(db.String(100), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), default=utcnow, nullable=False
    )

    def to_dict(self):
        return {
            "id": self.id,
            "prospect_id": self.prospect_id,
            "company_id": self.company_id,
            "transcript_id": self.transcript_id,
            "closeability_score": self.closeability_score,
            "financial_health_score": self.financial_health_score,
            "insights": self.insights or {},
            "model": self.model,
            "created_at": as_utc(self.created_at).isoformat(),
        }

    def __repr__(self):
        return f"<AIAnalysis {self.id} closeability={self.closeability_score}>"
