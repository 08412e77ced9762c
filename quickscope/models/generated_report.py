"""Generated report model — audit decks assembled for a prospect."""

import uuid

from quickscope.extensions import db
from quickscope.timeutils import as_utc, utcnow


class GeneratedReport(db.Model):
    __tablename__ = "generated_reports"

    TYPES = ["audit_deck"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    prospect_id = db.Column(db.String(36), nullable=False, index=True)
    company_id = db.Column(db.String(64), nullable=True, index=True)
    report_type = db.Column(db.String(50), default="audit_deck", nullable=False)
    content = db.Column(db.JSON, default=dict)
    created_at = db.Column(
        db.DateTime(timezone=True), default=utcnow, nullable=False
    )

    def to_dict(self):
        return {
            "id": self.id,
            "prospect_id": self.prospect_id,
            "company_id": self.company_id,
            "report_type": self.report_type,
            "content": self.content or {},
            "created_at": as_utc(self.created_at).isoformat(),
        }

    def __repr__(self):
        return f"<GeneratedReport {self.report_type} prospect={self.prospect_id}>"
