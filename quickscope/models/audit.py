"""Audit event model.

Logs significant actions (token exchange/refresh, disconnects, stage
changes, analyses) for the activity feed and debugging.
"""

import uuid

from quickscope.extensions import db
from quickscope.timeutils import as_utc


class AuditEvent(db.Model):
    __tablename__ = "audit_events"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    company_id = db.Column(db.String(64), nullable=True, index=True)
    prospect_id = db.Column(db.String(36), nullable=True, index=True)
    actor_user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=True
    )
    action = db.Column(db.String(255), nullable=False)  # e.g. "token.exchanged"
    metadata_ = db.Column(
        "metadata", db.JSON, default=dict
    )  # extra context, named metadata_ to avoid Python builtin clash
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    actor = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "company_id": self.company_id,
            "prospect_id": self.prospect_id,
            "action": self.action,
            "metadata": self.metadata_ or {},
            "created_at": as_utc(self.created_at).isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<AuditEvent {self.action}>"
