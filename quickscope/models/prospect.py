"""Prospect model (sales lead).

One row per contact/company being pursued. Created on first contact-form
submission or on OAuth callback (placeholder), updated in place on repeat
submissions keyed by email.

``workflow_stage`` is a cached value. It is only ever written by
prospect_service.recompute_and_persist_stage().
"""

import uuid

from quickscope.extensions import db
from quickscope.services.workflow import WorkflowStage
from quickscope.timeutils import as_utc


class Prospect(db.Model):
    __tablename__ = "prospects"

    STAGES = [stage.value for stage in WorkflowStage]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    company_name = db.Column(db.String(255), nullable=False)
    contact_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True, index=True)  # natural dedup key
    phone = db.Column(db.String(50), nullable=True)
    industry = db.Column(db.String(100), nullable=True)
    annual_revenue = db.Column(db.Float, nullable=True)
    employee_count = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    qb_company_id = db.Column(
        db.String(64), nullable=True, index=True
    )  # weak reference to qbo_tokens.company_id
    workflow_stage = db.Column(
        db.String(50),
        default=WorkflowStage.NEEDS_PROSPECT_INFO.value,
        nullable=False,
    )
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "company_name": self.company_name,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "industry": self.industry,
            "annual_revenue": self.annual_revenue,
            "employee_count": self.employee_count,
            "notes": self.notes,
            "qb_company_id": self.qb_company_id,
            "workflow_stage": self.workflow_stage,
            "created_at": as_utc(self.created_at).isoformat() if self.created_at else None,
            "updated_at": as_utc(self.updated_at).isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Prospect {self.company_name} ({self.workflow_stage})>"
