"""QuickBooks Online OAuth credential model.

Exactly one row per provider company (``company_id`` is the realmId).
New authorization-code exchanges overwrite the prior row for the same
company (upsert, last writer wins).

``expires_at`` always equals ``updated_at`` plus the provider-issued access
token lifetime. ``refresh_expires_at`` tracks the refresh token's own
window so accounts can be flagged for re-authentication before the
refresh token dies.
"""

import uuid
from datetime import timedelta

from quickscope.extensions import db
from quickscope.timeutils import as_utc, utcnow


def placeholder_company_name(company_id):
    return f"Company {company_id}"


class QboToken(db.Model):
    __tablename__ = "qbo_tokens"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    company_id = db.Column(
        db.String(64), unique=True, nullable=False, index=True
    )  # provider realmId
    company_name = db.Column(db.String(255), nullable=True)
    access_token = db.Column(db.Text, nullable=False)
    refresh_token = db.Column(db.Text, nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    refresh_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    prospect_id = db.Column(
        db.String(36), nullable=True, index=True
    )  # weak reference, lookup only
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def is_access_expired(self, now=None):
        """True once ``now`` reaches ``expires_at``. No skew tolerance."""
        now = now or utcnow()
        return now >= as_utc(self.expires_at)

    def is_refresh_expired(self, now=None):
        if self.refresh_expires_at is None:
            return False
        now = now or utcnow()
        return now >= as_utc(self.refresh_expires_at)

    def needs_reauth(self, warning_days, now=None):
        """Refresh token already dead or dies within ``warning_days``."""
        if self.refresh_expires_at is None:
            return False
        now = now or utcnow()
        return now + timedelta(days=warning_days) >= as_utc(self.refresh_expires_at)

    @property
    def display_name(self):
        return self.company_name or placeholder_company_name(self.company_id)

    def to_dict(self):
        """Public view — never includes token secrets."""
        return {
            "company_id": self.company_id,
            "company_name": self.display_name,
            "prospect_id": self.prospect_id,
            "expires_at": as_utc(self.expires_at).isoformat(),
            "refresh_expires_at": (
                as_utc(self.refresh_expires_at).isoformat()
                if self.refresh_expires_at else None
            ),
            "created_at": as_utc(self.created_at).isoformat(),
            "updated_at": as_utc(self.updated_at).isoformat(),
        }

    def __repr__(self):
        return f"<QboToken {self.company_id}>"
