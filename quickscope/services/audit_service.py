"""Audit helper — records AuditEvent rows.

Functions flush but do NOT commit — the caller commits.
"""

from flask_login import current_user

from quickscope.extensions import db
from quickscope.models.audit import AuditEvent


def _actor_id():
    """Current user's id inside an authenticated request, else None (system)."""
    try:
        if current_user and current_user.is_authenticated:
            return current_user.id
    except RuntimeError:
        # Outside a request context (CLI commands)
        pass
    return None


def log_audit(action, company_id=None, prospect_id=None, metadata=None):
    event = AuditEvent(
        company_id=company_id,
        prospect_id=prospect_id,
        actor_user_id=_actor_id(),
        action=action,
        metadata_=metadata or {},
    )
    db.session.add(event)
    db.session.flush()
    return event
