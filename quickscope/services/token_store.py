"""Token store — durable mapping from company_id to the latest OAuth credentials.

Thin repository over the qbo_tokens table. The session is passed in at
construction time (normally Flask-SQLAlchemy's scoped ``db.session``)
rather than reached for globally.

Semantics:
- upsert: insert or overwrite by company_id. Last writer wins.
- get: the stored record or None.
- delete: remove the record. Revocation is the caller's concern.

Write failures surface as StoreWriteFailed after rolling back the session.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from quickscope.errors import StoreWriteFailed
from quickscope.models.qbo_token import QboToken, placeholder_company_name

logger = logging.getLogger(__name__)


class TokenStore:

    def __init__(self, session):
        self.session = session

    def get(self, company_id, reload=False):
        """Return the TokenRecord for ``company_id`` or None.

        ``reload`` bypasses the identity map so values written by another
        request (a concurrent refresher) are visible.
        """
        query = self.session.query(QboToken)
        if reload:
            query = query.populate_existing()
        return query.filter_by(company_id=company_id).first()

    def all(self):
        return self.session.query(QboToken).order_by(QboToken.updated_at.desc()).all()

    def stale(self, older_than, limit=10):
        """Records not updated since ``older_than``, oldest first."""
        return (
            self.session.query(QboToken)
            .filter(QboToken.updated_at < older_than)
            .order_by(QboToken.updated_at.asc())
            .limit(limit)
            .all()
        )

    def upsert(self, company_id, access_token, refresh_token, expires_at,
               refresh_expires_at=None, company_name=None, now=None):
        """Insert or overwrite the record for ``company_id``.

        ``now`` becomes updated_at (and created_at on insert) so that
        expires_at - updated_at is exactly the provider lifetime.
        """
        record = self.get(company_id)
        try:
            if record is None:
                record = QboToken(
                    company_id=company_id,
                    company_name=company_name or placeholder_company_name(company_id),
                    created_at=now,
                )
                self.session.add(record)
            elif company_name:
                record.company_name = company_name

            record.access_token = access_token
            record.refresh_token = refresh_token
            record.expires_at = expires_at
            record.refresh_expires_at = refresh_expires_at
            record.updated_at = now
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Token upsert failed for company {company_id}: {e}")
            raise StoreWriteFailed(
                "Failed to save QuickBooks credentials.",
                details={"company_id": company_id, "reason": str(e)},
            ) from e
        return record

    def update(self, record, commit=True, **fields):
        """Set ``fields`` on an existing record."""
        try:
            for name, value in fields.items():
                setattr(record, name, value)
            if commit:
                self.session.commit()
            else:
                self.session.flush()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Token update failed for company {record.company_id}: {e}")
            raise StoreWriteFailed(
                "Failed to save QuickBooks credentials.",
                details={"company_id": record.company_id, "reason": str(e)},
            ) from e
        return record

    def delete(self, company_id, commit=True):
        """Remove the record for ``company_id``. Returns True if a row was removed."""
        record = self.get(company_id)
        if record is None:
            return False
        try:
            self.session.delete(record)
            if commit:
                self.session.commit()
            else:
                self.session.flush()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Token delete failed for company {company_id}: {e}")
            raise StoreWriteFailed(
                "Failed to remove QuickBooks credentials.",
                details={"company_id": company_id, "reason": str(e)},
            ) from e
        return True
