"""Call transcript model — discovery call text attached to a prospect."""

import uuid

from quickscope.extensions import db
from quickscope.timeutils import as_utc, utcnow


class CallTranscript(db.Model):
    __tablename__ = "call_transcripts"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    prospect_id = db.Column(db.String(36), nullable=False, index=True)
    company_name = db.Column(db.String(255), nullable=True)
    file_name = db.Column(db.String(255), nullable=True)
    transcript_text = db.Column(db.Text, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), default=utcnow, nullable=False
    )

    def to_dict(self, include_text=False):
        data = {
            "id": self.id,
            "prospect_id": self.prospect_id,
            "company_name": self.company_name,
            "file_name": self.file_name,
            "length": len(self.transcript_text or ""),
            "created_at": as_utc(self.created_at).isoformat(),
        }
        if include_text:
            data["transcript_text"] = self.transcript_text
        return data

    def __repr__(self):
        return f"<CallTranscript {self.id} prospect={self.prospect_id}>"
