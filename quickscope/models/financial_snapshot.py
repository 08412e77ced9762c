"""Financial snapshot model.

Append-only: every sync inserts a new row. "Latest" is selected by
created_at descending. Columns are the canonical names produced by
financial_service.normalize_snapshot_payload(); naming drift from
older payloads (profit vs net_income, assets vs total_assets) never
reaches this table.
"""

import uuid

from quickscope.extensions import db
from quickscope.timeutils import as_utc, utcnow


class FinancialSnapshot(db.Model):
    __tablename__ = "financial_snapshots"

    # Canonical numeric fields, in payload order.
    NUMERIC_FIELDS = [
        "revenue",
        "expenses",
        "net_income",
        "gross_profit",
        "total_assets",
        "current_assets",
        "total_liabilities",
        "current_liabilities",
        "profit_margin",
        "current_ratio",
        "debt_to_equity",
        "operating_margin",
        "gross_margin",
        "revenue_growth_rate",
    ]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    company_id = db.Column(db.String(64), nullable=False, index=True)
    revenue = db.Column(db.Float, default=0.0, nullable=False)
    expenses = db.Column(db.Float, default=0.0, nullable=False)
    net_income = db.Column(db.Float, default=0.0, nullable=False)
    gross_profit = db.Column(db.Float, default=0.0, nullable=False)
    total_assets = db.Column(db.Float, default=0.0, nullable=False)
    current_assets = db.Column(db.Float, default=0.0, nullable=False)
    total_liabilities = db.Column(db.Float, default=0.0, nullable=False)
    current_liabilities = db.Column(db.Float, default=0.0, nullable=False)
    profit_margin = db.Column(db.Float, default=0.0, nullable=False)  # percent
    current_ratio = db.Column(db.Float, default=0.0, nullable=False)
    debt_to_equity = db.Column(db.Float, default=0.0, nullable=False)
    operating_margin = db.Column(db.Float, default=0.0, nullable=False)  # percent
    gross_margin = db.Column(db.Float, default=0.0, nullable=False)  # percent
    revenue_growth_rate = db.Column(db.Float, default=0.0, nullable=False)  # percent
    source = db.Column(db.String(20), default="quickbooks", nullable=False)  # quickbooks | manual
    created_at = db.Column(
        db.DateTime(timezone=True), default=utcnow, nullable=False
    )

    def to_dict(self):
        data = {"id": self.id, "company_id": self.company_id, "source": self.source}
        for field in self.NUMERIC_FIELDS:
            data[field] = getattr(self, field)
        data["created_at"] = as_utc(self.created_at).isoformat()
        return data

    def __repr__(self):
        return f"<FinancialSnapshot {self.company_id} revenue={self.revenue}>"
