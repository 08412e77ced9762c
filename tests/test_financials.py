"""Tests for financial data: report parsing, normalisation, snapshots, scoring routes.

Covers:
- extract_financial_metrics on nested QuickBooks report rows
- normalize_snapshot_payload naming drift
- derive_ratios
- GET /api/companies/<cid>/snapshot (cache, forced sync, reconnect on refresh failure)
- POST /api/companies/<cid>/snapshots (manual)
- GET /api/companies/<cid>/health-score
"""

from datetime import timedelta
from unittest.mock import patch

import pytest

from quickscope.extensions import db
from quickscope.models.financial_snapshot import FinancialSnapshot
from quickscope.models.prospect import Prospect
from quickscope.services.financial_service import derive_ratios, normalize_snapshot_payload
from quickscope.services.qbo_client import extract_financial_metrics
from quickscope.timeutils import utcnow


def _summary(label, value):
    return {"Summary": {"ColData": [{"value": label}, {"value": value}]}}


PL_REPORT = {
    "Header": {"ReportName": "ProfitAndLoss"},
    "Rows": {"Row": [
        {
            "Header": {"ColData": [{"value": "Income"}, {"value": ""}]},
            "Rows": {"Row": [{"ColData": [{"value": "Services"}, {"value": "500000.00"}]}]},
            **_summary("Total Income", "500000.00"),
            "type": "Section",
        },
        {**_summary("Gross Profit", "500000.00"), "type": "Section"},
        {
            "Header": {"ColData": [{"value": "Expenses"}, {"value": ""}]},
            **_summary("Total Expenses", "450000.00"),
            "type": "Section",
        },
        {**_summary("Net Operating Income", "50000.00"), "type": "Section"},
        {**_summary("Net Income", "50000.00"), "type": "Section"},
    ]},
}

BS_REPORT = {
    "Rows": {"Row": [
        {
            "Header": {"ColData": [{"value": "ASSETS"}]},
            "Rows": {"Row": [
                {
                    "Header": {"ColData": [{"value": "Current Assets"}]},
                    **_summary("Total Current Assets", "200000.00"),
                },
            ]},
            **_summary("TOTAL ASSETS", "300000.00"),
        },
        {
            "Header": {"ColData": [{"value": "LIABILITIES AND EQUITY"}]},
            "Rows": {"Row": [
                {
                    "Header": {"ColData": [{"value": "Liabilities"}]},
                    "Rows": {"Row": [
                        {
                            "Header": {"ColData": [{"value": "Current Liabilities"}]},
                            **_summary("Total Current Liabilities", "100000.00"),
                        },
                    ]},
                    **_summary("Total Liabilities", "150000.00"),
                },
                {
                    "Header": {"ColData": [{"value": "Equity"}]},
                    **_summary("Total Equity", "150000.00"),
                },
            ]},
            **_summary("TOTAL LIABILITIES AND EQUITY", "300000.00"),
        },
    ]},
}


class TestExtractFinancialMetrics:

    def test_profit_and_loss(self):
        metrics = extract_financial_metrics(PL_REPORT, BS_REPORT)
        assert metrics["revenue"] == 500000
        assert metrics["expenses"] == 450000
        assert metrics["net_income"] == 50000
        assert metrics["gross_profit"] == 500000

    def test_balance_sheet_ignores_liabilities_and_equity_total(self):
        metrics = extract_financial_metrics(PL_REPORT, BS_REPORT)
        assert metrics["total_assets"] == 300000
        assert metrics["current_assets"] == 200000
        assert metrics["total_liabilities"] == 150000
        assert metrics["current_liabilities"] == 100000

    def test_negative_net_income_keeps_sign(self):
        report = {"Rows": {"Row": [
            _summary("Total Income", "100.00"),
            _summary("Total Expenses", "150.00"),
            _summary("Net Income", "-50.00"),
        ]}}
        assert extract_financial_metrics(report, {})["net_income"] == -50

    def test_net_income_falls_back_to_revenue_minus_expenses(self):
        report = {"Rows": {"Row": [
            _summary("Total Income", "1,000.00"),
            _summary("Total Expenses", "400.00"),
        ]}}
        metrics = extract_financial_metrics(report, {})
        assert metrics["revenue"] == 1000
        assert metrics["net_income"] == 600

    def test_empty_reports(self):
        metrics = extract_financial_metrics({}, None)
        assert all(value == 0 for value in metrics.values())


class TestNormalizeSnapshotPayload:
    """Naming drift is mapped onto one canonical column set."""

    def test_profit_alias(self):
        assert normalize_snapshot_payload({"profit": 10})["net_income"] == 10

    def test_scalar_assets_and_liabilities(self):
        out = normalize_snapshot_payload({"assets": 500, "liabilities": 200})
        assert out["total_assets"] == 500
        assert out["total_liabilities"] == 200

    def test_nested_blocks(self):
        out = normalize_snapshot_payload({
            "assets": {"total_assets": 900, "current_assets": 400},
            "liabilities": {"total_liabilities": 300, "current_liabilities": 100},
            "ratios": {"current_ratio": 4, "operating_margin": 12},
            "trends": {"revenue_growth_rate": 7.5},
        })
        assert out["total_assets"] == 900
        assert out["current_assets"] == 400
        assert out["current_liabilities"] == 100
        assert out["current_ratio"] == 4
        assert out["operating_margin"] == 12
        assert out["revenue_growth_rate"] == 7.5

    def test_canonical_name_wins_over_alias(self):
        assert normalize_snapshot_payload({"net_income": 5, "profit": 9})["net_income"] == 5

    def test_missing_fields_are_none(self):
        out = normalize_snapshot_payload({})
        assert out["revenue"] is None
        assert out["current_ratio"] is None


class TestDeriveRatios:

    def test_ratios_from_raw_figures(self):
        out = derive_ratios({
            "revenue": 500000, "expenses": 450000, "net_income": 50000,
            "gross_profit": 200000, "total_assets": 300000, "current_assets": 200000,
            "total_liabilities": 150000, "current_liabilities": 100000,
        })
        assert out["profit_margin"] == 10
        assert out["operating_margin"] == 10
        assert out["gross_margin"] == 40
        assert out["current_ratio"] == 2
        assert out["debt_to_equity"] == 1
        assert out["revenue_growth_rate"] == 0

    def test_zero_revenue_and_negative_equity(self):
        out = derive_ratios({"total_assets": 100, "total_liabilities": 300})
        assert out["profit_margin"] == 0
        assert out["debt_to_equity"] == 0

    def test_growth_against_previous(self):
        previous = FinancialSnapshot(revenue=400000)
        out = derive_ratios({"revenue": 500000, "expenses": 0}, previous=previous)
        assert out["revenue_growth_rate"] == 25

    def test_explicit_values_kept(self):
        out = derive_ratios({"revenue": 100, "expenses": 50, "profit_margin": 33})
        assert out["profit_margin"] == 33


class TestSnapshotRoutes:

    def test_returns_fresh_cached_snapshot_without_network(self, admin_client, seed_data):
        snap = FinancialSnapshot(company_id=seed_data["company_id"], revenue=123, created_at=utcnow())
        db.session.add(snap)
        db.session.commit()

        with patch("quickscope.services.qbo_client.requests.get") as mock_get:
            resp = admin_client.get(f"/api/companies/{seed_data['company_id']}/snapshot")

        assert resp.status_code == 200
        assert resp.get_json()["snapshot"]["revenue"] == 123
        assert resp.get_json()["fetched"] is False
        mock_get.assert_not_called()

    def test_stale_snapshot_triggers_sync(self, admin_client, seed_data, provider_response):
        old = FinancialSnapshot(
            company_id=seed_data["company_id"], revenue=400000,
            created_at=utcnow() - timedelta(hours=30),
        )
        db.session.add(old)
        db.session.commit()

        with patch("quickscope.services.qbo_client.requests.get") as mock_get:
            mock_get.side_effect = [
                provider_response(200, PL_REPORT),
                provider_response(200, BS_REPORT),
            ]
            resp = admin_client.get(f"/api/companies/{seed_data['company_id']}/snapshot")

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["fetched"] is True
        assert data["snapshot"]["revenue"] == 500000
        assert data["snapshot"]["revenue_growth_rate"] == 25
        assert data["snapshot"]["source"] == "quickbooks"
        assert FinancialSnapshot.query.filter_by(company_id=seed_data["company_id"]).count() == 2

        # Bearer token, report query parameters
        first_call = mock_get.call_args_list[0]
        assert first_call.kwargs["headers"]["Authorization"] == "Bearer access-1"
        assert first_call.kwargs["params"]["date_macro"] == "This Fiscal Year-to-date"
        assert mock_get.call_args_list[1].kwargs["params"]["date_macro"] == "Today"
        assert first_call.kwargs["timeout"]

    def test_refresh_param_forces_sync(self, admin_client, seed_data, provider_response):
        db.session.add(FinancialSnapshot(company_id=seed_data["company_id"], created_at=utcnow()))
        db.session.commit()

        with patch("quickscope.services.qbo_client.requests.get") as mock_get:
            mock_get.side_effect = [
                provider_response(200, PL_REPORT),
                provider_response(200, BS_REPORT),
            ]
            resp = admin_client.get(f"/api/companies/{seed_data['company_id']}/snapshot?refresh=1")

        assert resp.get_json()["fetched"] is True
        assert mock_get.call_count == 2

    def test_expired_token_with_failed_refresh_asks_to_reconnect(
        self, admin_client, seed_data, provider_response
    ):
        token = seed_data["token"]
        token.expires_at = utcnow() - timedelta(minutes=5)
        db.session.commit()

        with patch("quickscope.services.qbo_oauth.requests.post") as mock_post, \
                patch("quickscope.services.qbo_client.requests.get") as mock_get:
            mock_post.return_value = provider_response(400, {"error": "invalid_grant"})
            resp = admin_client.get(f"/api/companies/{seed_data['company_id']}/snapshot")

        assert resp.status_code == 401
        body = resp.get_json()
        assert body["error"] == "refresh_failed"
        assert "reconnect" in body["message"].lower()
        mock_get.assert_not_called()

    def test_unknown_company_not_connected(self, admin_client):
        resp = admin_client.get("/api/companies/nope/snapshot")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "not_connected"

    def test_provider_error_is_upstream_failed(self, admin_client, seed_data, provider_response):
        with patch("quickscope.services.qbo_client.requests.get") as mock_get:
            mock_get.return_value = provider_response(500, {"Fault": {}})
            resp = admin_client.get(f"/api/companies/{seed_data['company_id']}/snapshot")
        assert resp.status_code == 502
        assert resp.get_json()["error"] == "upstream_failed"

    def test_manual_snapshot_normalises_and_recomputes(self, admin_client, seed_data):
        resp = admin_client.post(
            f"/api/companies/{seed_data['company_id']}/snapshots",
            json={"revenue": 1000, "expenses": 800, "profit": 200,
                  "assets": 500, "liabilities": 250},
        )
        assert resp.status_code == 201
        snap = resp.get_json()["snapshot"]
        assert snap["net_income"] == 200
        assert snap["total_assets"] == 500
        assert snap["profit_margin"] == 20
        assert snap["current_ratio"] == 2
        assert snap["debt_to_equity"] == 1
        assert snap["source"] == "manual"

        prospect = db.session.get(Prospect, seed_data["prospect_id"])
        assert prospect.workflow_stage == "needs_transcript"

    def test_manual_snapshot_rejects_non_object(self, admin_client, seed_data):
        resp = admin_client.post(
            f"/api/companies/{seed_data['company_id']}/snapshots", json=[1, 2, 3]
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "validation_failed"


class TestHealthScoreRoute:

    def test_scores_latest_snapshot(self, admin_client, seed_data):
        db.session.add(FinancialSnapshot(
            company_id=seed_data["company_id"],
            profit_margin=10, current_ratio=2, debt_to_equity=0.5,
            operating_margin=8, revenue_growth_rate=5, created_at=utcnow(),
        ))
        db.session.commit()

        resp = admin_client.get(
            f"/api/companies/{seed_data['company_id']}/health-score?industry=construction"
        )
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["overall_score"] == 70
        assert data["component_scores"]["liquidity"] == 100
        assert data["benchmark"]["industry"] == "construction"

    def test_no_snapshot(self, admin_client, seed_data):
        resp = admin_client.get(f"/api/companies/{seed_data['company_id']}/health-score")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "not_found"

    def test_requires_admin(self, client, seed_data):
        resp = client.get(f"/api/companies/{seed_data['company_id']}/health-score")
        assert resp.status_code == 401
