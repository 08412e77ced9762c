"""Tests for discovery transcripts, AI analysis and audit decks.

Covers:
- Transcript upload (JSON and file) moves the stage to needs_analysis
- Empty / oversized transcript rejection
- Analysis with a canned analyzer moves the stage to ready_for_report
- Audit deck generation and its readiness gate
- Stage regression when dependent records disappear
"""

import io
from unittest.mock import MagicMock

import pytest
from openai import OpenAIError

from quickscope.errors import UpstreamFailed
from quickscope.extensions import db
from quickscope.models.ai_analysis import AIAnalysis
from quickscope.models.call_transcript import CallTranscript
from quickscope.models.financial_snapshot import FinancialSnapshot
from quickscope.models.generated_report import GeneratedReport
from quickscope.models.prospect import Prospect
from quickscope.services import transcript_service
from quickscope.services.llm_client import TranscriptAnalyzer
from quickscope.services.prospect_service import recompute_and_persist_stage
from quickscope.timeutils import utcnow

from conftest import FakeAnalyzer

TRANSCRIPT = (
    "Dana: Our books are three months behind and cash flow is unpredictable.\n"
    "Rep: What would a good outcome look like?\n"
    "Dana: Monthly close and a forecast before tax season. How much does it cost?"
)


def _prospect(seed_data):
    return db.session.get(Prospect, seed_data["prospect_id"])


def _add_snapshot(company_id):
    db.session.add(FinancialSnapshot(
        company_id=company_id, revenue=500000, expenses=450000, net_income=50000,
        profit_margin=10, current_ratio=2, debt_to_equity=0.5, operating_margin=8,
        revenue_growth_rate=5, created_at=utcnow(),
    ))
    db.session.commit()


class TestTranscriptUpload:
    """POST /api/prospects/<id>/transcripts"""

    def test_json_upload_advances_stage(self, admin_client, seed_data):
        resp = admin_client.post(
            f"/api/prospects/{seed_data['prospect_id']}/transcripts",
            json={"transcript_text": TRANSCRIPT, "file_name": "discovery.txt"},
        )

        assert resp.status_code == 201
        data = resp.get_json()
        assert data["workflow_stage"] == "needs_analysis"
        assert data["transcript"]["file_name"] == "discovery.txt"
        assert data["transcript"]["length"] == len(TRANSCRIPT)
        assert CallTranscript.query.count() == 1

    def test_file_upload(self, admin_client, seed_data):
        resp = admin_client.post(
            f"/api/prospects/{seed_data['prospect_id']}/transcripts",
            data={"file": (io.BytesIO(TRANSCRIPT.encode()), "call.txt")},
            content_type="multipart/form-data",
        )

        assert resp.status_code == 201
        assert resp.get_json()["transcript"]["file_name"] == "call.txt"

    def test_empty_transcript(self, admin_client, seed_data):
        resp = admin_client.post(
            f"/api/prospects/{seed_data['prospect_id']}/transcripts",
            json={"transcript_text": "   "},
        )
        assert resp.status_code == 400
        assert "transcript_text" in resp.get_json()["details"]
        assert _prospect(seed_data).workflow_stage == "needs_transcript"

    def test_oversized_transcript(self, admin_client, seed_data):
        resp = admin_client.post(
            f"/api/prospects/{seed_data['prospect_id']}/transcripts",
            json={"transcript_text": "a" * (transcript_service.MAX_TRANSCRIPT_CHARS + 1)},
        )
        assert resp.status_code == 400

    def test_unknown_prospect(self, admin_client):
        resp = admin_client.post("/api/prospects/nope/transcripts", json={"transcript_text": "hi"})
        assert resp.status_code == 404


class TestAnalysis:
    """POST /api/prospects/<id>/analysis"""

    def test_requires_transcript(self, admin_client, seed_data, fake_analyzer):
        resp = admin_client.post(f"/api/prospects/{seed_data['prospect_id']}/analysis")

        assert resp.status_code == 400
        assert resp.get_json()["error"] == "validation_failed"
        assert fake_analyzer.calls == []

    def test_analysis_advances_stage(self, admin_client, seed_data, fake_analyzer):
        transcript_service.add_transcript(_prospect(seed_data), TRANSCRIPT)
        _add_snapshot(seed_data["company_id"])

        resp = admin_client.post(f"/api/prospects/{seed_data['prospect_id']}/analysis")

        assert resp.status_code == 201
        data = resp.get_json()
        assert data["workflow_stage"] == "ready_for_report"
        analysis = data["analysis"]
        assert analysis["closeability_score"] == 78
        assert analysis["financial_health_score"] == 70
        assert analysis["model"] == "fake-model"
        assert analysis["insights"]["scores"]["readiness"] == "evaluating"
        assert analysis["insights"]["scores"]["urgency"] == "medium"
        assert analysis["insights"]["painPoints"]["strategic"] == []
        assert fake_analyzer.calls == [(TRANSCRIPT, "Acme Plumbing LLC")]

    def test_named_transcript(self, admin_client, seed_data, fake_analyzer):
        first = transcript_service.add_transcript(_prospect(seed_data), "First call notes")
        transcript_service.add_transcript(_prospect(seed_data), "Second call notes")
        db.session.commit()

        resp = admin_client.post(
            f"/api/prospects/{seed_data['prospect_id']}/analysis",
            json={"transcript_id": first.id},
        )

        assert resp.get_json()["analysis"]["transcript_id"] == first.id
        assert fake_analyzer.calls[0][0] == "First call notes"

    def test_unknown_transcript(self, admin_client, seed_data, fake_analyzer):
        transcript_service.add_transcript(_prospect(seed_data), TRANSCRIPT)
        resp = admin_client.post(
            f"/api/prospects/{seed_data['prospect_id']}/analysis",
            json={"transcript_id": "missing"},
        )
        assert resp.status_code == 404

    def test_heuristic_closeability_when_missing(self, seed_data):
        prospect = _prospect(seed_data)
        transcript_service.add_transcript(prospect, TRANSCRIPT)

        analysis = transcript_service.analyze_prospect(
            prospect, analyzer=FakeAnalyzer(payload={"salesIntelligence": {}})
        )

        assert analysis.closeability_score == 50
        assert analysis.financial_health_score is None


class TestTranscriptAnalyzer:

    def _analyzer(self, content=None, error=None):
        analyzer = TranscriptAnalyzer(api_key="sk-test", model="gpt-test")
        analyzer.client = MagicMock()
        if error is not None:
            analyzer.client.chat.completions.create.side_effect = error
        else:
            message = MagicMock()
            message.content = content
            analyzer.client.chat.completions.create.return_value = MagicMock(
                choices=[MagicMock(message=message)]
            )
        return analyzer

    def test_json_mode_request(self):
        analyzer = self._analyzer('{"painPoints": {"financial": ["cash"]}}')

        result = analyzer.analyze("transcript", "Acme")

        assert result == {"painPoints": {"financial": ["cash"]}}
        kwargs = analyzer.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "Acme" in kwargs["messages"][1]["content"]

    def test_non_json_output_is_empty(self):
        assert self._analyzer("Sorry, I cannot help").analyze("t", "Acme") == {}

    def test_provider_error(self):
        analyzer = self._analyzer(error=OpenAIError("rate limited"))
        with pytest.raises(UpstreamFailed):
            analyzer.analyze("t", "Acme")

    def test_missing_key(self):
        with pytest.raises(RuntimeError):
            TranscriptAnalyzer(api_key=None)


class TestAuditDeck:
    """POST /api/prospects/<id>/reports"""

    def test_rejected_until_ready(self, admin_client, seed_data):
        resp = admin_client.post(f"/api/prospects/{seed_data['prospect_id']}/reports")

        assert resp.status_code == 400
        assert resp.get_json()["details"]["workflow_stage"] == "needs_transcript"
        assert GeneratedReport.query.count() == 0

    def test_generates_deck(self, admin_client, seed_data):
        prospect = _prospect(seed_data)
        transcript_service.add_transcript(prospect, TRANSCRIPT)
        _add_snapshot(seed_data["company_id"])
        transcript_service.analyze_prospect(prospect, analyzer=FakeAnalyzer())
        db.session.commit()

        resp = admin_client.post(
            f"/api/prospects/{seed_data['prospect_id']}/reports",
            json={"pricing": {"monthly_retainer": 2500, "cleanup_cost": 4000}},
        )

        assert resp.status_code == 201
        content = resp.get_json()["report"]["content"]
        assert content["closeability_score"] == 78
        assert content["financial_health"]["available"] is True
        assert content["financial_health"]["overall_score"] == 70
        assert content["financial_health"]["benchmark"]["industry"] == "construction"
        assert content["pain_points"]["categories"]["financial"] == [
            "Cash flow is unpredictable month to month"
        ]
        assert content["next_steps"]["steps"][0] == "Send proposal"
        assert content["next_steps"]["proposal"]["monthly_retainer"] == 2500
        assert content["roi"]["annual_investment"] == 30000
        assert content["roi"]["projected_savings"]["year_1"] == 12500
        assert GeneratedReport.query.count() == 1

    def test_bad_retainer(self, admin_client, seed_data):
        prospect = _prospect(seed_data)
        transcript_service.add_transcript(prospect, TRANSCRIPT)
        transcript_service.analyze_prospect(prospect, analyzer=FakeAnalyzer())
        db.session.commit()

        resp = admin_client.post(
            f"/api/prospects/{seed_data['prospect_id']}/reports",
            json={"pricing": {"monthly_retainer": "a lot"}},
        )
        assert resp.status_code == 400
        assert "monthly_retainer" in resp.get_json()["details"]

    def test_pricing_must_be_an_object(self, admin_client, seed_data):
        prospect = _prospect(seed_data)
        transcript_service.add_transcript(prospect, TRANSCRIPT)
        transcript_service.analyze_prospect(prospect, analyzer=FakeAnalyzer())
        db.session.commit()

        resp = admin_client.post(
            f"/api/prospects/{seed_data['prospect_id']}/reports",
            json={"pricing": "premium"},
        )

        assert resp.status_code == 400
        assert resp.get_json()["details"] == {"pricing": "Must be a JSON object."}
        assert GeneratedReport.query.count() == 0

    def test_list_body_rejected(self, admin_client, seed_data):
        resp = admin_client.post(
            f"/api/prospects/{seed_data['prospect_id']}/reports", json=["pricing"]
        )

        assert resp.status_code == 400
        assert resp.get_json()["details"] == {"body": "Expected a JSON object."}

    def test_analysis_list_body_rejected(self, admin_client, seed_data, fake_analyzer):
        resp = admin_client.post(
            f"/api/prospects/{seed_data['prospect_id']}/analysis", json=[1, 2]
        )

        assert resp.status_code == 400
        assert resp.get_json()["details"] == {"body": "Expected a JSON object."}
        assert fake_analyzer.calls == []


class TestStageRegression:

    def test_deleting_dependencies_regresses_stage(self, seed_data):
        prospect = _prospect(seed_data)
        transcript_service.add_transcript(prospect, TRANSCRIPT)
        transcript_service.analyze_prospect(prospect, analyzer=FakeAnalyzer())
        assert prospect.workflow_stage == "ready_for_report"

        AIAnalysis.query.delete()
        stage, _ = recompute_and_persist_stage(prospect)
        assert stage.value == "needs_analysis"

        CallTranscript.query.delete()
        stage, _ = recompute_and_persist_stage(prospect)
        assert stage.value == "needs_transcript"
