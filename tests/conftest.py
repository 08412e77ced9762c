"""Shared test fixtures for the QuickScope test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, fake credentials)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- seed_data: admin user, sales user, a prospect and a connected company
- admin_client: test client logged in as the admin
- provider_response: factory for fake `requests` responses
- fake_analyzer: canned transcript analyzer installed on the app
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from werkzeug.security import generate_password_hash

from quickscope import create_app
from quickscope.extensions import db as _db
from quickscope.models.prospect import Prospect
from quickscope.models.qbo_token import QboToken
from quickscope.models.user import User
from quickscope.timeutils import utcnow

COMPANY_ID = "9130350000000001"


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


def make_token(company_id=COMPANY_ID, expires_in=timedelta(hours=1),
               refresh_expires_in=timedelta(days=90), updated_ago=timedelta(0),
               access_token="access-1", refresh_token="refresh-1",
               company_name="Acme Plumbing LLC", prospect_id=None):
    """Insert a QboToken relative to now and return it (committed)."""
    now = utcnow()
    updated_at = now - updated_ago
    token = QboToken(
        company_id=company_id,
        company_name=company_name,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=now + expires_in,
        refresh_expires_at=now + refresh_expires_in,
        prospect_id=prospect_id,
        created_at=updated_at,
        updated_at=updated_at,
    )
    _db.session.add(token)
    _db.session.commit()
    return token


@pytest.fixture
def seed_data(app, db_session):
    """Seed an admin, a non-admin, a prospect and its connected company.

    Returns plain IDs alongside the objects for easy access in tests.
    """
    admin = User(
        email="admin@quickscope.local",
        password_hash=generate_password_hash("admin123"),
        full_name="Admin User",
        is_admin=True,
    )
    rep = User(
        email="rep@quickscope.local",
        password_hash=generate_password_hash("rep12345"),
        full_name="Sales Rep",
        is_admin=False,
    )
    _db.session.add_all([admin, rep])
    _db.session.flush()

    prospect = Prospect(
        company_name="Acme Plumbing LLC",
        contact_name="Dana Reyes",
        email="dana@acmeplumbing.com",
        industry="construction",
        qb_company_id=COMPANY_ID,
        workflow_stage="needs_transcript",
    )
    _db.session.add(prospect)
    _db.session.commit()

    token = make_token(prospect_id=prospect.id)

    return {
        "admin": admin,
        "admin_id": admin.id,
        "rep": rep,
        "prospect": prospect,
        "prospect_id": prospect.id,
        "token": token,
        "company_id": COMPANY_ID,
    }


@pytest.fixture
def admin_client(client, seed_data):
    resp = client.post(
        "/auth/login",
        json={"email": "admin@quickscope.local", "password": "admin123"},
    )
    assert resp.status_code == 200
    return client


@pytest.fixture
def provider_response():
    """Build a fake `requests.Response`."""

    def _make(status_code=200, json_body=None, text=""):
        resp = MagicMock()
        resp.status_code = status_code
        resp.ok = 200 <= status_code < 300
        resp.text = text or ("" if json_body is None else str(json_body))
        if json_body is None:
            resp.json.side_effect = ValueError("No JSON")
        else:
            resp.json.return_value = json_body
        return resp

    return _make


class FakeAnalyzer:
    """Stands in for the OpenAI-backed analyzer."""

    model = "fake-model"

    def __init__(self, payload=None):
        self.payload = payload if payload is not None else {
            "painPoints": {
                "financial": ["Cash flow is unpredictable month to month"],
                "operational": ["Books are three months behind"],
            },
            "businessObjectives": {"shortTerm": ["Close the books monthly"]},
            "decisionMakers": [
                {"name": "Dana Reyes", "role": "Owner", "influence": "high"},
            ],
            "urgencySignals": {"timeline": "Need this soon, before tax season"},
            "competitiveContext": {"alternatives": ["Local CPA firm"]},
            "salesIntelligence": {
                "buyingSignals": ["Asked about pricing", "Asked about onboarding"],
                "objections": ["Cost"],
                "nextSteps": ["Send proposal"],
                "closeability": 78,
            },
        }
        self.calls = []

    def analyze(self, transcript_text, company_name):
        self.calls.append((transcript_text, company_name))
        return self.payload


@pytest.fixture
def fake_analyzer(app):
    analyzer = FakeAnalyzer()
    app.extensions["transcript_analyzer"] = analyzer
    yield analyzer
    app.extensions.pop("transcript_analyzer", None)


@pytest.fixture
def token_factory(db_session):
    """Factory fixture around make_token()."""
    return make_token
