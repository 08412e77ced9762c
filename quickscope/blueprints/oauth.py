"""OAuth blueprint — /oauth/*

Browser-facing QuickBooks connect flow. Never answers with JSON: every
outcome is a redirect to the frontend.

    GET /oauth/connect   -> Intuit consent page (state kept in the session)
    GET /oauth/callback  -> {APP_BASE_URL}/connect/success?company=..&realmId=..
                         -> {APP_BASE_URL}/connect/error?message=<code>

Error message codes: token_exchange_failed, invalid_state,
missing_oauth_params, "database_error: <detail>".
"""

import logging
import secrets
from urllib.parse import urlencode

from flask import Blueprint, current_app, redirect, request, session
from sqlalchemy.exc import SQLAlchemyError

from quickscope.errors import ExchangeFailed, RefreshFailed, StoreWriteFailed, UpstreamFailed
from quickscope.extensions import db, limiter
from quickscope.services.audit_service import log_audit
from quickscope.services.prospect_service import link_connected_company
from quickscope.services.qbo_client import QuickBooksClient
from quickscope.services.qbo_oauth import get_token_manager

logger = logging.getLogger(__name__)

oauth_bp = Blueprint("oauth", __name__, url_prefix="/oauth")

STATE_SESSION_KEY = "qbo_oauth_state"


def _frontend_redirect(path, **params):
    base = current_app.config["APP_BASE_URL"].rstrip("/")
    return redirect(f"{base}{path}?{urlencode(params)}")


def _error_redirect(message):
    return _frontend_redirect("/connect/error", message=message)


# ──────────────────────────────────────────────
# GET /oauth/connect
# ──────────────────────────────────────────────

@oauth_bp.route("/connect")
@limiter.limit("20 per minute")
def connect():
    state = secrets.token_urlsafe(32)
    session[STATE_SESSION_KEY] = state
    return redirect(get_token_manager().authorization_url(state))


# ──────────────────────────────────────────────
# GET /oauth/callback?code=&state=&realmId=
# ──────────────────────────────────────────────

@oauth_bp.route("/callback")
def callback():
    if request.args.get("error"):
        logger.warning(f"OAuth callback returned provider error: {request.args.get('error')}")
        return _error_redirect("token_exchange_failed")

    code = request.args.get("code")
    state = request.args.get("state")
    realm_id = request.args.get("realmId")
    if not code or not state or not realm_id:
        return _error_redirect("missing_oauth_params")

    expected = session.pop(STATE_SESSION_KEY, None)
    if not expected or not secrets.compare_digest(expected, state):
        logger.warning(f"OAuth state mismatch for realm {realm_id}")
        return _error_redirect("invalid_state")

    manager = get_token_manager()
    try:
        record = manager.exchange(code, realm_id)
    except ExchangeFailed as e:
        logger.error(
            f"Token exchange failed for realm {realm_id}: status={e.provider_status}"
        )
        return _error_redirect("token_exchange_failed")
    except StoreWriteFailed as e:
        return _error_redirect(f"database_error: {e.message}")

    company_name = None
    try:
        company_name = QuickBooksClient.for_record(record, current_app.config).get_company_name()
    except (UpstreamFailed, RefreshFailed) as e:
        logger.warning(f"Could not fetch company info for realm {realm_id}: {e.message}")

    try:
        if company_name:
            manager.store.update(record, commit=False, company_name=company_name)
        prospect = link_connected_company(realm_id, company_name)
        log_audit(
            "token.exchanged",
            company_id=realm_id,
            prospect_id=prospect.id,
            metadata={"company_name": record.display_name},
        )
        db.session.commit()
    except (SQLAlchemyError, StoreWriteFailed) as e:
        db.session.rollback()
        logger.error(f"Linking prospect for realm {realm_id} failed: {e}")
        return _error_redirect("database_error: failed to link prospect")

    logger.info(f"QuickBooks company {realm_id} connected ({record.display_name})")
    return _frontend_redirect(
        "/connect/success", company=record.display_name, realmId=realm_id
    )
