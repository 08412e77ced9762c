"""QuickBooks Online OAuth — token exchange, refresh, revocation.

Two pieces:

- QuickBooksOAuthClient: the HTTP calls against Intuit's OAuth endpoints
  (Basic auth with client credentials, form-encoded bodies, bounded
  timeout, no retries).
- TokenLifecycleManager: every state transition of a stored credential.
  Built once per app in create_app() and shared across requests via
  app.extensions["token_manager"].

Refresh race: two requests that both see an expired access token would
both spend the (single-use) refresh token. ensure_fresh() serialises the
check-refresh-write sequence per company_id with an in-process lock and
re-reads the stored row inside the lock. If the provider still rejects
the refresh, the row is re-read once more: another process may already
have rotated it.
"""

import logging
import threading
import weakref
from contextlib import contextmanager
from datetime import timedelta
from urllib.parse import urlencode

import requests

from quickscope.errors import ExchangeFailed, NotConnected, QuickScopeError, RefreshFailed, RevokeFailed
from quickscope.timeutils import utcnow

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth2/v1/tokens/bearer"
REVOKE_PATH = "/oauth2/v1/tokens/revoke"


# ──────────────────────────────────────────────
# HTTP client
# ──────────────────────────────────────────────

class QuickBooksOAuthClient:

    def __init__(self, client_id, client_secret, redirect_uri,
                 oauth_base_url="https://oauth.platform.intuit.com",
                 authorize_url="https://appcenter.intuit.com/connect/oauth2",
                 scopes="com.intuit.quickbooks.accounting",
                 timeout=20):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.oauth_base_url = oauth_base_url.rstrip("/")
        self.authorize_url = authorize_url
        self.scopes = scopes
        self.timeout = timeout

    @classmethod
    def from_config(cls, config):
        return cls(
            client_id=config.get("QBO_CLIENT_ID"),
            client_secret=config.get("QBO_CLIENT_SECRET"),
            redirect_uri=config.get("QBO_REDIRECT_URI"),
            oauth_base_url=config.get("QBO_OAUTH_BASE_URL", "https://oauth.platform.intuit.com"),
            authorize_url=config.get("QBO_AUTHORIZE_URL", "https://appcenter.intuit.com/connect/oauth2"),
            scopes=config.get("QBO_SCOPES", "com.intuit.quickbooks.accounting"),
            timeout=config.get("QBO_HTTP_TIMEOUT", 20),
        )

    def authorization_url(self, state):
        """Consent page URL the browser is sent to by /oauth/connect."""
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "scope": self.scopes,
            "redirect_uri": self.redirect_uri,
            "state": state,
        }
        return f"{self.authorize_url}?{urlencode(params)}"

    def _post(self, path, data):
        return requests.post(
            f"{self.oauth_base_url}{path}",
            data=data,
            auth=(self.client_id, self.client_secret),
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )

    @staticmethod
    def _token_payload(resp):
        """Parsed token response, or None if it is not a usable token set."""
        try:
            payload = resp.json()
        except ValueError:
            return None
        if not isinstance(payload, dict):
            return None
        if not payload.get("access_token") or not payload.get("expires_in"):
            return None
        return payload

    def exchange_code(self, code):
        """POST grant_type=authorization_code. Raises ExchangeFailed."""
        try:
            resp = self._post(TOKEN_PATH, {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
            })
        except requests.RequestException as e:
            raise ExchangeFailed(f"Token exchange request failed: {e}") from e

        if not resp.ok:
            raise ExchangeFailed(
                "QuickBooks rejected the authorization code.",
                provider_status=resp.status_code,
                provider_body=resp.text,
            )

        payload = self._token_payload(resp)
        if payload is None or not payload.get("refresh_token"):
            raise ExchangeFailed(
                "QuickBooks returned an unusable token response.",
                provider_status=resp.status_code,
                provider_body=resp.text,
            )
        return payload

    def refresh(self, refresh_token, company_id=None):
        """POST grant_type=refresh_token. Raises RefreshFailed."""
        try:
            resp = self._post(TOKEN_PATH, {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            })
        except requests.RequestException as e:
            raise RefreshFailed(
                f"Token refresh request failed: {e}", company_id=company_id
            ) from e

        if not resp.ok:
            raise RefreshFailed(company_id=company_id, provider_status=resp.status_code)

        payload = self._token_payload(resp)
        if payload is None:
            raise RefreshFailed(company_id=company_id, provider_status=resp.status_code)
        return payload

    def revoke(self, token):
        """POST token=<token> to the revoke endpoint. Raises RevokeFailed."""
        try:
            resp = self._post(REVOKE_PATH, {"token": token})
        except requests.RequestException as e:
            raise RevokeFailed(f"Revoke request failed: {e}") from e
        if not resp.ok:
            raise RevokeFailed(
                f"Revoke rejected with status {resp.status_code}",
                details={"provider_status": resp.status_code},
            )


# ──────────────────────────────────────────────
# Per-company locks
# ──────────────────────────────────────────────

class KeyedLock:
    """One threading.Lock per key, created on first use.

    Entries are weak: a key's lock is dropped once nobody holds or waits
    on it, so the map only grows with concurrently active companies.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    def lock_for(self, key):
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key):
        lock = self.lock_for(key)
        with lock:
            yield


# ──────────────────────────────────────────────
# Lifecycle manager
# ──────────────────────────────────────────────

class TokenLifecycleManager:

    def __init__(self, store, oauth, refresh_token_lifetime_days=100, clock=utcnow):
        self.store = store
        self.oauth = oauth
        self.refresh_token_lifetime_days = refresh_token_lifetime_days
        self.clock = clock
        self._locks = KeyedLock()

    def _expiry_from(self, payload, now):
        expires_at = now + timedelta(seconds=int(payload["expires_in"]))
        refresh_lifetime = payload.get("x_refresh_token_expires_in")
        if refresh_lifetime:
            refresh_expires_at = now + timedelta(seconds=int(refresh_lifetime))
        else:
            refresh_expires_at = now + timedelta(days=self.refresh_token_lifetime_days)
        return expires_at, refresh_expires_at

    def authorization_url(self, state):
        return self.oauth.authorization_url(state)

    def exchange(self, code, company_id, company_name=None):
        """Trade an authorization code for tokens and upsert them.

        A second exchange for the same company overwrites the first.
        Raises ExchangeFailed (provider) or StoreWriteFailed (database).
        """
        payload = self.oauth.exchange_code(code)
        now = self.clock()
        expires_at, refresh_expires_at = self._expiry_from(payload, now)

        record = self.store.upsert(
            company_id=company_id,
            access_token=payload["access_token"],
            refresh_token=payload["refresh_token"],
            expires_at=expires_at,
            refresh_expires_at=refresh_expires_at,
            company_name=company_name,
            now=now,
        )
        logger.info(f"Stored QuickBooks tokens for company {company_id}")
        return record

    def ensure_fresh(self, record):
        """Return a record whose access token is usable right now.

        Fast path: not expired -> the same record, no network call.
        Raises RefreshFailed when the provider rejects the refresh; the
        stale row is left in place.
        """
        if not record.is_access_expired(self.clock()):
            return record
        return self._refresh(record.company_id, force=False)

    def force_refresh(self, record):
        """Refresh regardless of access-token expiry (batch rotation)."""
        return self._refresh(record.company_id, force=True)

    def get_fresh(self, company_id):
        """Load and ensure_fresh in one call. Raises NotConnected."""
        record = self.store.get(company_id)
        if record is None:
            raise NotConnected(details={"company_id": company_id})
        return self.ensure_fresh(record)

    def _refresh(self, company_id, force):
        with self._locks.hold(company_id):
            current = self.store.get(company_id, reload=True)
            if current is None:
                raise NotConnected(details={"company_id": company_id})

            now = self.clock()
            if not force and not current.is_access_expired(now):
                # Someone else refreshed while we waited for the lock.
                return current

            if current.is_refresh_expired(now):
                logger.warning(f"Refresh token for company {company_id} has expired")
                raise RefreshFailed(
                    "QuickBooks authorization has expired. Please reconnect your account.",
                    company_id=company_id,
                )

            spent_refresh_token = current.refresh_token
            try:
                payload = self.oauth.refresh(spent_refresh_token, company_id=company_id)
            except RefreshFailed:
                latest = self.store.get(company_id, reload=True)
                if (
                    latest is not None
                    and latest.refresh_token != spent_refresh_token
                    and not latest.is_access_expired(self.clock())
                ):
                    logger.info(
                        f"Refresh for company {company_id} lost a race; using rotated token"
                    )
                    return latest
                logger.warning(f"Token refresh failed for company {company_id}")
                raise

            now = self.clock()
            expires_at, refresh_expires_at = self._expiry_from(payload, now)
            self.store.update(
                current,
                access_token=payload["access_token"],
                refresh_token=payload.get("refresh_token") or spent_refresh_token,
                expires_at=expires_at,
                refresh_expires_at=refresh_expires_at,
                updated_at=now,
            )
            logger.info(f"Refreshed QuickBooks tokens for company {company_id}")
            return current

    def revoke(self, record):
        """Best-effort revocation of both tokens.

        Individual failures are logged and swallowed. Returns
        {"access_token": bool, "refresh_token": bool}.
        """
        outcome = {}
        for kind in ("access_token", "refresh_token"):
            try:
                self.oauth.revoke(getattr(record, kind))
                outcome[kind] = True
            except RevokeFailed as e:
                logger.warning(
                    f"Revoking {kind} for company {record.company_id} failed: {e.message}"
                )
                outcome[kind] = False
        return outcome

    def refresh_stale_tokens(self, older_than_days=70, limit=10):
        """Rotate tokens that have not been touched for ``older_than_days``.

        Keeps refresh tokens from ageing out on accounts nobody has opened
        lately. One failure never stops the batch.
        """
        cutoff = self.clock() - timedelta(days=older_than_days)
        results = []
        for record in self.store.stale(cutoff, limit=limit):
            entry = {"company_id": record.company_id, "company_name": record.display_name}
            try:
                self.force_refresh(record)
                entry["status"] = "refreshed"
            except RefreshFailed as e:
                entry["status"] = "failed"
                entry["error"] = e.message
            except QuickScopeError as e:
                entry["status"] = "error"
                entry["error"] = e.message
            results.append(entry)

        failed = [r for r in results if r["status"] != "refreshed"]
        if failed:
            logger.warning(f"Batch token refresh: {len(failed)} of {len(results)} failed")
        return results

    def accounts_needing_reauth(self, warning_days=14):
        now = self.clock()
        return [r for r in self.store.all() if r.needs_reauth(warning_days, now)]


def build_token_manager(app, session):
    """Construct the per-app manager from config. Called once by create_app()."""
    from quickscope.services.token_store import TokenStore

    return TokenLifecycleManager(
        store=TokenStore(session),
        oauth=QuickBooksOAuthClient.from_config(app.config),
        refresh_token_lifetime_days=app.config.get("QBO_REFRESH_TOKEN_LIFETIME_DAYS", 100),
    )


def get_token_manager():
    from flask import current_app

    return current_app.extensions["token_manager"]
