import os
import logging

import click
from flask import Flask, jsonify
from werkzeug.security import generate_password_hash

from quickscope.config import config_by_name
from quickscope.errors import QuickScopeError
from quickscope.extensions import db, migrate, login_manager, limiter


def create_app(config_name=None):
    """Application factory."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])

    # --- Validate required env vars (skip in testing) ---
    if config_name != "testing":
        try:
            config_by_name[config_name].validate()
        except RuntimeError as e:
            app.logger.warning(f"Config validation: {e}")

    # --- Init extensions ---
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    limiter.init_app(app)

    # --- Import models so Alembic can discover them ---
    with app.app_context():
        from quickscope import models  # noqa: F401

    # --- Token lifecycle manager (one per app, shared across requests) ---
    from quickscope.services.qbo_oauth import build_token_manager
    app.extensions["token_manager"] = build_token_manager(app, db.session)

    # --- Register blueprints ---
    from quickscope.blueprints.auth import auth_bp
    from quickscope.blueprints.oauth import oauth_bp
    from quickscope.blueprints.api import api_bp
    from quickscope.blueprints.admin import admin_bp
    from quickscope.blueprints.billing import billing_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(oauth_bp)
    app.register_blueprint(api_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(billing_bp)

    # --- Health check ---
    @app.route("/healthz")
    def healthz():
        return jsonify(status="ok")

    # --- Error handlers ---
    @app.errorhandler(QuickScopeError)
    def handle_quickscope_error(e):
        db.session.rollback()
        if e.status_code >= 500:
            app.logger.error(f"{e.code.value}: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def not_found(e):
        return jsonify(error="not_found", message="Not found."), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify(error="method_not_allowed", message="Method not allowed."), 405

    @app.errorhandler(429)
    def rate_limited(e):
        return jsonify(error="rate_limited", message="Too many requests. Please slow down."), 429

    @app.errorhandler(500)
    def server_error(e):
        db.session.rollback()
        app.logger.error(f"Unhandled error: {e}", exc_info=True)
        return jsonify(error="internal_error", message="Something went wrong."), 500

    # --- CLI commands ---
    register_cli(app)

    # --- Security headers ---
    @app.after_request
    def add_security_headers(response):
        """Add security headers to every response."""
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Control referrer information
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # API only: nothing may be embedded or executed
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none';"
        )
        # Strict Transport Security (only in production)
        if not app.debug:
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response

    # --- Logging ---
    if not app.debug:
        logging.basicConfig(level=logging.INFO)

    return app


def register_cli(app):
    """Register custom CLI commands with the Flask app."""

    @app.cli.command("seed-admin")
    @click.option("--email", default="admin@quickscope.local", help="Admin email")
    @click.option("--password", default="admin123", help="Admin password")
    def seed_admin(email, password):
        """Create (or promote) an admin user.

        Usage:
            flask seed-admin
            flask seed-admin --email admin@example.com --password s3cret
        """
        from quickscope.models.user import User

        email = email.lower().strip()
        existing = User.query.filter_by(email=email).first()
        if existing:
            existing.is_admin = True
            db.session.commit()
            click.echo(f"Admin user already exists: {email}")
            return

        admin = User(
            email=email,
            password_hash=generate_password_hash(password),
            full_name="Admin",
            is_admin=True,
        )
        db.session.add(admin)
        db.session.commit()
        click.echo(f"Created admin user: {email}")

    @app.cli.command("refresh-tokens")
    @click.option("--limit", default=10, show_default=True, help="Max tokens to refresh")
    def refresh_tokens(limit):
        """Rotate QuickBooks tokens not refreshed for QBO_STALE_TOKEN_DAYS.

        Run from cron so refresh tokens never age out on idle accounts.
        """
        from quickscope.services.audit_service import log_audit
        from quickscope.services.qbo_oauth import get_token_manager

        results = get_token_manager().refresh_stale_tokens(
            older_than_days=app.config["QBO_STALE_TOKEN_DAYS"], limit=limit
        )
        if not results:
            click.echo("No stale tokens.")
            return

        for r in results:
            line = f"  {r['company_id']:<20} {r['status']}"
            if r.get("error"):
                line += f"  ({r['error']})"
            click.echo(line)

        refreshed = sum(1 for r in results if r["status"] == "refreshed")
        log_audit(
            "tokens.batch_refreshed",
            metadata={"processed": len(results), "refreshed": refreshed,
                      "failed": len(results) - refreshed},
        )
        db.session.commit()
        click.echo(f"Refreshed {refreshed} of {len(results)} token(s).")

    @app.cli.command("reauth-report")
    def reauth_report():
        """List accounts whose refresh token expires within QBO_REAUTH_WARNING_DAYS."""
        from quickscope.services.qbo_oauth import get_token_manager

        records = get_token_manager().accounts_needing_reauth(
            app.config["QBO_REAUTH_WARNING_DAYS"]
        )
        if not records:
            click.echo("All connected accounts are within their refresh window.")
            return

        click.echo(f"{len(records)} account(s) need re-authorization:")
        for record in records:
            expires = record.to_dict()["refresh_expires_at"]
            click.echo(f"  {record.company_id:<20} {record.display_name:<40} {expires}")
