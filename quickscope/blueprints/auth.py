"""Auth blueprint — /auth/*

JSON login/logout for the internal sales team. Sessions are Flask-Login
cookies; there is no self-registration (admins come from `flask seed-admin`).
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required, login_user, logout_user
from werkzeug.security import check_password_hash

from quickscope.errors import ValidationFailed
from quickscope.extensions import limiter
from quickscope.models.user import User

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationFailed(details={"body": "Expected a JSON object."})
    return data


def _user_payload(user):
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "is_admin": bool(user.is_admin),
    }


# ──────────────────────────────────────────────
# POST /auth/login
# ──────────────────────────────────────────────

@auth_bp.route("/login", methods=["POST"])
@limiter.limit("10 per minute")
def login():
    """Email + password login. Accepts JSON or form bodies."""
    data = _json_body()
    email = (data.get("email") or "").lower().strip()
    password = data.get("password") or ""

    if not email or not password:
        raise ValidationFailed(
            "Email and password are required.",
            details={k: "Required." for k, v in (("email", email), ("password", password)) if not v},
        )

    user = User.query.filter_by(email=email).first()
    if user is None or not check_password_hash(user.password_hash, password):
        return jsonify(error="invalid_credentials", message="Invalid email or password."), 401

    if not user.is_active:
        return jsonify(error="account_disabled", message="Your account has been deactivated."), 403

    login_user(user, remember=bool(data.get("remember")))
    return jsonify(user=_user_payload(user))


# ──────────────────────────────────────────────
# POST /auth/logout
# ──────────────────────────────────────────────

@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify(ok=True)


# ──────────────────────────────────────────────
# GET /auth/me
# ──────────────────────────────────────────────

@auth_bp.route("/me")
@login_required
def me():
    return jsonify(user=_user_payload(current_user))
