"""Billing blueprint — /billing/*

    POST /billing/checkout   {price_id, customer_email?, customer_name?}
                             -> {url, session_id} for Stripe hosted checkout
"""

from flask import Blueprint, jsonify, request

from quickscope.errors import ValidationFailed
from quickscope.extensions import limiter
from quickscope.services import stripe_service

billing_bp = Blueprint("billing", __name__, url_prefix="/billing")


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationFailed(details={"body": "Expected a JSON object."})
    return data


@billing_bp.route("/checkout", methods=["POST"])
@limiter.limit("10 per minute")
def checkout():
    data = _json_body()
    result = stripe_service.create_checkout_session(
        price_id=data.get("price_id"),
        customer_email=data.get("customer_email"),
        customer_name=data.get("customer_name"),
    )
    return jsonify(result)
