"""Stripe service — hosted subscription checkout.

Creates a Stripe Checkout Session for one of the configured price IDs
(STRIPE_PRICE_IDS) with a free trial, and returns the hosted page URL.
No webhooks: subscription state lives in Stripe.
"""

import logging

import bleach
import stripe
from flask import current_app

from quickscope.errors import UpstreamFailed, ValidationFailed

logger = logging.getLogger(__name__)


def create_checkout_session(price_id, customer_email=None, customer_name=None):
    """Create a subscription Checkout Session.

    Returns:
        dict with ``url`` and ``session_id``.

    Raises:
        ValidationFailed: Unknown price_id.
        UpstreamFailed: Stripe API error.
    """
    allowed = current_app.config.get("STRIPE_PRICE_IDS") or []
    if not price_id or price_id not in allowed:
        raise ValidationFailed(details={"price_id": "Unknown or missing price."})

    stripe.api_key = current_app.config["STRIPE_SECRET_KEY"]
    app_base_url = current_app.config["APP_BASE_URL"]

    params = {
        "mode": "subscription",
        "payment_method_types": ["card"],
        "line_items": [{"price": price_id, "quantity": 1}],
        "success_url": f"{app_base_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{app_base_url}/pricing",
        "subscription_data": {
            "trial_period_days": current_app.config.get("STRIPE_TRIAL_DAYS", 14),
        },
        "metadata": {
            "customer_name": bleach.clean(customer_name or "", tags=[], strip=True),
        },
    }
    if customer_email:
        params["customer_email"] = customer_email

    try:
        session = stripe.checkout.Session.create(**params)
    except stripe.error.StripeError as e:
        logger.error(f"Stripe checkout session creation failed: {e}")
        raise UpstreamFailed(
            "Failed to create checkout session.",
            details={"provider": "stripe"},
        ) from e

    logger.info(f"Created Stripe checkout session {session.id} for price {price_id}")
    return {"url": session.url, "session_id": session.id}
