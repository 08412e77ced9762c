"""Tests for the billing blueprint.

Covers:
- Checkout session creation (Stripe mocked)
- Unknown price_id rejection
- Stripe API errors
"""

from unittest.mock import MagicMock, patch

import stripe


class TestCheckout:
    """Tests for POST /billing/checkout."""

    @patch("quickscope.services.stripe_service.stripe")
    def test_creates_session(self, mock_stripe, client):
        mock_stripe.checkout.Session.create.return_value = MagicMock(
            id="cs_test_123", url="https://checkout.stripe.com/c/pay/cs_test_123"
        )

        resp = client.post("/billing/checkout", json={
            "price_id": "price_monthly_test",
            "customer_email": "lee@brightbakery.com",
            "customer_name": "<b>Lee</b> Park",
        })

        assert resp.status_code == 200
        assert resp.get_json() == {
            "url": "https://checkout.stripe.com/c/pay/cs_test_123",
            "session_id": "cs_test_123",
        }
        kwargs = mock_stripe.checkout.Session.create.call_args.kwargs
        assert kwargs["mode"] == "subscription"
        assert kwargs["line_items"] == [{"price": "price_monthly_test", "quantity": 1}]
        assert kwargs["customer_email"] == "lee@brightbakery.com"
        assert kwargs["metadata"] == {"customer_name": "Lee Park"}
        assert kwargs["subscription_data"] == {"trial_period_days": 14}
        assert kwargs["success_url"] == (
            "http://localhost:3005/success?session_id={CHECKOUT_SESSION_ID}"
        )
        assert kwargs["cancel_url"] == "http://localhost:3005/pricing"
        assert mock_stripe.api_key == "sk_test_fake"

    @patch("quickscope.services.stripe_service.stripe")
    def test_without_email(self, mock_stripe, client):
        mock_stripe.checkout.Session.create.return_value = MagicMock(id="cs_1", url="u")

        client.post("/billing/checkout", json={"price_id": "price_annual_test"})

        assert "customer_email" not in mock_stripe.checkout.Session.create.call_args.kwargs

    @patch("quickscope.services.stripe_service.stripe")
    def test_invalid_price(self, mock_stripe, client):
        resp = client.post("/billing/checkout", json={"price_id": "price_fake"})

        assert resp.status_code == 400
        assert resp.get_json()["details"]["price_id"]
        mock_stripe.checkout.Session.create.assert_not_called()

    @patch("quickscope.services.stripe_service.stripe")
    def test_stripe_error(self, mock_stripe, client):
        mock_stripe.error.StripeError = stripe.error.StripeError
        mock_stripe.checkout.Session.create.side_effect = stripe.error.StripeError("card declined")

        resp = client.post("/billing/checkout", json={"price_id": "price_monthly_test"})

        assert resp.status_code == 502
        assert resp.get_json()["error"] == "upstream_failed"

    @patch("quickscope.services.stripe_service.stripe")
    def test_list_body_rejected(self, mock_stripe, client):
        resp = client.post("/billing/checkout", json=["price_monthly_test"])

        assert resp.status_code == 400
        assert resp.get_json()["details"] == {"body": "Expected a JSON object."}
        mock_stripe.checkout.Session.create.assert_not_called()
