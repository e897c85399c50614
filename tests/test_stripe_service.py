from unittest.mock import patch

import httpx
import pytest

from leadhub.config import settings
from leadhub.services import stripe as stripe_service
from leadhub.services.stripe import ChargeStatus

STRIPE_SETTINGS = settings.model_copy(
    update={"stripe_secret_key": "sk_test_123", "stripe_api_base": "https://stripe.test/v1"}
)


def _response(status_code: int, body: dict) -> httpx.Response:
    return httpx.Response(
        status_code,
        json=body,
        request=httpx.Request("POST", "https://stripe.test/v1/payment_intents"),
    )


@pytest.fixture()
def stripe_settings():
    with patch.object(stripe_service, "settings", STRIPE_SETTINGS):
        yield


def test_missing_secret_key_raises():
    with patch.object(
        stripe_service, "settings", settings.model_copy(update={"stripe_secret_key": ""})
    ):
        with pytest.raises(ValueError):
            stripe_service.create_customer(email="a@b.com")


@pytest.mark.parametrize(
    ("raw_status", "expected"),
    [
        ("succeeded", ChargeStatus.succeeded),
        ("requires_action", ChargeStatus.requires_action),
        ("requires_payment_method", ChargeStatus.requires_action),
        ("requires_confirmation", ChargeStatus.requires_action),
        ("canceled", ChargeStatus.failed),
        (None, ChargeStatus.failed),
    ],
)
def test_map_intent_status(raw_status, expected):
    assert stripe_service.map_intent_status(raw_status) == expected


def test_create_and_confirm_charge_sends_form_encoded_request(stripe_settings):
    with patch(
        "leadhub.services.stripe.httpx.request",
        return_value=_response(200, {"id": "pi_1", "status": "succeeded"}),
    ) as mock_request:
        result = stripe_service.create_and_confirm_charge(
            amount_cents=5000,
            currency="usd",
            payment_method="pm_1",
            customer="cus_1",
            metadata={"account_id": "acc"},
        )

    assert result.succeeded
    assert result.charge_id == "pi_1"
    method, url = mock_request.call_args.args
    kwargs = mock_request.call_args.kwargs
    assert method == "POST"
    assert url == "https://stripe.test/v1/payment_intents"
    assert kwargs["headers"]["Authorization"] == "Bearer sk_test_123"
    assert kwargs["data"]["confirm"] == "true"
    assert kwargs["data"]["off_session"] == "true"
    assert kwargs["data"]["metadata[account_id]"] == "acc"
    assert kwargs["timeout"] == STRIPE_SETTINGS.stripe_timeout_seconds


def test_card_decline_is_reported_as_failed_charge(stripe_settings):
    body = {
        "error": {
            "code": "card_declined",
            "message": "Your card was declined.",
            "payment_intent": {"id": "pi_declined", "status": "requires_payment_method"},
        }
    }
    with patch("leadhub.services.stripe.httpx.request", return_value=_response(402, body)):
        result = stripe_service.create_and_confirm_charge(
            amount_cents=5000, currency="usd", payment_method="pm_1"
        )

    assert result.status == ChargeStatus.failed
    assert result.charge_id == "pi_declined"
    assert result.error_message == "Your card was declined."


def test_server_error_raises(stripe_settings):
    with patch(
        "leadhub.services.stripe.httpx.request",
        return_value=_response(500, {"error": {"message": "boom"}}),
    ):
        with pytest.raises(httpx.HTTPStatusError):
            stripe_service.create_and_confirm_charge(
                amount_cents=5000, currency="usd", payment_method="pm_1"
            )
