"""Stripe payment processor integration.

Talks to the Stripe REST API directly over httpx (form-encoded requests,
bearer secret key). Only the calls the balance pipeline needs are wrapped.

Environment Variables:
    STRIPE_SECRET_KEY: Required for every call
    STRIPE_API_BASE: Override for the API base URL (tests, proxies)
    STRIPE_TIMEOUT_SECONDS: Per-request timeout
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from leadhub.config import settings

logger = logging.getLogger(__name__)


class ChargeStatus(enum.Enum):
    succeeded = "succeeded"
    requires_action = "requires_action"
    failed = "failed"


_REQUIRES_ACTION_STATUSES = {
    "requires_action",
    "requires_payment_method",
    "requires_confirmation",
    "processing",
}


@dataclass(frozen=True)
class ChargeResult:
    status: ChargeStatus
    charge_id: str | None
    raw_status: str | None = None
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == ChargeStatus.succeeded


def _get_secret_key() -> str:
    if not settings.stripe_secret_key:
        raise ValueError("Stripe secret key is not configured")
    return settings.stripe_secret_key


def _flatten_form(data: dict[str, Any], prefix: str = "") -> dict[str, str]:
    """Encode nested dicts the way Stripe expects (``metadata[key]=value``)."""
    form: dict[str, str] = {}
    for key, value in data.items():
        if value is None:
            continue
        field = f"{prefix}[{key}]" if prefix else key
        if isinstance(value, dict):
            form.update(_flatten_form(value, field))
        elif isinstance(value, bool):
            form[field] = "true" if value else "false"
        else:
            form[field] = str(value)
    return form


def _request(method: str, path: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
    secret_key = _get_secret_key()
    url = f"{settings.stripe_api_base.rstrip('/')}/{path.lstrip('/')}"
    resp = httpx.request(
        method,
        url,
        data=_flatten_form(data) if data else None,
        headers={"Authorization": f"Bearer {secret_key}"},
        timeout=settings.stripe_timeout_seconds,
    )
    resp.raise_for_status()
    return resp.json()


def map_intent_status(raw_status: str | None) -> ChargeStatus:
    if raw_status == "succeeded":
        return ChargeStatus.succeeded
    if raw_status in _REQUIRES_ACTION_STATUSES:
        return ChargeStatus.requires_action
    return ChargeStatus.failed


def create_customer(
    *, email: str, name: str | None = None, metadata: dict[str, str] | None = None
) -> str:
    """Create a Stripe customer and return its id.

    Raises:
        httpx.HTTPStatusError: On non-2xx response from Stripe.
        ValueError: If the secret key is not configured.
    """
    data = _request(
        "POST",
        "/customers",
        {"email": email, "name": name, "metadata": metadata or {}},
    )
    return data["id"]


def create_and_confirm_charge(
    *,
    amount_cents: int,
    currency: str,
    payment_method: str,
    customer: str | None = None,
    metadata: dict[str, str] | None = None,
) -> ChargeResult:
    """Create and immediately confirm an off-session PaymentIntent.

    Card declines come back from Stripe as 402 responses; those are reported as
    a failed charge rather than raised.

    Raises:
        httpx.HTTPError: On transport errors, timeouts and non-decline failures.
        ValueError: If the secret key is not configured.
    """
    try:
        data = _request(
            "POST",
            "/payment_intents",
            {
                "amount": amount_cents,
                "currency": currency,
                "payment_method": payment_method,
                "customer": customer,
                "confirm": True,
                "off_session": True,
                "metadata": metadata or {},
            },
        )
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code != 402:
            raise
        error = _error_body(exc.response)
        intent = error.get("payment_intent") or {}
        logger.warning(
            "stripe_charge_declined code=%s message=%s",
            error.get("code"),
            error.get("message"),
        )
        return ChargeResult(
            status=ChargeStatus.failed,
            charge_id=intent.get("id"),
            raw_status=intent.get("status"),
            error_message=error.get("message"),
        )

    raw_status = data.get("status")
    last_error = data.get("last_payment_error") or {}
    return ChargeResult(
        status=map_intent_status(raw_status),
        charge_id=data.get("id"),
        raw_status=raw_status,
        error_message=last_error.get("message"),
    )


def create_payment_intent(
    *,
    amount_cents: int,
    currency: str,
    receipt_email: str | None = None,
    metadata: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Create a client-confirmed PaymentIntent for a manual top-up."""
    return _request(
        "POST",
        "/payment_intents",
        {
            "amount": amount_cents,
            "currency": currency,
            "receipt_email": receipt_email,
            "automatic_payment_methods": {"enabled": True},
            "metadata": metadata or {},
        },
    )


def retrieve_payment_intent(payment_intent_id: str) -> dict[str, Any]:
    return _request("GET", f"/payment_intents/{payment_intent_id}")


def _error_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, dict) else {}
