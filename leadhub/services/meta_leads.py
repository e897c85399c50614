"""Meta Graph API calls for Facebook Lead Ads."""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any

import httpx

from leadhub.config import settings

logger = logging.getLogger(__name__)

LEAD_FIELDS = "id,created_time,ad_id,form_id,field_data"


def _graph_url(path: str) -> str:
    return f"{settings.meta_graph_base_url.rstrip('/')}/{path.lstrip('/')}"


def verify_webhook_signature(
    payload_body: bytes,
    signature_header: str | None,
    app_secret: str,
) -> bool:
    """Verify Meta webhook signature (X-Hub-Signature-256).

    Args:
        payload_body: Raw request body bytes
        signature_header: Value of X-Hub-Signature-256 header
        app_secret: Facebook App Secret

    Returns:
        True if signature is valid, False otherwise
    """
    if not signature_header or not signature_header.startswith("sha256="):
        logger.warning("facebook_webhook_signature_missing_or_invalid")
        return False

    expected_signature = signature_header[len("sha256="):]
    computed_signature = hmac.new(
        app_secret.encode(),
        payload_body,
        hashlib.sha256,
    ).hexdigest()

    is_valid = hmac.compare_digest(expected_signature, computed_signature)
    if not is_valid:
        logger.warning("facebook_webhook_signature_mismatch")
    return is_valid


def fetch_facebook_lead(leadgen_id: str, access_token: str | None) -> dict[str, Any] | None:
    """Fetch the full lead record for a leadgen notification.

    Any transport error, non-2xx answer or unreadable body yields None.
    """
    if not access_token:
        logger.warning("facebook_lead_fetch_no_token leadgen_id=%s", leadgen_id)
        return None
    try:
        with httpx.Client(timeout=settings.meta_graph_timeout_seconds) as client:
            response = client.get(
                _graph_url(leadgen_id),
                params={"fields": LEAD_FIELDS, "access_token": access_token},
            )
        if response.status_code >= 400:
            logger.warning(
                "facebook_lead_fetch_failed leadgen_id=%s status=%s body=%s",
                leadgen_id,
                response.status_code,
                response.text,
            )
            return None
        data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("facebook_lead_fetch_error leadgen_id=%s error=%s", leadgen_id, exc)
        return None
    if not isinstance(data, dict):
        logger.warning("facebook_lead_fetch_unexpected_body leadgen_id=%s", leadgen_id)
        return None
    return data


def verify_page_access(page_id: str, access_token: str) -> dict[str, Any]:
    """Confirm the token can read the page; returns the page's id and name.

    Raises:
        httpx.HTTPStatusError: On non-2xx response from the Graph API.
    """
    with httpx.Client(timeout=settings.meta_graph_timeout_seconds) as client:
        response = client.get(
            _graph_url(page_id),
            params={"fields": "id,name", "access_token": access_token},
        )
    response.raise_for_status()
    return response.json()


def subscribe_page_to_leadgen(page_id: str, access_token: str) -> bool:
    """Subscribe the app to the page's ``leadgen`` webhook field."""
    with httpx.Client(timeout=settings.meta_graph_timeout_seconds) as client:
        response = client.post(
            _graph_url(f"{page_id}/subscribed_apps"),
            params={"subscribed_fields": "leadgen", "access_token": access_token},
        )
    response.raise_for_status()
    data = response.json()
    return bool(data.get("success")) if isinstance(data, dict) else False
