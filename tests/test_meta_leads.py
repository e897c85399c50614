import hashlib
import hmac
from unittest.mock import MagicMock, patch

import httpx

from leadhub.services import meta_leads


def _signature(body: bytes, secret: str) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def test_verify_webhook_signature():
    body = b'{"object": "page"}'

    assert meta_leads.verify_webhook_signature(body, _signature(body, "s3cret"), "s3cret")
    assert not meta_leads.verify_webhook_signature(body, _signature(body, "other"), "s3cret")
    assert not meta_leads.verify_webhook_signature(body, None, "s3cret")
    assert not meta_leads.verify_webhook_signature(body, "md5=abc", "s3cret")


def _mock_client(response=None, error=None):
    client = MagicMock()
    client.__enter__.return_value = client
    if error is not None:
        client.get.side_effect = error
    else:
        client.get.return_value = response
    return client


def test_fetch_facebook_lead_success():
    response = MagicMock(status_code=200)
    response.json.return_value = {"id": "lg-1", "field_data": []}

    with patch("leadhub.services.meta_leads.httpx.Client", return_value=_mock_client(response)):
        lead = meta_leads.fetch_facebook_lead("lg-1", "token")

    assert lead == {"id": "lg-1", "field_data": []}


def test_fetch_facebook_lead_failures_return_none():
    not_found = MagicMock(status_code=404, text="missing")
    with patch("leadhub.services.meta_leads.httpx.Client", return_value=_mock_client(not_found)):
        assert meta_leads.fetch_facebook_lead("lg-1", "token") is None

    timeout = _mock_client(error=httpx.ConnectTimeout("slow"))
    with patch("leadhub.services.meta_leads.httpx.Client", return_value=timeout):
        assert meta_leads.fetch_facebook_lead("lg-1", "token") is None

    assert meta_leads.fetch_facebook_lead("lg-1", None) is None
