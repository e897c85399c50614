from unittest.mock import patch

import httpx
import pytest
from fastapi import HTTPException

from leadhub.config import settings
from leadhub.models.lead_import import LeadPlatform
from leadhub.schemas.lead_import import (
    FacebookLeadAdsSetup,
    LeadImportConfigCreate,
    LeadImportConfigUpdate,
    WebhookTokenCreate,
)
from leadhub.services import import_configs as import_configs_service
from leadhub.services.import_configs import (
    DEFAULT_FACEBOOK_MAPPING,
    lead_import_configs,
)

VERIFY_PAGE = "leadhub.services.import_configs.meta_leads.verify_page_access"
SUBSCRIBE_PAGE = "leadhub.services.import_configs.meta_leads.subscribe_page_to_leadgen"


def _create_payload(account, **overrides):
    values = {
        "account_id": account.id,
        "platform": LeadPlatform.google,
        "campaign_id": "form-9",
        "cost_per_lead_cents": 700,
    }
    values.update(overrides)
    return LeadImportConfigCreate(**values)


def test_create_generates_webhook_url(db_session, account):
    config = lead_import_configs.create(db_session, _create_payload(account))

    base = settings.app_url.rstrip("/")
    assert config.webhook_url == f"{base}/api/webhooks/leads/google/{account.id}"


def test_custom_webhook_url_includes_config(db_session, account):
    config = lead_import_configs.create(
        db_session, _create_payload(account, platform=LeadPlatform.custom)
    )
    assert config.webhook_url.endswith(f"/custom/{account.id}/{config.id}")


def test_auto_recharge_requires_amount():
    with pytest.raises(ValueError):
        LeadImportConfigCreate(
            account_id="00000000-0000-0000-0000-000000000001",
            platform=LeadPlatform.custom,
            campaign_id="c",
            cost_per_lead_cents=100,
            auto_recharge=True,
        )


def test_update_rejects_auto_recharge_without_amount(db_session, account):
    config = lead_import_configs.create(db_session, _create_payload(account))

    with pytest.raises(HTTPException) as excinfo:
        lead_import_configs.update(
            db_session, str(config.id), LeadImportConfigUpdate(auto_recharge=True)
        )
    assert excinfo.value.status_code == 400


def test_delete_deactivates(db_session, account):
    config = lead_import_configs.create(db_session, _create_payload(account))

    lead_import_configs.delete(db_session, str(config.id))

    assert lead_import_configs.get(db_session, str(config.id)).is_active is False
    assert lead_import_configs.list(
        db_session, str(account.id), None, None, "created_at", "desc", 50, 0
    ) == []


def test_setup_facebook_lead_ads(db_session, account):
    payload = FacebookLeadAdsSetup(
        account_id=account.id,
        page_id="page-1",
        form_id="form-1",
        access_token="page-token",
        cost_per_lead_cents=250,
    )
    with patch(VERIFY_PAGE, return_value={"id": "page-1", "name": "Acme"}), patch(
        SUBSCRIBE_PAGE, return_value=True
    ) as mock_subscribe:
        config = import_configs_service.setup_facebook_lead_ads(db_session, payload)

    mock_subscribe.assert_called_once_with("page-1", "page-token")
    assert config.platform == LeadPlatform.facebook
    assert config.campaign_id == "form-1"
    assert config.campaign_name == "Facebook Lead Ads - Acme"
    assert config.lead_mapping == DEFAULT_FACEBOOK_MAPPING
    assert config.quality_score_min == 50
    assert config.minimum_balance_cents == 2500
    assert config.api_credentials["access_token"] == "page-token"


def test_setup_facebook_rejected_token(db_session, account):
    request = httpx.Request("GET", "https://graph.test/page-1")
    error = httpx.HTTPStatusError(
        "bad token", request=request, response=httpx.Response(400, request=request)
    )
    payload = FacebookLeadAdsSetup(
        account_id=account.id,
        page_id="page-1",
        form_id="form-1",
        access_token="bad",
        cost_per_lead_cents=250,
    )
    with patch(VERIFY_PAGE, side_effect=error):
        with pytest.raises(HTTPException) as excinfo:
            import_configs_service.setup_facebook_lead_ads(db_session, payload)
    assert excinfo.value.status_code == 400


def test_webhook_tokens(db_session, make_account):
    owner = make_account()
    other = make_account()
    record, token = import_configs_service.issue_webhook_token(
        db_session, WebhookTokenCreate(account_id=owner.id, label="zapier")
    )

    assert record.token_hash != token
    assert import_configs_service.verify_webhook_token(db_session, token, owner.id) is True
    assert record.last_used_at is not None
    assert import_configs_service.verify_webhook_token(db_session, token, other.id) is False
    assert import_configs_service.verify_webhook_token(db_session, "wrong", owner.id) is False

    import_configs_service.revoke_webhook_token(db_session, str(record.id))
    assert import_configs_service.verify_webhook_token(db_session, token, owner.id) is False
