"""Lead import configuration and webhook credential management."""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timezone

import httpx
from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from leadhub.config import settings
from leadhub.models.account import Account
from leadhub.models.lead_import import LeadImportConfig, LeadPlatform, WebhookToken
from leadhub.schemas.lead_import import (
    FacebookLeadAdsSetup,
    LeadImportConfigCreate,
    LeadImportConfigUpdate,
    WebhookTokenCreate,
)
from leadhub.services import meta_leads
from leadhub.services.common import (
    ListResponseMixin,
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_or_404,
    try_uuid,
    validate_enum,
)

logger = logging.getLogger(__name__)

DEFAULT_FACEBOOK_MAPPING = {
    "first_name": "first_name",
    "last_name": "last_name",
    "email": "email",
    "phone": "phone_number",
    "city": "city",
    "state": "state",
    "zip_code": "zip_code",
}
DEFAULT_FACEBOOK_QUALITY_MIN = 50
FACEBOOK_MINIMUM_BALANCE_MULTIPLIER = 10


def build_webhook_url(config: LeadImportConfig) -> str:
    base = f"{settings.app_url.rstrip('/')}/api/webhooks/leads/{config.platform.value}"
    if config.platform == LeadPlatform.custom:
        return f"{base}/{config.account_id}/{config.id}"
    return f"{base}/{config.account_id}"


def _require_account(db: Session, account_id) -> Account:
    return get_or_404(db, Account, account_id, "Account not found")


class LeadImportConfigs(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: LeadImportConfigCreate) -> LeadImportConfig:
        _require_account(db, payload.account_id)
        config = LeadImportConfig(**payload.model_dump())
        db.add(config)
        db.flush()
        config.webhook_url = build_webhook_url(config)
        db.commit()
        db.refresh(config)
        logger.info(
            "lead_import_config_created config_id=%s account_id=%s platform=%s",
            config.id,
            config.account_id,
            config.platform.value,
        )
        return config

    @staticmethod
    def get(db: Session, config_id: str) -> LeadImportConfig:
        return get_or_404(db, LeadImportConfig, config_id, "Import configuration not found")

    @staticmethod
    def list(
        db: Session,
        account_id: str | None,
        platform: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(LeadImportConfig)
        if account_id:
            query = query.filter(LeadImportConfig.account_id == coerce_uuid(account_id))
        if platform:
            query = query.filter(
                LeadImportConfig.platform == validate_enum(platform, LeadPlatform, "platform")
            )
        if is_active is None:
            query = query.filter(LeadImportConfig.is_active.is_(True))
        else:
            query = query.filter(LeadImportConfig.is_active == is_active)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": LeadImportConfig.created_at,
                "campaign_name": LeadImportConfig.campaign_name,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, config_id: str, payload: LeadImportConfigUpdate) -> LeadImportConfig:
        config = LeadImportConfigs.get(db, config_id)
        data = payload.model_dump(exclude_unset=True)
        for key, value in data.items():
            setattr(config, key, value)
        if config.auto_recharge and not config.recharge_amount_cents:
            db.rollback()
            raise HTTPException(
                status_code=400,
                detail="recharge_amount_cents is required when auto_recharge is enabled",
            )
        db.commit()
        db.refresh(config)
        return config

    @staticmethod
    def delete(db: Session, config_id: str) -> None:
        config = LeadImportConfigs.get(db, config_id)
        config.is_active = False
        db.commit()
        logger.info("lead_import_config_deactivated config_id=%s", config.id)


lead_import_configs = LeadImportConfigs()


def setup_facebook_lead_ads(db: Session, payload: FacebookLeadAdsSetup) -> LeadImportConfig:
    """Create a Facebook Lead Ads import for a page/form and subscribe the page.

    Raises:
        HTTPException: 404 for unknown accounts, 400 when the page token is
            rejected by the Graph API, 502 when the Graph API is unreachable.
    """
    _require_account(db, payload.account_id)
    try:
        page = meta_leads.verify_page_access(payload.page_id, payload.access_token)
    except httpx.HTTPStatusError as exc:
        logger.warning(
            "facebook_setup_page_rejected page_id=%s status=%s",
            payload.page_id,
            exc.response.status_code,
        )
        raise HTTPException(status_code=400, detail="Invalid Facebook page access token") from exc
    except httpx.HTTPError as exc:
        logger.error("facebook_setup_graph_unreachable page_id=%s error=%s", payload.page_id, exc)
        raise HTTPException(status_code=502, detail="Facebook Graph API unavailable") from exc

    page_name = page.get("name") if isinstance(page, dict) else None
    config = lead_import_configs.create(
        db,
        LeadImportConfigCreate(
            account_id=payload.account_id,
            platform=LeadPlatform.facebook,
            campaign_id=payload.form_id,
            campaign_name=f"Facebook Lead Ads - {page_name or payload.page_id}",
            api_credentials={
                "access_token": payload.access_token,
                "page_id": payload.page_id,
                "app_id": settings.facebook_app_id,
            },
            lead_mapping=dict(DEFAULT_FACEBOOK_MAPPING),
            cost_per_lead_cents=payload.cost_per_lead_cents,
            minimum_balance_cents=payload.cost_per_lead_cents
            * FACEBOOK_MINIMUM_BALANCE_MULTIPLIER,
            quality_score_min=DEFAULT_FACEBOOK_QUALITY_MIN,
        ),
    )

    try:
        subscribed = meta_leads.subscribe_page_to_leadgen(payload.page_id, payload.access_token)
    except httpx.HTTPError as exc:
        subscribed = False
        logger.warning(
            "facebook_setup_subscribe_failed page_id=%s config_id=%s error=%s",
            payload.page_id,
            config.id,
            exc,
        )
    if not subscribed:
        logger.warning(
            "facebook_setup_not_subscribed page_id=%s config_id=%s",
            payload.page_id,
            config.id,
        )
    return config


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def issue_webhook_token(db: Session, payload: WebhookTokenCreate) -> tuple[WebhookToken, str]:
    """Create a bearer token for the custom webhook; the plaintext is returned once."""
    _require_account(db, payload.account_id)
    token = secrets.token_urlsafe(32)
    record = WebhookToken(
        account_id=payload.account_id,
        token_hash=_hash_token(token),
        label=payload.label,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info("webhook_token_issued token_id=%s account_id=%s", record.id, record.account_id)
    return record, token


def list_webhook_tokens(db: Session, account_id: str) -> list[WebhookToken]:
    return db.scalars(
        select(WebhookToken)
        .where(WebhookToken.account_id == coerce_uuid(account_id))
        .order_by(WebhookToken.created_at.desc())
    ).all()


def revoke_webhook_token(db: Session, token_id: str) -> None:
    record = get_or_404(db, WebhookToken, token_id, "Webhook token not found")
    record.is_active = False
    db.commit()
    logger.info("webhook_token_revoked token_id=%s", record.id)


def verify_webhook_token(db: Session, token: str | None, account_id) -> bool:
    if not token:
        return False
    account_uuid = try_uuid(account_id)
    if account_uuid is None:
        return False
    token_hash = _hash_token(token)
    candidates = db.scalars(
        select(WebhookToken)
        .where(WebhookToken.account_id == account_uuid)
        .where(WebhookToken.is_active.is_(True))
    ).all()
    for candidate in candidates:
        if hmac.compare_digest(candidate.token_hash, token_hash):
            candidate.last_used_at = datetime.now(timezone.utc)
            db.commit()
            return True
    return False
