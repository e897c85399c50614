from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from leadhub.models.lead_import import LeadPlatform


class LeadImportConfigBase(BaseModel):
    account_id: UUID
    platform: LeadPlatform
    campaign_id: str = Field(min_length=1, max_length=160)
    campaign_name: str | None = Field(default=None, max_length=255)
    api_credentials: dict | None = None
    lead_mapping: dict[str, str] = Field(default_factory=dict)
    cost_per_lead_cents: int = Field(gt=0)
    minimum_balance_cents: int = Field(default=0, ge=0)
    auto_recharge: bool = False
    recharge_amount_cents: int | None = Field(default=None, gt=0)
    quality_score_min: int | None = Field(default=None, ge=0, le=100)
    geo_restrictions: list[str] | None = None
    demographic_filters: dict | None = None
    is_active: bool = True


class LeadImportConfigCreate(LeadImportConfigBase):
    @model_validator(mode="after")
    def _validate_recharge(self) -> "LeadImportConfigCreate":
        if self.auto_recharge and not self.recharge_amount_cents:
            raise ValueError("recharge_amount_cents is required when auto_recharge is enabled")
        return self


class LeadImportConfigUpdate(BaseModel):
    campaign_name: str | None = Field(default=None, max_length=255)
    api_credentials: dict | None = None
    lead_mapping: dict[str, str] | None = None
    cost_per_lead_cents: int | None = Field(default=None, gt=0)
    minimum_balance_cents: int | None = Field(default=None, ge=0)
    auto_recharge: bool | None = None
    recharge_amount_cents: int | None = Field(default=None, gt=0)
    quality_score_min: int | None = Field(default=None, ge=0, le=100)
    geo_restrictions: list[str] | None = None
    demographic_filters: dict | None = None
    is_active: bool | None = None


class LeadImportConfigRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: UUID
    platform: LeadPlatform
    campaign_id: str
    campaign_name: str | None = None
    webhook_url: str | None = None
    lead_mapping: dict[str, str]
    cost_per_lead_cents: int
    minimum_balance_cents: int
    auto_recharge: bool
    recharge_amount_cents: int | None = None
    quality_score_min: int | None = None
    geo_restrictions: list[str] | None = None
    demographic_filters: dict | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class FacebookLeadAdsSetup(BaseModel):
    account_id: UUID
    page_id: str = Field(min_length=1, max_length=120)
    form_id: str = Field(min_length=1, max_length=160)
    access_token: str = Field(min_length=1)
    cost_per_lead_cents: int = Field(gt=0)


class WebhookTokenCreate(BaseModel):
    account_id: UUID
    label: str | None = Field(default=None, max_length=120)


class WebhookTokenRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: UUID
    label: str | None = None
    is_active: bool
    last_used_at: datetime | None = None
    created_at: datetime


class WebhookTokenIssued(WebhookTokenRead):
    token: str
