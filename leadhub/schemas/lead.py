from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from leadhub.models.lead import LeadStatus
from leadhub.models.lead_import import LeadPlatform


class ImportedLeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: UUID
    config_id: UUID | None = None
    campaign_id: str
    source_platform: LeadPlatform
    source_lead_id: str
    lead_data: dict
    quality_score: int
    cost_cents: int
    status: LeadStatus
    failure_reason: str | None = None
    is_test: bool
    imported_at: datetime


class LeadProcessRequest(BaseModel):
    config_id: UUID
    lead_data: dict
    source_lead_id: str = Field(min_length=1, max_length=160)


class LeadProcessResponse(BaseModel):
    success: bool
    lead_id: UUID | None = None
    error: str | None = None
    duplicate: bool = False
