"""Inbound lead webhook payload shapes.

Known platform shapes are validated strictly; the custom integration path
accepts any JSON object and is only ever read through the field mapper.
"""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class MetaLeadgenValue(BaseModel):
    model_config = ConfigDict(extra="allow")

    form_id: str | None = None
    leadgen_id: str | None = None
    page_id: str | None = None
    ad_id: str | None = None
    created_time: int | None = None


class MetaLeadgenChange(BaseModel):
    field: str
    value: dict[str, Any] = Field(default_factory=dict)


class MetaLeadgenEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | None = None
    time: int | None = None
    changes: list[MetaLeadgenChange] = Field(default_factory=list)


class MetaLeadgenWebhook(BaseModel):
    object: str | None = None
    entry: list[MetaLeadgenEntry] = Field(min_length=1)


class GoogleLeadColumn(BaseModel):
    model_config = ConfigDict(extra="allow")

    column_id: str | None = None
    column_name: str | None = None
    string_value: str | None = None


class GoogleLeadFormWebhook(BaseModel):
    model_config = ConfigDict(extra="allow")

    lead_id: str = Field(min_length=1)
    form_id: str | int
    google_key: str | None = None
    campaign_id: str | int | None = None
    api_version: str | None = None
    is_test: bool = False
    user_column_data: list[GoogleLeadColumn] = Field(default_factory=list)


class LeadEventResult(BaseModel):
    source_lead_id: str | None = None
    success: bool
    lead_id: UUID | None = None
    error: str | None = None
    duplicate: bool = False


class LeadWebhookResponse(BaseModel):
    success: bool = True
    results: list[LeadEventResult] = Field(default_factory=list)


class DiagnosticWebhookRequest(BaseModel):
    test_type: str
    account_id: UUID | None = None
    lead_data: dict[str, Any] | None = None
