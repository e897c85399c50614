import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leadhub.db import Base


class LeadPlatform(enum.Enum):
    facebook = "facebook"
    google = "google"
    linkedin = "linkedin"
    twitter = "twitter"
    custom = "custom"


class LeadImportConfig(Base):
    __tablename__ = "lead_import_configs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False, index=True
    )
    platform: Mapped[LeadPlatform] = mapped_column(Enum(LeadPlatform), nullable=False)
    campaign_id: Mapped[str] = mapped_column(String(160), nullable=False, index=True)
    campaign_name: Mapped[str | None] = mapped_column(String(255))
    webhook_url: Mapped[str | None] = mapped_column(String(500))
    api_credentials: Mapped[dict | None] = mapped_column(JSON)
    lead_mapping: Mapped[dict] = mapped_column(JSON, default=dict)

    cost_per_lead_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    minimum_balance_cents: Mapped[int] = mapped_column(Integer, default=0)
    auto_recharge: Mapped[bool] = mapped_column(Boolean, default=False)
    recharge_amount_cents: Mapped[int | None] = mapped_column(Integer)

    quality_score_min: Mapped[int | None] = mapped_column(Integer)
    geo_restrictions: Mapped[list | None] = mapped_column(JSON)
    demographic_filters: Mapped[dict | None] = mapped_column(JSON)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    account = relationship("Account", back_populates="import_configs")
    leads = relationship("ImportedLead", back_populates="config")


class WebhookToken(Base):
    __tablename__ = "webhook_tokens"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False, index=True
    )
    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    label: Mapped[str | None] = mapped_column(String(120))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
