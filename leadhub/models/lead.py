import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leadhub.db import Base
from leadhub.models.lead_import import LeadPlatform


class LeadStatus(enum.Enum):
    pending = "pending"
    delivered = "delivered"
    failed = "failed"
    refunded = "refunded"


class ImportedLead(Base):
    __tablename__ = "imported_leads"
    __table_args__ = (
        UniqueConstraint(
            "account_id",
            "source_platform",
            "source_lead_id",
            name="uq_imported_leads_account_platform_source",
        ),
        Index("ix_imported_leads_status_imported_at", "status", "imported_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False, index=True
    )
    config_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("lead_import_configs.id")
    )
    campaign_id: Mapped[str] = mapped_column(String(160), nullable=False)
    source_platform: Mapped[LeadPlatform] = mapped_column(Enum(LeadPlatform), nullable=False)
    source_lead_id: Mapped[str] = mapped_column(String(160), nullable=False)
    lead_data: Mapped[dict] = mapped_column(JSON, default=dict)
    quality_score: Mapped[int] = mapped_column(Integer, default=0)
    cost_cents: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[LeadStatus] = mapped_column(Enum(LeadStatus), default=LeadStatus.pending)
    failure_reason: Mapped[str | None] = mapped_column(String(80))
    is_test: Mapped[bool] = mapped_column(Boolean, default=False)

    imported_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    config = relationship("LeadImportConfig", back_populates="leads")
