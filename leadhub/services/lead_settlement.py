"""Lead settlement pipeline.

``process_lead`` takes one inbound lead for one import configuration and
either delivers it (lead row + balance deduction + notification) or rejects it
with a typed reason. Rejections never write a lead row and never move money,
except for the debit race described below.

The balance check before mapping is advisory. The authoritative check is the
conditional debit after the lead row exists; when that debit loses a race the
lead is marked ``failed`` and the caller receives an ``insufficient_funds``
rejection carrying the failed lead id.
"""

from __future__ import annotations

import enum
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leadhub.metrics import observe_settlement
from leadhub.models.lead import ImportedLead, LeadStatus
from leadhub.models.lead_import import LeadImportConfig, LeadPlatform
from leadhub.services import ledger
from leadhub.services.auto_recharge import attempt_auto_recharge
from leadhub.services.common import coerce_uuid, try_uuid
from leadhub.services.lead_mapping import map_lead_data
from leadhub.services.lead_notifications import send_lead_notification
from leadhub.services.lead_scoring import calculate_quality_score, extract_location

logger = logging.getLogger(__name__)


class SettlementError(enum.Enum):
    config_not_found = "Invalid or inactive import configuration"
    insufficient_funds = "Insufficient balance"
    insufficient_funds_auto_recharge_failed = "Insufficient balance and auto-recharge failed"
    below_quality_threshold = "Lead quality below threshold"
    region_not_allowed = "Lead location not in allowed regions"


@dataclass
class SettlementResult:
    success: bool
    lead_id: uuid.UUID | None = None
    error: str | None = None
    reason: SettlementError | None = None
    duplicate: bool = False
    quality_score: int | None = None

    @classmethod
    def rejected(
        cls,
        reason: SettlementError,
        *,
        lead_id: uuid.UUID | None = None,
        quality_score: int | None = None,
    ) -> "SettlementResult":
        return cls(
            success=False,
            error=reason.value,
            reason=reason,
            lead_id=lead_id,
            quality_score=quality_score,
        )

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.lead_id:
            payload["lead_id"] = str(self.lead_id)
        if self.error:
            payload["error"] = self.error
        if self.duplicate:
            payload["duplicate"] = True
        return payload


class SettlementInconsistent(Exception):
    """A lead row was written but settlement could not be completed."""

    def __init__(self, lead_id, message: str):
        super().__init__(f"{message} (lead_id={lead_id})")
        self.lead_id = lead_id


def resolve_config_for_campaign(
    db: Session,
    platform: LeadPlatform,
    campaign_id: str,
    account_id=None,
) -> LeadImportConfig | None:
    """Newest active config for a (platform, campaign) key, optionally per account."""
    stmt = (
        select(LeadImportConfig)
        .where(LeadImportConfig.platform == platform)
        .where(LeadImportConfig.campaign_id == str(campaign_id))
        .where(LeadImportConfig.is_active.is_(True))
    )
    if account_id is not None:
        account_uuid = try_uuid(account_id)
        if account_uuid is None:
            return None
        stmt = stmt.where(LeadImportConfig.account_id == account_uuid)
    stmt = stmt.order_by(LeadImportConfig.created_at.desc())
    return db.scalars(stmt).first()


def _resolve_config(db: Session, config_identifier) -> LeadImportConfig | None:
    if isinstance(config_identifier, LeadImportConfig):
        return config_identifier if config_identifier.is_active else None
    config_uuid = try_uuid(config_identifier)
    if config_uuid is None:
        return None
    config = db.get(LeadImportConfig, config_uuid)
    if not config or not config.is_active:
        return None
    return config


def find_existing_lead(
    db: Session, account_id, platform: LeadPlatform, source_lead_id: str
) -> ImportedLead | None:
    return db.scalars(
        select(ImportedLead)
        .where(ImportedLead.account_id == coerce_uuid(account_id))
        .where(ImportedLead.source_platform == platform)
        .where(ImportedLead.source_lead_id == source_lead_id)
    ).first()


def _mark_failed(db: Session, lead_id, reason: str) -> None:
    try:
        db.rollback()
        lead = db.get(ImportedLead, lead_id)
        if lead and lead.status == LeadStatus.pending:
            lead.status = LeadStatus.failed
            lead.failure_reason = reason
            db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "lead_settlement_mark_failed_error lead_id=%s reason=%s", lead_id, reason
        )


def _reject(
    platform: str,
    started: float,
    reason: SettlementError,
    *,
    config_id=None,
    source_lead_id: str | None = None,
    lead_id=None,
    quality_score: int | None = None,
) -> SettlementResult:
    logger.info(
        "lead_settlement_rejected config_id=%s source_lead_id=%s reason=%s",
        config_id,
        source_lead_id,
        reason.name,
    )
    observe_settlement(platform, reason.name, time.monotonic() - started)
    return SettlementResult.rejected(
        reason, lead_id=lead_id, quality_score=quality_score
    )


def process_lead(
    db: Session,
    config_identifier,
    raw_payload: dict[str, Any] | None,
    source_lead_id: str,
    *,
    is_test: bool = False,
) -> SettlementResult:
    """Settle one inbound lead against its import configuration.

    Args:
        db: Database session
        config_identifier: LeadImportConfig row, or its id
        raw_payload: Platform lead payload (generic key-value view)
        source_lead_id: Platform-provided lead id, used for de-duplication
        is_test: Flag the persisted lead as a test lead

    Returns:
        SettlementResult; business rejections are returned, not raised.

    Raises:
        SettlementInconsistent: the lead row exists but debit/finalize failed
            unexpectedly.
    """
    started = time.monotonic()
    source_lead_id = str(source_lead_id)

    config = _resolve_config(db, config_identifier)
    if not config:
        return _reject(
            "unknown",
            started,
            SettlementError.config_not_found,
            config_id=getattr(config_identifier, "id", config_identifier),
            source_lead_id=source_lead_id,
        )
    platform = config.platform.value
    account_id = config.account_id
    cost_cents = config.cost_per_lead_cents

    existing = find_existing_lead(db, account_id, config.platform, source_lead_id)
    if existing:
        logger.info(
            "lead_settlement_duplicate config_id=%s source_lead_id=%s lead_id=%s",
            config.id,
            source_lead_id,
            existing.id,
        )
        observe_settlement(platform, "duplicate", time.monotonic() - started)
        return SettlementResult(
            success=True,
            lead_id=existing.id,
            duplicate=True,
            quality_score=existing.quality_score,
        )

    balance = ledger.get_balance(db, account_id)
    if balance.balance_cents < cost_cents:
        if config.auto_recharge and config.recharge_amount_cents:
            if not attempt_auto_recharge(db, account_id, config.recharge_amount_cents):
                return _reject(
                    platform,
                    started,
                    SettlementError.insufficient_funds_auto_recharge_failed,
                    config_id=config.id,
                    source_lead_id=source_lead_id,
                )
        else:
            return _reject(
                platform,
                started,
                SettlementError.insufficient_funds,
                config_id=config.id,
                source_lead_id=source_lead_id,
            )

    lead_data = map_lead_data(raw_payload, config.lead_mapping)
    quality_score = calculate_quality_score(lead_data)

    if config.quality_score_min and quality_score < config.quality_score_min:
        return _reject(
            platform,
            started,
            SettlementError.below_quality_threshold,
            config_id=config.id,
            source_lead_id=source_lead_id,
            quality_score=quality_score,
        )

    if config.geo_restrictions:
        location = extract_location(lead_data)
        if location and location not in config.geo_restrictions:
            return _reject(
                platform,
                started,
                SettlementError.region_not_allowed,
                config_id=config.id,
                source_lead_id=source_lead_id,
                quality_score=quality_score,
            )

    lead = ImportedLead(
        account_id=account_id,
        config_id=config.id,
        campaign_id=config.campaign_id,
        source_platform=config.platform,
        source_lead_id=source_lead_id,
        lead_data=lead_data,
        quality_score=quality_score,
        cost_cents=cost_cents,
        status=LeadStatus.pending,
        is_test=is_test,
    )
    db.add(lead)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = find_existing_lead(db, account_id, config.platform, source_lead_id)
        if not existing:
            raise
        logger.info(
            "lead_settlement_duplicate_race config_id=%s source_lead_id=%s lead_id=%s",
            config.id,
            source_lead_id,
            existing.id,
        )
        observe_settlement(platform, "duplicate", time.monotonic() - started)
        return SettlementResult(
            success=True,
            lead_id=existing.id,
            duplicate=True,
            quality_score=existing.quality_score,
        )
    lead_id = lead.id

    if cost_cents > 0:
        try:
            outcome = ledger.debit(db, account_id, cost_cents, lead_id)
        except Exception as exc:
            logger.exception("lead_settlement_debit_error lead_id=%s", lead_id)
            _mark_failed(db, lead_id, "settlement_error")
            observe_settlement(platform, "inconsistent", time.monotonic() - started)
            raise SettlementInconsistent(lead_id, "Balance debit failed") from exc
        if outcome == ledger.DebitResult.insufficient_funds:
            _mark_failed(db, lead_id, "insufficient_funds")
            return _reject(
                platform,
                started,
                SettlementError.insufficient_funds,
                config_id=config.id,
                source_lead_id=source_lead_id,
                lead_id=lead_id,
                quality_score=quality_score,
            )

    try:
        lead = db.get(ImportedLead, lead_id)
        lead.status = LeadStatus.delivered
        db.commit()
    except Exception as exc:
        # Money has moved; reconciliation flips the lead once it sees the deduction.
        db.rollback()
        logger.exception("lead_settlement_finalize_error lead_id=%s", lead_id)
        observe_settlement(platform, "inconsistent", time.monotonic() - started)
        raise SettlementInconsistent(lead_id, "Lead finalize failed") from exc

    send_lead_notification(db, lead)

    logger.info(
        "lead_settlement_delivered config_id=%s lead_id=%s quality_score=%s cost_cents=%s",
        config.id,
        lead_id,
        quality_score,
        cost_cents,
    )
    observe_settlement(platform, "delivered", time.monotonic() - started)
    return SettlementResult(success=True, lead_id=lead_id, quality_score=quality_score)
