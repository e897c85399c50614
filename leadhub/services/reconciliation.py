"""Sweep for leads left in ``pending`` by an interrupted settlement."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from leadhub.config import settings
from leadhub.models.balance import TransactionType
from leadhub.models.lead import ImportedLead, LeadStatus
from leadhub.services import ledger

logger = logging.getLogger(__name__)

STALE_PENDING_REASON = "stale_pending"


def reconcile_stale_pending_leads(
    db: Session, older_than_minutes: int | None = None
) -> dict[str, int]:
    """Resolve pending leads older than the cutoff.

    A lead whose deduction was recorded, or that cost nothing, is delivered;
    anything else failed.
    """
    minutes = (
        settings.pending_lead_timeout_minutes
        if older_than_minutes is None
        else older_than_minutes
    )
    cutoff = datetime.now(timezone.utc) - timedelta(minutes=minutes)
    leads = db.scalars(
        select(ImportedLead)
        .where(ImportedLead.status == LeadStatus.pending)
        .where(ImportedLead.imported_at < cutoff)
    ).all()

    delivered = 0
    failed = 0
    for lead in leads:
        if not lead.cost_cents or ledger.find_transaction(
            db, str(lead.id), TransactionType.deduction
        ):
            lead.status = LeadStatus.delivered
            delivered += 1
        else:
            lead.status = LeadStatus.failed
            lead.failure_reason = STALE_PENDING_REASON
            failed += 1
        logger.info(
            "pending_lead_reconciled lead_id=%s status=%s", lead.id, lead.status.value
        )
    db.commit()
    return {"scanned": len(leads), "delivered": delivered, "failed": failed}
