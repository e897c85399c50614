"""Account notifications for lead and balance events."""

from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from leadhub.models.lead import ImportedLead
from leadhub.models.notification import LeadNotification
from leadhub.services.common import (
    ListResponseMixin,
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    try_uuid,
)

logger = logging.getLogger(__name__)


def notify(
    db: Session,
    account_id,
    notification_type: str,
    title: str,
    message: str,
    data: dict | None = None,
) -> LeadNotification:
    notification = LeadNotification(
        account_id=coerce_uuid(account_id),
        type=notification_type,
        title=title,
        message=message,
        data=data,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def notify_safely(
    db: Session,
    account_id,
    notification_type: str,
    title: str,
    message: str,
    data: dict | None = None,
) -> LeadNotification | None:
    """Best-effort variant of :func:`notify`; failures are logged, never raised."""
    try:
        return notify(db, account_id, notification_type, title, message, data)
    except Exception:
        db.rollback()
        logger.warning(
            "notification_write_failed account_id=%s type=%s",
            account_id,
            notification_type,
            exc_info=True,
        )
        return None


def send_lead_notification(db: Session, lead: ImportedLead) -> LeadNotification | None:
    lead_data = lead.lead_data or {}
    name = " ".join(
        str(part)
        for part in (lead_data.get("first_name"), lead_data.get("last_name"))
        if part
    ) or "unnamed lead"
    platform = lead.source_platform.value
    return notify_safely(
        db,
        lead.account_id,
        "new_lead",
        "New Lead Imported",
        f"New {platform} lead imported: {name}",
        {
            "lead_id": str(lead.id),
            "source": platform,
            "cost": lead.cost_cents,
            "quality_score": lead.quality_score,
        },
    )


def format_cents(amount_cents: int) -> str:
    return f"${amount_cents / 100:.2f}"


class LeadNotifications(ListResponseMixin):
    @staticmethod
    def list(
        db: Session,
        account_id: str,
        unread_only: bool,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(LeadNotification).filter(
            LeadNotification.account_id == coerce_uuid(account_id)
        )
        if unread_only:
            query = query.filter(LeadNotification.is_read.is_(False))
        query = apply_ordering(
            query, order_by, order_dir, {"created_at": LeadNotification.created_at}
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def mark_read(db: Session, notification_id: str) -> LeadNotification:
        notification_uuid = try_uuid(notification_id)
        notification = (
            db.get(LeadNotification, notification_uuid) if notification_uuid else None
        )
        if not notification:
            raise HTTPException(status_code=404, detail="Notification not found")
        notification.is_read = True
        db.commit()
        db.refresh(notification)
        return notification


lead_notifications = LeadNotifications()
