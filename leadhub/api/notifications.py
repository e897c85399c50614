from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from leadhub.api.deps import get_db
from leadhub.schemas.common import ListResponse
from leadhub.schemas.notification import LeadNotificationRead
from leadhub.services.lead_notifications import lead_notifications

router = APIRouter(prefix="/notifications")


@router.get("", response_model=ListResponse[LeadNotificationRead], tags=["notifications"])
def list_notifications(
    account_id: UUID,
    unread_only: bool = False,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return lead_notifications.list_response(
        db, account_id, unread_only, order_by, order_dir, limit, offset
    )


@router.post(
    "/{notification_id}/read",
    response_model=LeadNotificationRead,
    tags=["notifications"],
)
def mark_notification_read(notification_id: str, db: Session = Depends(get_db)):
    return lead_notifications.mark_read(db, notification_id)
