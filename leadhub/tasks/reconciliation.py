import logging

from leadhub.celery_app import celery_app
from leadhub.db import SessionLocal
from leadhub.services import reconciliation as reconciliation_service

logger = logging.getLogger(__name__)


@celery_app.task(name="leadhub.tasks.reconciliation.reconcile_pending_leads")
def reconcile_pending_leads():
    session = SessionLocal()
    try:
        summary = reconciliation_service.reconcile_stale_pending_leads(session)
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
    if summary["scanned"]:
        logger.info(
            "pending_leads_reconciled scanned=%s delivered=%s failed=%s",
            summary["scanned"],
            summary["delivered"],
            summary["failed"],
        )
    return summary
