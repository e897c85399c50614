from datetime import timedelta

from celery import Celery

from leadhub.config import settings

RECONCILE_INTERVAL = timedelta(minutes=5)

celery_app = Celery("leadhub")
celery_app.conf.update(
    broker_url=settings.celery_broker_url,
    result_backend=settings.celery_result_backend,
    timezone="UTC",
    task_acks_late=True,
)
celery_app.conf.beat_schedule = {
    "reconcile-pending-leads": {
        "task": "leadhub.tasks.reconciliation.reconcile_pending_leads",
        "schedule": RECONCILE_INTERVAL,
    },
}
celery_app.autodiscover_tasks(["leadhub.tasks"])
