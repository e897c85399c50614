import logging

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from leadhub.api.balance import router as balance_router
from leadhub.api.imports import router as imports_router
from leadhub.api.lead_webhooks import router as lead_webhooks_router
from leadhub.api.leads import router as leads_router
from leadhub.api.notifications import router as notifications_router
from leadhub.errors import register_error_handlers
from leadhub.logging import configure_logging

app = FastAPI(title="leadhub API")
logger = logging.getLogger(__name__)
configure_logging()
register_error_handlers(app)

app.include_router(lead_webhooks_router, prefix="/api")
app.include_router(leads_router, prefix="/api")
app.include_router(balance_router, prefix="/api")
app.include_router(imports_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
