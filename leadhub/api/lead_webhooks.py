import json
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from leadhub.api.deps import audit_webhook_request, enforce_webhook_rate_limit, get_db
from leadhub.config import settings
from leadhub.schemas.webhooks import (
    DiagnosticWebhookRequest,
    GoogleLeadFormWebhook,
    LeadWebhookResponse,
    MetaLeadgenWebhook,
)
from leadhub.services import import_configs as import_configs_service
from leadhub.services import lead_webhooks as lead_webhooks_service
from leadhub.services.meta_leads import verify_webhook_signature

router = APIRouter(
    prefix="/webhooks/leads",
    dependencies=[Depends(audit_webhook_request)],
)

_UNSUPPORTED_PLATFORMS = {"linkedin", "twitter"}


async def _read_json(request: Request) -> tuple[bytes, Any]:
    body = await request.body()
    try:
        return body, json.loads(body) if body else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc


def _validate(schema, data: Any):
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "invalid_payload",
                "message": "Invalid webhook payload",
                "details": exc.errors(include_url=False, include_context=False),
            },
        ) from exc


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


@router.get("/test", tags=["lead-webhooks"])
def webhook_status():
    return {
        "status": "ok",
        "supported_platforms": ["facebook", "google", "custom"],
        "supported_test_types": lead_webhooks_service.SUPPORTED_TEST_TYPES,
    }


@router.post("/test", tags=["lead-webhooks"])
def run_webhook_diagnostic(payload: DiagnosticWebhookRequest, db: Session = Depends(get_db)):
    return lead_webhooks_service.run_diagnostic(db, payload)


@router.get("/facebook", response_class=PlainTextResponse, tags=["lead-webhooks"])
@router.get(
    "/facebook/{account_id}", response_class=PlainTextResponse, tags=["lead-webhooks"]
)
def verify_facebook_webhook(
    hub_mode: str | None = Query(default=None, alias="hub.mode"),
    hub_verify_token: str | None = Query(default=None, alias="hub.verify_token"),
    hub_challenge: str | None = Query(default=None, alias="hub.challenge"),
    account_id: str | None = None,
):
    challenge = lead_webhooks_service.verify_facebook_subscription(
        hub_mode, hub_verify_token, hub_challenge
    )
    if challenge is None:
        raise HTTPException(status_code=403, detail="Verification failed")
    return PlainTextResponse(challenge)


@router.post(
    "/facebook",
    response_model=LeadWebhookResponse,
    tags=["lead-webhooks"],
    dependencies=[Depends(enforce_webhook_rate_limit)],
)
@router.post(
    "/facebook/{account_id}",
    response_model=LeadWebhookResponse,
    tags=["lead-webhooks"],
    dependencies=[Depends(enforce_webhook_rate_limit)],
)
async def facebook_webhook(
    request: Request,
    account_id: str | None = None,
    db: Session = Depends(get_db),
):
    body, data = await _read_json(request)
    if settings.facebook_app_secret and not verify_webhook_signature(
        body,
        request.headers.get("X-Hub-Signature-256"),
        settings.facebook_app_secret,
    ):
        raise HTTPException(status_code=403, detail="Invalid signature")
    payload = _validate(MetaLeadgenWebhook, data)
    results = await run_in_threadpool(
        lead_webhooks_service.handle_facebook_webhook, db, payload, account_id
    )
    return LeadWebhookResponse(results=results)


@router.post(
    "/google",
    response_model=LeadWebhookResponse,
    tags=["lead-webhooks"],
    dependencies=[Depends(enforce_webhook_rate_limit)],
)
@router.post(
    "/google/{account_id}",
    response_model=LeadWebhookResponse,
    tags=["lead-webhooks"],
    dependencies=[Depends(enforce_webhook_rate_limit)],
)
async def google_webhook(
    request: Request,
    account_id: str | None = None,
    db: Session = Depends(get_db),
):
    _, data = await _read_json(request)
    payload = _validate(GoogleLeadFormWebhook, data)
    results = await run_in_threadpool(
        lead_webhooks_service.handle_google_webhook, db, payload, account_id
    )
    return LeadWebhookResponse(results=results)


@router.post(
    "/custom/{account_id}/{config_id}",
    response_model=LeadWebhookResponse,
    tags=["lead-webhooks"],
    dependencies=[Depends(enforce_webhook_rate_limit)],
)
async def custom_webhook(
    account_id: str,
    config_id: str,
    request: Request,
    db: Session = Depends(get_db),
):
    token = _bearer_token(request)
    if not token or not await run_in_threadpool(
        import_configs_service.verify_webhook_token, db, token, account_id
    ):
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing webhook token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    config = await run_in_threadpool(
        lead_webhooks_service.get_custom_config, db, account_id, config_id
    )
    _, data = await _read_json(request)
    leads = lead_webhooks_service.extract_custom_leads(data)
    results = await run_in_threadpool(
        lead_webhooks_service.handle_custom_webhook, db, config, leads
    )
    return LeadWebhookResponse(results=results)


@router.post(
    "/{platform}",
    status_code=status.HTTP_501_NOT_IMPLEMENTED,
    tags=["lead-webhooks"],
    dependencies=[Depends(enforce_webhook_rate_limit)],
)
@router.post(
    "/{platform}/{account_id}",
    status_code=status.HTTP_501_NOT_IMPLEMENTED,
    tags=["lead-webhooks"],
    dependencies=[Depends(enforce_webhook_rate_limit)],
)
def unsupported_platform_webhook(platform: str, account_id: str | None = None):
    if platform not in _UNSUPPORTED_PLATFORMS:
        raise HTTPException(status_code=404, detail="Unknown lead platform")
    raise HTTPException(
        status_code=501,
        detail=f"{platform.capitalize()} integration coming soon",
    )
