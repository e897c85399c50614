"""Platform adapters for inbound lead webhooks.

Each adapter turns one platform delivery into zero or more
``(config, raw_payload, source_lead_id)`` events and settles every event on its
own: a failure in one event is reported in its result and never aborts the
rest of the delivery.
"""

from __future__ import annotations

import hmac
import logging
import uuid
from typing import Any

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from leadhub.config import settings
from leadhub.metrics import WEBHOOK_EVENTS
from leadhub.models.balance import BalanceTransaction
from leadhub.models.lead_import import LeadImportConfig, LeadPlatform
from leadhub.models.webhook_log import WebhookRequestLog
from leadhub.schemas.webhooks import (
    DiagnosticWebhookRequest,
    GoogleLeadFormWebhook,
    LeadEventResult,
    MetaLeadgenWebhook,
)
from leadhub.services import ledger, meta_leads
from leadhub.services.common import try_uuid
from leadhub.services.lead_mapping import flatten_field_data, flatten_user_column_data
from leadhub.services.lead_notifications import notify
from leadhub.services.lead_scoring import calculate_quality_score, quality_breakdown
from leadhub.services.lead_settlement import (
    SettlementError,
    SettlementInconsistent,
    process_lead,
    resolve_config_for_campaign,
)

logger = logging.getLogger(__name__)

LEAD_FETCH_FAILED = "Lead could not be fetched from the platform"
LEAD_PROCESSING_FAILED = "Lead processing failed"
LEAD_SETTLEMENT_INCOMPLETE = "Lead settlement incomplete"
INVALID_LEAD_PAYLOAD = "Invalid lead payload"

SAMPLE_LEADS: list[dict[str, Any]] = [
    {
        "first_name": "Jane",
        "last_name": "Doe",
        "email": "jane.doe@example.com",
        "phone": "+1 (555) 123-4567",
        "address": {"city": "Austin", "state": "TX"},
        "demographics": {"age": 34, "income": "75k", "homeowner": True},
    },
    {"first_name": "Sam", "email": "sam@example"},
]


def verify_facebook_subscription(
    mode: str | None, verify_token: str | None, challenge: str | None
) -> str | None:
    """Return the challenge to echo when the subscription handshake is valid."""
    expected = settings.facebook_verify_token
    if mode != "subscribe" or not verify_token or not expected:
        return None
    if not hmac.compare_digest(verify_token, expected):
        logger.warning("facebook_webhook_verify_token_mismatch")
        return None
    return challenge or ""


def _settle_event(
    db: Session,
    platform: LeadPlatform,
    config: LeadImportConfig,
    raw_payload: dict[str, Any],
    source_lead_id: str,
    *,
    is_test: bool = False,
) -> LeadEventResult:
    try:
        result = process_lead(db, config, raw_payload, source_lead_id, is_test=is_test)
    except SettlementInconsistent as exc:
        WEBHOOK_EVENTS.labels(platform=platform.value, outcome="error").inc()
        logger.error(
            "webhook_event_settlement_inconsistent platform=%s source_lead_id=%s lead_id=%s",
            platform.value,
            source_lead_id,
            exc.lead_id,
        )
        return LeadEventResult(
            source_lead_id=source_lead_id,
            success=False,
            lead_id=exc.lead_id,
            error=LEAD_SETTLEMENT_INCOMPLETE,
        )
    except Exception:
        db.rollback()
        WEBHOOK_EVENTS.labels(platform=platform.value, outcome="error").inc()
        logger.exception(
            "webhook_event_failed platform=%s source_lead_id=%s",
            platform.value,
            source_lead_id,
        )
        return LeadEventResult(
            source_lead_id=source_lead_id, success=False, error=LEAD_PROCESSING_FAILED
        )

    outcome = "duplicate" if result.duplicate else ("settled" if result.success else "rejected")
    WEBHOOK_EVENTS.labels(platform=platform.value, outcome=outcome).inc()
    return LeadEventResult(
        source_lead_id=source_lead_id,
        success=result.success,
        lead_id=result.lead_id,
        error=result.error,
        duplicate=result.duplicate,
    )


def _skipped(platform: LeadPlatform, source_lead_id: str | None, error: str) -> LeadEventResult:
    WEBHOOK_EVENTS.labels(platform=platform.value, outcome="skipped").inc()
    return LeadEventResult(source_lead_id=source_lead_id, success=False, error=error)


def handle_facebook_webhook(
    db: Session, payload: MetaLeadgenWebhook, account_id: str | None = None
) -> list[LeadEventResult]:
    results: list[LeadEventResult] = []
    for entry in payload.entry:
        for change in entry.changes:
            if change.field != "leadgen":
                logger.debug("facebook_webhook_change_ignored field=%s", change.field)
                continue
            value = change.value or {}
            leadgen_id = value.get("leadgen_id")
            form_id = value.get("form_id")
            if not leadgen_id or not form_id:
                logger.warning(
                    "facebook_webhook_change_incomplete leadgen_id=%s form_id=%s",
                    leadgen_id,
                    form_id,
                )
                results.append(_skipped(LeadPlatform.facebook, leadgen_id, INVALID_LEAD_PAYLOAD))
                continue
            leadgen_id = str(leadgen_id)

            config = resolve_config_for_campaign(
                db, LeadPlatform.facebook, str(form_id), account_id
            )
            if not config:
                logger.warning(
                    "facebook_webhook_config_not_found form_id=%s account_id=%s",
                    form_id,
                    account_id,
                )
                results.append(
                    _skipped(
                        LeadPlatform.facebook,
                        leadgen_id,
                        SettlementError.config_not_found.value,
                    )
                )
                continue

            credentials = config.api_credentials or {}
            lead = meta_leads.fetch_facebook_lead(leadgen_id, credentials.get("access_token"))
            if lead is None:
                results.append(_skipped(LeadPlatform.facebook, leadgen_id, LEAD_FETCH_FAILED))
                continue

            raw_payload = flatten_field_data(lead.get("field_data"))
            results.append(_settle_event(db, LeadPlatform.facebook, config, raw_payload, leadgen_id))
    return results


def handle_google_webhook(
    db: Session, payload: GoogleLeadFormWebhook, account_id: str | None = None
) -> list[LeadEventResult]:
    """Settle one Google lead form delivery.

    Raises:
        HTTPException: 403 when ``google_key`` does not match the config's key.
    """
    config = resolve_config_for_campaign(db, LeadPlatform.google, str(payload.form_id), account_id)
    if not config:
        logger.warning(
            "google_webhook_config_not_found form_id=%s account_id=%s",
            payload.form_id,
            account_id,
        )
        return [
            _skipped(LeadPlatform.google, payload.lead_id, SettlementError.config_not_found.value)
        ]

    expected_key = (config.api_credentials or {}).get("webhook_key")
    if expected_key and not hmac.compare_digest(
        str(payload.google_key or ""), str(expected_key)
    ):
        logger.warning("google_webhook_key_mismatch config_id=%s", config.id)
        WEBHOOK_EVENTS.labels(platform=LeadPlatform.google.value, outcome="forbidden").inc()
        raise HTTPException(status_code=403, detail="Invalid webhook key")

    raw_payload = flatten_user_column_data(payload.user_column_data)
    return [
        _settle_event(
            db,
            LeadPlatform.google,
            config,
            raw_payload,
            payload.lead_id,
            is_test=payload.is_test,
        )
    ]


def get_custom_config(db: Session, account_id: str, config_id: str) -> LeadImportConfig:
    """Resolve the config a custom delivery targets.

    Raises:
        HTTPException: 404 unless the config exists, is active and belongs to
            the account.
    """
    account_uuid = try_uuid(account_id)
    config_uuid = try_uuid(config_id)
    config = db.get(LeadImportConfig, config_uuid) if config_uuid else None
    if not config or not config.is_active or config.account_id != account_uuid:
        raise HTTPException(status_code=404, detail="Import configuration not found")
    return config


def extract_custom_leads(body: Any) -> list[Any]:
    """Accept a single lead object or ``{"leads": [...]}``.

    Raises:
        HTTPException: 400 for any other shape.
    """
    if isinstance(body, dict):
        if "leads" in body:
            leads = body["leads"]
            if not isinstance(leads, list):
                raise HTTPException(status_code=400, detail="'leads' must be a list")
            return leads
        return [body]
    raise HTTPException(status_code=400, detail="Lead payload must be a JSON object")


def _custom_source_id(lead: dict[str, Any]) -> str:
    for key in ("id", "lead_id"):
        value = lead.get(key)
        if value not in (None, ""):
            return str(value)
    return f"custom_{uuid.uuid4().hex}"


def handle_custom_webhook(
    db: Session, config: LeadImportConfig, leads: list[Any]
) -> list[LeadEventResult]:
    results: list[LeadEventResult] = []
    for lead in leads:
        if not isinstance(lead, dict):
            results.append(_skipped(LeadPlatform.custom, None, INVALID_LEAD_PAYLOAD))
            continue
        results.append(
            _settle_event(db, LeadPlatform.custom, config, lead, _custom_source_id(lead))
        )
    return results


def record_webhook_request(
    db: Session,
    *,
    method: str,
    path: str,
    platform: str | None,
    status_code: int,
    duration_ms: int,
    ip_address: str | None,
    user_agent: str | None,
) -> None:
    """Write the request audit row; failures are logged and dropped."""
    try:
        db.add(
            WebhookRequestLog(
                method=method,
                path=path[:500],
                platform=platform,
                status_code=status_code,
                duration_ms=duration_ms,
                ip_address=ip_address,
                user_agent=(user_agent or "")[:500] or None,
            )
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.warning(
            "webhook_request_log_failed method=%s path=%s", method, path, exc_info=True
        )


SUPPORTED_TEST_TYPES = ["quality_score", "balance_check", "notification", "facebook_lead"]


def _require_account_id(request: DiagnosticWebhookRequest):
    if not request.account_id:
        raise HTTPException(status_code=400, detail="account_id is required for this test")
    return request.account_id


def run_diagnostic(db: Session, request: DiagnosticWebhookRequest) -> dict[str, Any]:
    """Exercise one piece of the pipeline for integration troubleshooting."""
    if request.test_type == "quality_score":
        leads = [request.lead_data] if request.lead_data else SAMPLE_LEADS
        return {
            "test_type": request.test_type,
            "results": [
                {
                    "lead": lead,
                    "score": calculate_quality_score(lead),
                    "breakdown": quality_breakdown(lead),
                }
                for lead in leads
            ],
        }

    if request.test_type == "balance_check":
        account_id = _require_account_id(request)
        balance = ledger.get_balance(db, account_id)
        transactions = db.scalars(
            select(BalanceTransaction)
            .where(BalanceTransaction.account_id == account_id)
            .order_by(BalanceTransaction.created_at.desc())
            .limit(5)
        ).all()
        return {
            "test_type": request.test_type,
            "balance_cents": balance.balance_cents,
            "auto_recharge_enabled": balance.auto_recharge_enabled,
            "recent_transactions": [
                {
                    "id": str(txn.id),
                    "type": txn.type.value,
                    "amount_cents": txn.amount_cents,
                    "description": txn.description,
                    "created_at": txn.created_at.isoformat() if txn.created_at else None,
                }
                for txn in transactions
            ],
        }

    if request.test_type == "notification":
        account_id = _require_account_id(request)
        notification = notify(
            db,
            account_id,
            "test",
            "Test Notification",
            "This is a test notification from the lead webhook diagnostics.",
            {"test": True},
        )
        return {"test_type": request.test_type, "notification_id": str(notification.id)}

    if request.test_type == "facebook_lead":
        account_id = _require_account_id(request)
        config = db.scalars(
            select(LeadImportConfig)
            .where(LeadImportConfig.account_id == account_id)
            .where(LeadImportConfig.platform == LeadPlatform.facebook)
            .where(LeadImportConfig.is_active.is_(True))
            .order_by(LeadImportConfig.created_at.desc())
        ).first()
        if not config:
            raise HTTPException(status_code=404, detail="No active Facebook import configuration")
        lead = request.lead_data or {
            "first_name": "Test",
            "last_name": "Lead",
            "email": "test.lead@example.com",
            "phone_number": "+1 555 010 0000",
            "city": "Denver",
            "state": "CO",
        }
        result = process_lead(
            db, config, lead, f"test_{uuid.uuid4().hex}", is_test=True
        )
        return {
            "test_type": request.test_type,
            "config_id": str(config.id),
            "quality_score": result.quality_score,
            **result.as_dict(),
        }

    raise HTTPException(
        status_code=400,
        detail={
            "code": "unsupported_test_type",
            "message": f"Unsupported test_type: {request.test_type}",
            "details": {"supported_types": SUPPORTED_TEST_TYPES},
        },
    )
