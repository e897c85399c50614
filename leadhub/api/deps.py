import time

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from leadhub.db import get_db
from leadhub.services.lead_webhooks import record_webhook_request
from leadhub.services.rate_limit import (
    RateLimitExceeded,
    WebhookRateLimiter,
    get_rate_limiter,
)


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def enforce_webhook_rate_limit(
    request: Request, limiter: WebhookRateLimiter = Depends(get_rate_limiter)
) -> None:
    decision = limiter.hit(client_ip(request))
    if not decision.allowed:
        raise RateLimitExceeded(decision.retry_after)


def _platform_from_path(path: str) -> str | None:
    _, _, rest = path.partition("/webhooks/leads/")
    return rest.split("/", 1)[0] or None


def audit_webhook_request(request: Request, db: Session = Depends(get_db)):
    """Record every webhook request in ``webhook_request_logs`` (best-effort)."""
    started = time.monotonic()
    status_code = 200
    try:
        yield
    except HTTPException as exc:
        status_code = exc.status_code
        raise
    except RateLimitExceeded:
        status_code = 429
        raise
    except Exception:
        status_code = 500
        raise
    finally:
        record_webhook_request(
            db,
            method=request.method,
            path=request.url.path,
            platform=_platform_from_path(request.url.path),
            status_code=status_code,
            duration_ms=int((time.monotonic() - started) * 1000),
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )


__all__ = [
    "audit_webhook_request",
    "client_ip",
    "enforce_webhook_rate_limit",
    "get_db",
    "get_rate_limiter",
]
