"""Automatic balance top-up against a saved payment method."""

from __future__ import annotations

import logging

import httpx
from sqlalchemy import select
from sqlalchemy.orm import Session

from leadhub.config import settings
from leadhub.metrics import AUTO_RECHARGE_ATTEMPTS
from leadhub.models.account import Account, SavedPaymentMethod
from leadhub.models.balance import TransactionType
from leadhub.services import ledger
from leadhub.services import stripe as stripe_service
from leadhub.services.common import coerce_uuid
from leadhub.services.lead_notifications import format_cents, notify_safely

logger = logging.getLogger(__name__)


def get_default_payment_method(db: Session, account_id) -> SavedPaymentMethod | None:
    """Return the account's default payment method, or None when ambiguous."""
    methods = db.scalars(
        select(SavedPaymentMethod)
        .where(SavedPaymentMethod.account_id == coerce_uuid(account_id))
        .where(SavedPaymentMethod.is_default.is_(True))
        .where(SavedPaymentMethod.is_active.is_(True))
    ).all()
    if len(methods) != 1:
        if methods:
            logger.warning(
                "auto_recharge_ambiguous_default account_id=%s count=%s",
                account_id,
                len(methods),
            )
        return None
    return methods[0]


def _ensure_customer(db: Session, account: Account) -> str:
    if account.stripe_customer_id:
        return account.stripe_customer_id
    customer_id = stripe_service.create_customer(
        email=account.email,
        name=account.display_name,
        metadata={"account_id": str(account.id)},
    )
    account.stripe_customer_id = customer_id
    db.commit()
    return customer_id


def _record_failure(db: Session, account_id, amount_cents: int, reason: str) -> None:
    AUTO_RECHARGE_ATTEMPTS.labels(outcome="failed").inc()
    notify_safely(
        db,
        account_id,
        "auto_recharge_failed",
        "Auto-Recharge Failed",
        f"Auto-recharge failed: {reason}",
        {"error": reason, "amount_cents": amount_cents},
    )


def attempt_auto_recharge(db: Session, account_id, amount_cents: int) -> bool:
    """Charge the default saved payment method and credit the balance.

    Returns True only when the processor reports the charge as immediately
    succeeded and the ledger credit went through. Never raises.
    """
    try:
        return _attempt_auto_recharge(db, account_id, amount_cents)
    except Exception:
        db.rollback()
        logger.exception("auto_recharge_unexpected_error account_id=%s", account_id)
        AUTO_RECHARGE_ATTEMPTS.labels(outcome="failed").inc()
        return False


def _attempt_auto_recharge(db: Session, account_id, amount_cents: int) -> bool:
    if amount_cents <= 0:
        return False

    method = get_default_payment_method(db, account_id)
    if not method:
        logger.info("auto_recharge_no_default_method account_id=%s", account_id)
        AUTO_RECHARGE_ATTEMPTS.labels(outcome="no_payment_method").inc()
        return False

    account = db.get(Account, coerce_uuid(account_id))
    if not account:
        logger.warning("auto_recharge_account_missing account_id=%s", account_id)
        AUTO_RECHARGE_ATTEMPTS.labels(outcome="failed").inc()
        return False

    try:
        customer_id = _ensure_customer(db, account)
        charge = stripe_service.create_and_confirm_charge(
            amount_cents=amount_cents,
            currency=settings.default_currency,
            payment_method=method.processor_payment_method_id,
            customer=customer_id,
            metadata={"account_id": str(account.id), "type": "auto_recharge"},
        )
    except (httpx.HTTPError, ValueError, KeyError) as exc:
        db.rollback()
        logger.error(
            "auto_recharge_processor_error account_id=%s error=%s", account_id, exc
        )
        _record_failure(db, account_id, amount_cents, "payment processor error")
        return False

    if not charge.succeeded:
        logger.warning(
            "auto_recharge_not_completed account_id=%s status=%s charge_id=%s",
            account_id,
            charge.raw_status,
            charge.charge_id,
        )
        _record_failure(
            db,
            account_id,
            amount_cents,
            charge.error_message or f"payment {charge.status.value}",
        )
        return False

    try:
        ledger.credit(
            db,
            account_id,
            amount_cents,
            TransactionType.auto_recharge,
            reference_id=charge.charge_id,
        )
    except Exception:
        # Charged but not credited: needs a manual credit or refund.
        logger.exception(
            "auto_recharge_credit_failed account_id=%s charge_id=%s amount_cents=%s",
            account_id,
            charge.charge_id,
            amount_cents,
        )
        AUTO_RECHARGE_ATTEMPTS.labels(outcome="credit_failed").inc()
        return False

    try:
        ledger.mark_recharged(db, account_id)
    except Exception:
        logger.warning(
            "auto_recharge_mark_failed account_id=%s charge_id=%s",
            account_id,
            charge.charge_id,
            exc_info=True,
        )

    AUTO_RECHARGE_ATTEMPTS.labels(outcome="succeeded").inc()
    logger.info(
        "auto_recharge_succeeded account_id=%s amount_cents=%s charge_id=%s",
        account_id,
        amount_cents,
        charge.charge_id,
    )
    notify_safely(
        db,
        account_id,
        "auto_recharge_success",
        "Auto-Recharge Successful",
        f"Your account has been recharged with {format_cents(amount_cents)}",
        {"amount_cents": amount_cents, "payment_intent_id": charge.charge_id},
    )
    return True
