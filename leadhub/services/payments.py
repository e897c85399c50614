"""Manual balance top-ups and saved payment methods."""

from __future__ import annotations

import logging

import httpx
from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leadhub.config import settings
from leadhub.models.account import Account, SavedPaymentMethod
from leadhub.models.balance import BalanceTransaction, TransactionType
from leadhub.schemas.balance import (
    ManualRechargeRequest,
    PaymentIntentCreate,
    SavedPaymentMethodCreate,
)
from leadhub.services import ledger
from leadhub.services import stripe as stripe_service
from leadhub.services.common import coerce_uuid, get_or_404
from leadhub.services.lead_notifications import format_cents, notify_safely

logger = logging.getLogger(__name__)


def create_payment_intent(payload: PaymentIntentCreate) -> dict:
    """Create a client-confirmed PaymentIntent for a top-up.

    Raises:
        HTTPException: 400 below the minimum amount, 502 on processor errors.
    """
    if payload.amount_cents < settings.minimum_payment_cents:
        raise HTTPException(
            status_code=400,
            detail=f"Minimum payment is {format_cents(settings.minimum_payment_cents)}",
        )
    try:
        intent = stripe_service.create_payment_intent(
            amount_cents=payload.amount_cents,
            currency=(payload.currency or settings.default_currency).lower(),
            receipt_email=payload.customer_email,
            metadata=payload.metadata,
        )
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("payment_intent_create_failed error=%s", exc)
        raise HTTPException(status_code=502, detail="Failed to create payment intent") from exc
    return {
        "id": intent["id"],
        "client_secret": intent.get("client_secret"),
        "status": intent.get("status", "requires_payment_method"),
        "amount": intent.get("amount", payload.amount_cents),
        "currency": intent.get("currency", settings.default_currency),
    }


def apply_manual_recharge(
    db: Session, account_id: str, payload: ManualRechargeRequest
) -> BalanceTransaction:
    """Credit a completed client-side payment to the balance.

    Raises:
        HTTPException: 404 unknown account, 409 intent already applied, 400
            intent not succeeded or amount mismatch, 502 processor errors.
    """
    account = get_or_404(db, Account, account_id, "Account not found")
    if ledger.find_transaction(db, payload.payment_intent_id, TransactionType.payment_recharge):
        raise HTTPException(status_code=409, detail="Payment already applied")

    try:
        intent = stripe_service.retrieve_payment_intent(payload.payment_intent_id)
    except (httpx.HTTPError, ValueError) as exc:
        logger.error(
            "manual_recharge_lookup_failed payment_intent_id=%s error=%s",
            payload.payment_intent_id,
            exc,
        )
        raise HTTPException(status_code=502, detail="Failed to verify payment") from exc

    if intent.get("status") != "succeeded":
        raise HTTPException(status_code=400, detail="Payment has not succeeded")
    if intent.get("amount") != payload.amount_cents:
        logger.warning(
            "manual_recharge_amount_mismatch payment_intent_id=%s expected=%s actual=%s",
            payload.payment_intent_id,
            payload.amount_cents,
            intent.get("amount"),
        )
        raise HTTPException(status_code=400, detail="Payment amount mismatch")

    try:
        transaction = ledger.credit(
            db,
            account.id,
            payload.amount_cents,
            TransactionType.payment_recharge,
            reference_id=payload.payment_intent_id,
            description="Manual balance recharge",
        )
    except IntegrityError as exc:
        logger.info(
            "manual_recharge_already_applied payment_intent_id=%s",
            payload.payment_intent_id,
        )
        raise HTTPException(status_code=409, detail="Payment already applied") from exc
    notify_safely(
        db,
        account.id,
        "balance_recharge",
        "Balance Recharged",
        f"Your balance has been recharged with {format_cents(payload.amount_cents)}",
        {"amount_cents": payload.amount_cents, "payment_intent_id": payload.payment_intent_id},
    )
    return transaction


def _clear_other_defaults(db: Session, account_id, keep_id=None) -> None:
    stmt = (
        update(SavedPaymentMethod)
        .where(SavedPaymentMethod.account_id == coerce_uuid(account_id))
        .where(SavedPaymentMethod.is_default.is_(True))
        .values(is_default=False)
    )
    if keep_id is not None:
        stmt = stmt.where(SavedPaymentMethod.id != keep_id)
    db.execute(stmt.execution_options(synchronize_session="fetch"))


class SavedPaymentMethods:
    @staticmethod
    def create(
        db: Session, account_id: str, payload: SavedPaymentMethodCreate
    ) -> SavedPaymentMethod:
        account = get_or_404(db, Account, account_id, "Account not found")
        if payload.is_default:
            _clear_other_defaults(db, account.id)
        method = SavedPaymentMethod(account_id=account.id, **payload.model_dump())
        db.add(method)
        db.commit()
        db.refresh(method)
        return method

    @staticmethod
    def list(db: Session, account_id: str) -> list[SavedPaymentMethod]:
        return (
            db.query(SavedPaymentMethod)
            .filter(SavedPaymentMethod.account_id == coerce_uuid(account_id))
            .filter(SavedPaymentMethod.is_active.is_(True))
            .order_by(SavedPaymentMethod.created_at.desc())
            .all()
        )

    @staticmethod
    def set_default(db: Session, method_id: str) -> SavedPaymentMethod:
        method = get_or_404(db, SavedPaymentMethod, method_id, "Payment method not found")
        if not method.is_active:
            raise HTTPException(status_code=400, detail="Payment method is inactive")
        _clear_other_defaults(db, method.account_id, keep_id=method.id)
        method.is_default = True
        db.commit()
        db.refresh(method)
        return method

    @staticmethod
    def delete(db: Session, method_id: str) -> None:
        method = get_or_404(db, SavedPaymentMethod, method_id, "Payment method not found")
        method.is_active = False
        method.is_default = False
        db.commit()


saved_payment_methods = SavedPaymentMethods()
