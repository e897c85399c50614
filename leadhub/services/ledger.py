"""Prepaid balance ledger.

All balance mutations go through :func:`debit` and :func:`credit`, each of which
is a single conditional/atomic UPDATE committed together with its
``balance_transactions`` row. Callers never write ``balance_cents`` directly.
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from leadhub.config import settings
from leadhub.models.balance import BalanceTransaction, TransactionType, UserBalance
from leadhub.schemas.balance import RechargeSettingsUpdate
from leadhub.services.common import (
    ListResponseMixin,
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    validate_enum,
)

logger = logging.getLogger(__name__)


class DebitResult(enum.Enum):
    success = "success"
    insufficient_funds = "insufficient_funds"


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise RuntimeError(f"Balance upsert is not supported on dialect {dialect}")


def _ensure_balance_row(db: Session, account_id) -> None:
    insert = _insert_for(db)
    now = datetime.now(timezone.utc)
    stmt = (
        insert(UserBalance)
        .values(
            account_id=coerce_uuid(account_id),
            balance_cents=0,
            reserved_cents=0,
            auto_recharge_enabled=False,
            recharge_threshold_cents=settings.default_recharge_threshold_cents,
            recharge_amount_cents=settings.default_recharge_amount_cents,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["account_id"])
    )
    db.execute(stmt)


def get_balance(db: Session, account_id) -> UserBalance:
    """Return the account balance, creating a zero balance on first access."""
    account_uuid = coerce_uuid(account_id)
    balance = db.scalars(
        select(UserBalance).where(UserBalance.account_id == account_uuid)
    ).first()
    if balance:
        return balance
    try:
        _ensure_balance_row(db, account_uuid)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return db.scalars(
        select(UserBalance).where(UserBalance.account_id == account_uuid)
    ).one()


def debit(db: Session, account_id, amount_cents: int, lead_id) -> DebitResult:
    """Atomically take ``amount_cents`` from the balance if it stays >= 0."""
    if amount_cents <= 0:
        raise ValueError("Debit amount must be positive")
    account_uuid = coerce_uuid(account_id)
    get_balance(db, account_uuid)
    try:
        result = db.execute(
            update(UserBalance)
            .where(UserBalance.account_id == account_uuid)
            .where(UserBalance.balance_cents >= amount_cents)
            .values(
                balance_cents=UserBalance.balance_cents - amount_cents,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            logger.info(
                "balance_debit_insufficient account_id=%s amount_cents=%s",
                account_uuid,
                amount_cents,
            )
            return DebitResult.insufficient_funds
        db.add(
            BalanceTransaction(
                account_id=account_uuid,
                type=TransactionType.deduction,
                amount_cents=-amount_cents,
                description="Lead import charge",
                reference_id=str(lead_id),
            )
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    _expire_cached_balance(db, account_uuid)
    logger.info(
        "balance_debited account_id=%s amount_cents=%s lead_id=%s",
        account_uuid,
        amount_cents,
        lead_id,
    )
    return DebitResult.success


def credit(
    db: Session,
    account_id,
    amount_cents: int,
    transaction_type: TransactionType,
    reference_id: str | None = None,
    description: str | None = None,
) -> BalanceTransaction:
    """Atomically add ``amount_cents`` to the balance and record it."""
    if amount_cents <= 0:
        raise ValueError("Credit amount must be positive")
    if transaction_type == TransactionType.deduction:
        raise ValueError("Deductions must go through debit()")
    account_uuid = coerce_uuid(account_id)
    get_balance(db, account_uuid)
    try:
        db.execute(
            update(UserBalance)
            .where(UserBalance.account_id == account_uuid)
            .values(
                balance_cents=UserBalance.balance_cents + amount_cents,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        transaction = BalanceTransaction(
            account_id=account_uuid,
            type=transaction_type,
            amount_cents=amount_cents,
            description=description or f"Balance {transaction_type.value}",
            reference_id=reference_id,
        )
        db.add(transaction)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(transaction)
    _expire_cached_balance(db, account_uuid)
    logger.info(
        "balance_credited account_id=%s amount_cents=%s type=%s reference_id=%s",
        account_uuid,
        amount_cents,
        transaction_type.value,
        reference_id,
    )
    return transaction


def mark_recharged(db: Session, account_id) -> None:
    account_uuid = coerce_uuid(account_id)
    try:
        db.execute(
            update(UserBalance)
            .where(UserBalance.account_id == account_uuid)
            .values(last_recharge_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    _expire_cached_balance(db, account_uuid)


def update_recharge_settings(
    db: Session, account_id, payload: RechargeSettingsUpdate
) -> UserBalance:
    balance = get_balance(db, account_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(balance, key, value)
    db.commit()
    db.refresh(balance)
    return balance


def find_transaction(
    db: Session, reference_id: str, transaction_type: TransactionType
) -> BalanceTransaction | None:
    return db.scalars(
        select(BalanceTransaction)
        .where(BalanceTransaction.reference_id == reference_id)
        .where(BalanceTransaction.type == transaction_type)
    ).first()


def _expire_cached_balance(db: Session, account_uuid) -> None:
    # Core UPDATEs bypass the identity map; drop any loaded copy.
    for obj in list(db.identity_map.values()):
        if isinstance(obj, UserBalance) and obj.account_id == account_uuid:
            db.expire(obj)


class BalanceTransactions(ListResponseMixin):
    @staticmethod
    def list(
        db: Session,
        account_id: str,
        transaction_type: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(BalanceTransaction).filter(
            BalanceTransaction.account_id == coerce_uuid(account_id)
        )
        if transaction_type:
            query = query.filter(
                BalanceTransaction.type
                == validate_enum(transaction_type, TransactionType, "type")
            )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": BalanceTransaction.created_at,
                "amount_cents": BalanceTransaction.amount_cents,
            },
        )
        return apply_pagination(query, limit, offset).all()


balance_transactions = BalanceTransactions()
