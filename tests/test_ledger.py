import threading
import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from leadhub.config import settings
from leadhub.models.account import Account
from leadhub.models.balance import BalanceTransaction, TransactionType, UserBalance
from leadhub.schemas.balance import RechargeSettingsUpdate
from leadhub.services import ledger


def test_get_balance_creates_zero_balance_with_defaults(db_session, account):
    balance = ledger.get_balance(db_session, account.id)

    assert balance.balance_cents == 0
    assert balance.recharge_threshold_cents == settings.default_recharge_threshold_cents
    assert balance.recharge_amount_cents == settings.default_recharge_amount_cents


def test_get_balance_is_idempotent(db_session, account):
    first = ledger.get_balance(db_session, account.id)
    second = ledger.get_balance(db_session, str(account.id))

    assert first.id == second.id
    rows = db_session.scalars(
        select(UserBalance).where(UserBalance.account_id == account.id)
    ).all()
    assert len(rows) == 1


def test_debit_records_deduction(db_session, account, fund):
    fund(account.id, 1000)
    lead_id = uuid.uuid4()

    result = ledger.debit(db_session, account.id, 400, lead_id)

    assert result == ledger.DebitResult.success
    assert ledger.get_balance(db_session, account.id).balance_cents == 600
    deduction = ledger.find_transaction(db_session, str(lead_id), TransactionType.deduction)
    assert deduction is not None
    assert deduction.amount_cents == -400


def test_debit_insufficient_funds_leaves_balance(db_session, account, fund):
    fund(account.id, 300)

    result = ledger.debit(db_session, account.id, 500, uuid.uuid4())

    assert result == ledger.DebitResult.insufficient_funds
    assert ledger.get_balance(db_session, account.id).balance_cents == 300
    deductions = db_session.scalars(
        select(BalanceTransaction).where(BalanceTransaction.type == TransactionType.deduction)
    ).all()
    assert deductions == []


def test_debit_of_exact_balance_reaches_zero(db_session, account, fund):
    fund(account.id, 500)
    assert ledger.debit(db_session, account.id, 500, uuid.uuid4()) == ledger.DebitResult.success
    assert ledger.get_balance(db_session, account.id).balance_cents == 0


@pytest.mark.parametrize("amount", [0, -10])
def test_debit_rejects_non_positive_amounts(db_session, account, amount):
    with pytest.raises(ValueError):
        ledger.debit(db_session, account.id, amount, uuid.uuid4())


def test_credit_rejects_deduction_type(db_session, account):
    with pytest.raises(ValueError):
        ledger.credit(db_session, account.id, 100, TransactionType.deduction)


def test_credit_increments_and_records(db_session, account):
    transaction = ledger.credit(
        db_session, account.id, 2500, TransactionType.auto_recharge, reference_id="pi_123"
    )

    assert transaction.amount_cents == 2500
    assert transaction.description == "Balance auto_recharge"
    assert ledger.get_balance(db_session, account.id).balance_cents == 2500


def test_update_recharge_settings(db_session, account):
    balance = ledger.update_recharge_settings(
        db_session,
        account.id,
        RechargeSettingsUpdate(auto_recharge_enabled=True, recharge_amount_cents=7500),
    )

    assert balance.auto_recharge_enabled is True
    assert balance.recharge_amount_cents == 7500
    assert balance.recharge_threshold_cents == settings.default_recharge_threshold_cents


def test_mark_recharged_sets_timestamp(db_session, account):
    ledger.get_balance(db_session, account.id)
    ledger.mark_recharged(db_session, account.id)

    assert ledger.get_balance(db_session, account.id).last_recharge_at is not None


def test_concurrent_debits_never_overdraw(file_engine):
    SessionLocal = sessionmaker(bind=file_engine, autoflush=False, autocommit=False)
    with SessionLocal() as setup:
        account = Account(email=f"race-{uuid.uuid4().hex}@example.com")
        setup.add(account)
        setup.commit()
        account_id = account.id
        ledger.credit(setup, account_id, 500, TransactionType.payment_recharge)

    barrier = threading.Barrier(2)
    results = []
    errors = []

    def worker():
        with SessionLocal() as session:
            ledger.get_balance(session, account_id)
            barrier.wait()
            try:
                results.append(ledger.debit(session, account_id, 500, uuid.uuid4()))
            except Exception as exc:
                errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert sorted(result.value for result in results) == ["insufficient_funds", "success"]
    with SessionLocal() as check:
        assert ledger.get_balance(check, account_id).balance_cents == 0
        deductions = check.scalars(
            select(BalanceTransaction).where(BalanceTransaction.type == TransactionType.deduction)
        ).all()
        assert len(deductions) == 1
