import uuid

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from leadhub.db import Base
from leadhub.models.account import Account, SavedPaymentMethod
from leadhub.models.balance import TransactionType
from leadhub.models.lead_import import LeadImportConfig, LeadPlatform
from leadhub.services import ledger


def _enable_foreign_keys(engine):
    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, _connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture()
def engine():
    # Services commit; isolation comes from a fresh database per test.
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def file_engine(tmp_path):
    """Engine backed by a real file so several connections can race."""
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'leadhub.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    _enable_foreign_keys(engine)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex}@example.com"


@pytest.fixture()
def make_account(db_session):
    def _make(**overrides) -> Account:
        account = Account(
            email=overrides.pop("email", _unique_email()),
            display_name=overrides.pop("display_name", "Test Buyer"),
            **overrides,
        )
        db_session.add(account)
        db_session.commit()
        db_session.refresh(account)
        return account

    return _make


@pytest.fixture()
def account(make_account):
    return make_account()


@pytest.fixture()
def fund(db_session):
    def _fund(account_id, amount_cents: int):
        return ledger.credit(
            db_session,
            account_id,
            amount_cents,
            TransactionType.payment_recharge,
            reference_id=f"pi_{uuid.uuid4().hex[:12]}",
        )

    return _fund


@pytest.fixture()
def make_config(db_session):
    def _make(account, **overrides) -> LeadImportConfig:
        values = {
            "account_id": account.id,
            "platform": LeadPlatform.custom,
            "campaign_id": f"campaign-{uuid.uuid4().hex[:8]}",
            "campaign_name": "Spring promo",
            "lead_mapping": {
                "first_name": "first_name",
                "last_name": "last_name",
                "email": "email",
                "phone": "phone",
                "address": "address",
                "demographics": "demographics",
            },
            "cost_per_lead_cents": 1500,
            "minimum_balance_cents": 0,
            "auto_recharge": False,
            "is_active": True,
        }
        values.update(overrides)
        config = LeadImportConfig(**values)
        db_session.add(config)
        db_session.commit()
        db_session.refresh(config)
        return config

    return _make


@pytest.fixture()
def make_payment_method(db_session):
    def _make(account, **overrides) -> SavedPaymentMethod:
        method = SavedPaymentMethod(
            account_id=account.id,
            processor_payment_method_id=overrides.pop(
                "processor_payment_method_id", f"pm_{uuid.uuid4().hex[:12]}"
            ),
            brand=overrides.pop("brand", "visa"),
            last4=overrides.pop("last4", "4242"),
            is_default=overrides.pop("is_default", True),
            **overrides,
        )
        db_session.add(method)
        db_session.commit()
        db_session.refresh(method)
        return method

    return _make


@pytest.fixture()
def full_lead():
    """A lead that scores 100."""
    return {
        "first_name": "Jane",
        "last_name": "Doe",
        "email": "jane@example.com",
        "phone": "+1 (555) 123-4567",
        "address": {"city": "Austin", "state": "TX"},
        "demographics": {"age": 34, "income": "75k", "homeowner": True},
    }
