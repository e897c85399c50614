import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from leadhub.db import Base


class TransactionType(enum.Enum):
    deduction = "deduction"
    payment_recharge = "payment_recharge"
    auto_recharge = "auto_recharge"


class UserBalance(Base):
    __tablename__ = "user_balances"
    __table_args__ = (
        CheckConstraint("balance_cents >= 0", name="ck_user_balances_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False, unique=True
    )
    balance_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # Reserved for partial holds; the pipeline does not move money through it yet.
    reserved_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    auto_recharge_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    recharge_threshold_cents: Mapped[int] = mapped_column(Integer, default=0)
    recharge_amount_cents: Mapped[int] = mapped_column(Integer, default=0)
    last_recharge_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )


class BalanceTransaction(Base):
    __tablename__ = "balance_transactions"
    __table_args__ = (
        UniqueConstraint("type", "reference_id", name="uq_balance_transactions_type_reference"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("accounts.id"), nullable=False, index=True
    )
    type: Mapped[TransactionType] = mapped_column(Enum(TransactionType), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    reference_id: Mapped[str | None] = mapped_column(String(160), index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
