from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from leadhub.models.balance import TransactionType


class BalanceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    account_id: UUID
    balance_cents: int
    reserved_cents: int
    auto_recharge_enabled: bool
    recharge_threshold_cents: int
    recharge_amount_cents: int
    last_recharge_at: datetime | None = None
    updated_at: datetime


class RechargeSettingsUpdate(BaseModel):
    auto_recharge_enabled: bool | None = None
    recharge_threshold_cents: int | None = Field(default=None, ge=0)
    recharge_amount_cents: int | None = Field(default=None, gt=0)


class BalanceTransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: UUID
    type: TransactionType
    amount_cents: int
    description: str | None = None
    reference_id: str | None = None
    created_at: datetime


class PaymentIntentCreate(BaseModel):
    amount_cents: int
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    customer_email: str | None = Field(default=None, max_length=255)
    metadata: dict[str, str] | None = None


class PaymentIntentRead(BaseModel):
    id: str
    client_secret: str | None = None
    status: str
    amount: int
    currency: str


class ManualRechargeRequest(BaseModel):
    amount_cents: int = Field(gt=0)
    payment_intent_id: str = Field(min_length=1, max_length=160)


class SavedPaymentMethodCreate(BaseModel):
    processor_payment_method_id: str = Field(min_length=1, max_length=120)
    brand: str | None = Field(default=None, max_length=40)
    last4: str | None = Field(default=None, min_length=4, max_length=4)
    is_default: bool = False


class SavedPaymentMethodRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: UUID
    processor_payment_method_id: str
    brand: str | None = None
    last4: str | None = None
    is_default: bool
    is_active: bool
    created_at: datetime
