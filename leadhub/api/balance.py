from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from leadhub.api.deps import get_db
from leadhub.models.account import Account
from leadhub.schemas.balance import (
    BalanceRead,
    BalanceTransactionRead,
    ManualRechargeRequest,
    PaymentIntentCreate,
    PaymentIntentRead,
    RechargeSettingsUpdate,
    SavedPaymentMethodCreate,
    SavedPaymentMethodRead,
)
from leadhub.schemas.common import ListResponse
from leadhub.services import ledger
from leadhub.services import payments as payments_service
from leadhub.services.common import get_or_404

router = APIRouter()


def _account(db: Session, account_id: UUID) -> Account:
    return get_or_404(db, Account, account_id, "Account not found")


@router.get("/balances/{account_id}", response_model=BalanceRead, tags=["balances"])
def get_balance(account_id: UUID, db: Session = Depends(get_db)):
    _account(db, account_id)
    return ledger.get_balance(db, account_id)


@router.patch(
    "/balances/{account_id}/settings", response_model=BalanceRead, tags=["balances"]
)
def update_recharge_settings(
    account_id: UUID, payload: RechargeSettingsUpdate, db: Session = Depends(get_db)
):
    _account(db, account_id)
    return ledger.update_recharge_settings(db, account_id, payload)


@router.get(
    "/balances/{account_id}/transactions",
    response_model=ListResponse[BalanceTransactionRead],
    tags=["balances"],
)
def list_transactions(
    account_id: UUID,
    type: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return ledger.balance_transactions.list_response(
        db, account_id, type, order_by, order_dir, limit, offset
    )


@router.post(
    "/balances/{account_id}/recharge",
    response_model=BalanceTransactionRead,
    status_code=status.HTTP_201_CREATED,
    tags=["balances"],
)
def manual_recharge(
    account_id: UUID, payload: ManualRechargeRequest, db: Session = Depends(get_db)
):
    return payments_service.apply_manual_recharge(db, account_id, payload)


@router.post(
    "/payments/intents",
    response_model=PaymentIntentRead,
    status_code=status.HTTP_201_CREATED,
    tags=["payments"],
)
def create_payment_intent(payload: PaymentIntentCreate):
    return payments_service.create_payment_intent(payload)


@router.post(
    "/accounts/{account_id}/payment-methods",
    response_model=SavedPaymentMethodRead,
    status_code=status.HTTP_201_CREATED,
    tags=["payment-methods"],
)
def create_payment_method(
    account_id: UUID, payload: SavedPaymentMethodCreate, db: Session = Depends(get_db)
):
    return payments_service.saved_payment_methods.create(db, account_id, payload)


@router.get(
    "/accounts/{account_id}/payment-methods",
    response_model=list[SavedPaymentMethodRead],
    tags=["payment-methods"],
)
def list_payment_methods(account_id: UUID, db: Session = Depends(get_db)):
    return payments_service.saved_payment_methods.list(db, account_id)


@router.post(
    "/payment-methods/{method_id}/default",
    response_model=SavedPaymentMethodRead,
    tags=["payment-methods"],
)
def set_default_payment_method(method_id: str, db: Session = Depends(get_db)):
    return payments_service.saved_payment_methods.set_default(db, method_id)


@router.delete(
    "/payment-methods/{method_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["payment-methods"],
)
def delete_payment_method(method_id: str, db: Session = Depends(get_db)):
    payments_service.saved_payment_methods.delete(db, method_id)
