from __future__ import annotations

import logging
from decimal import Decimal
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from enrollment.api.dependencies import get_store, require_capability, require_user
from enrollment.api.errors import to_http_exception
from enrollment.models.account import Account
from enrollment.models.principal import Capability, Principal
from enrollment.repos.unit_of_work import Store
from enrollment.services import ledger_service
from enrollment.services.errors import EnrollmentError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/balance", tags=["balance"])

_CENT = Decimal("0.01")


def as_money(value: Decimal) -> Decimal:
    return value.quantize(_CENT)


class TransactionOut(BaseModel):
    id: UUID
    amount: Decimal
    type: str
    description: str
    created_at: int


class BalanceOut(BaseModel):
    account_id: UUID
    role: str
    balance: Decimal
    transactions: list[TransactionOut] = []


class CreditIn(BaseModel):
    amount: Decimal
    account_id: UUID | None = None


def account_out(account: Account) -> BalanceOut:
    return BalanceOut(
        account_id=account.id,
        role=account.role.value,
        balance=as_money(account.balance),
    )


@router.get("", response_model=BalanceOut)
async def get_balance(
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> BalanceOut:
    try:
        ledger = await ledger_service.get_ledger(store, principal, limit)
    except EnrollmentError as e:
        logger.warning("Balance read failed user=%s code=%s", principal.user_id, e.code)
        raise to_http_exception(e) from None

    out = account_out(ledger.account)
    out.transactions = [
        TransactionOut(
            id=t.id,
            amount=as_money(t.amount),
            type=t.type.value,
            description=t.description,
            created_at=t.created_at,
        )
        for t in ledger.transactions
    ]
    return out


@router.post("/credit", response_model=BalanceOut)
async def credit_balance(
    payload: CreditIn,
    principal: Annotated[
        Principal, Depends(require_capability(Capability.CREDIT_BALANCE))
    ],
    store: Annotated[Store, Depends(get_store)],
) -> BalanceOut:
    try:
        account = await ledger_service.credit_balance(
            store, principal, payload.amount, payload.account_id
        )
    except EnrollmentError as e:
        logger.warning(
            "Credit rejected by=%s account=%s code=%s",
            principal.user_id,
            payload.account_id,
            e.code,
        )
        raise to_http_exception(e) from None
    return account_out(account)
