"""Account balances: privileged credit, ledger reads, account opening."""

from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from enrollment.core.metrics import BALANCE_CREDITS
from enrollment.models.account import Account, BalanceTransaction, TransactionType
from enrollment.models.principal import Capability, Principal, Role
from enrollment.repos.errors import DuplicateKeyError
from enrollment.repos.unit_of_work import Store
from enrollment.services.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Ledger:
    account: Account
    transactions: list[BalanceTransaction]


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def _check_amount(amount: Decimal) -> None:
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount must be a positive number")
    if amount.as_tuple().exponent < -2:
        raise ValidationError("Amount must have at most two decimal places")


async def credit_balance(
    store: Store,
    principal: Principal,
    amount: Decimal,
    account_id: UUID | None = None,
) -> Account:
    """Add ``amount`` to an account and record a DEPOSIT in the same transaction.

    Defaults to the caller's own account.  Students may not credit.
    """
    if not principal.can(Capability.CREDIT_BALANCE):
        logger.warning("Credit denied user=%s role=%s", principal.user_id, principal.role)
        raise ForbiddenError()
    _check_amount(amount)

    target_id = account_id or principal.user_id
    async with store.transaction() as uow:
        updated = await uow.accounts.credit(target_id, amount)
        if updated is None:
            raise NotFoundError("Account not found")
        await uow.accounts.append_transaction(
            BalanceTransaction.new(
                account_id=target_id,
                amount=amount,
                type=TransactionType.DEPOSIT,
                description=f"Deposit of {amount}",
                created_at=_now(),
            )
        )

    BALANCE_CREDITS.inc()
    logger.info(
        "Balance credited by=%s account=%s amount=%s balance=%s",
        principal.user_id,
        target_id,
        amount,
        updated.balance,
    )
    return updated


async def get_ledger(store: Store, principal: Principal, limit: int = 50) -> Ledger:
    async with store.transaction() as uow:
        account = await uow.accounts.get(principal.user_id)
        if account is None:
            raise NotFoundError("Account not found")
        transactions = await uow.accounts.list_transactions(principal.user_id, limit)
    return Ledger(account=account, transactions=transactions)


async def open_account(
    store: Store,
    principal: Principal,
    *,
    role: Role,
    name: str = "",
    account_id: UUID | None = None,
) -> Account:
    """ADMIN opens accounts of any role; TEACHER opens student accounts only."""
    needed = (
        Capability.OPEN_ACCOUNT
        if role is Role.STUDENT
        else Capability.OPEN_PRIVILEGED_ACCOUNT
    )
    if not principal.can(needed):
        logger.warning(
            "Account opening denied by=%s role=%s requested=%s",
            principal.user_id,
            principal.role,
            role,
        )
        raise ForbiddenError()

    account = Account.new(role=role, name=name.strip(), account_id=account_id)
    async with store.transaction() as uow:
        try:
            await uow.accounts.add(account)
        except DuplicateKeyError:
            raise ConflictError("Account already exists") from None

    logger.info(
        "Account opened by=%s account=%s role=%s",
        principal.user_id,
        account.id,
        role.value,
    )
    return account
