"""Privileged account, grant and redemption code endpoints."""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from enrollment.api.balance import BalanceOut, account_out
from enrollment.api.dependencies import get_store, require_capability, require_user
from enrollment.api.errors import to_http_exception
from enrollment.api.purchases import PurchaseOut, purchase_out
from enrollment.models.principal import Capability, Principal, Role
from enrollment.models.purchase import RedemptionCode
from enrollment.repos.unit_of_work import Store
from enrollment.services import code_service, ledger_service, purchase_service
from enrollment.services.errors import EnrollmentError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/admin", tags=["admin"])


class AccountIn(BaseModel):
    role: Role = Role.STUDENT
    name: str = Field(default="", max_length=255)
    account_id: UUID | None = None


class GrantIn(BaseModel):
    course_id: UUID


class CodesIn(BaseModel):
    course_id: UUID
    count: int = 1


class CodeOut(BaseModel):
    id: UUID
    code: str
    course_id: UUID
    is_used: bool
    used_by: UUID | None
    used_at: int | None
    created_at: int


def _code_out(c: RedemptionCode) -> CodeOut:
    return CodeOut(
        id=c.id,
        code=c.code,
        course_id=c.course_id,
        is_used=c.is_used,
        used_by=c.used_by,
        used_at=c.used_at,
        created_at=c.created_at,
    )


@router.post("/accounts", response_model=BalanceOut, status_code=status.HTTP_201_CREATED)
async def open_account(
    payload: AccountIn,
    principal: Annotated[Principal, Depends(require_user)],
    store: Annotated[Store, Depends(get_store)],
) -> BalanceOut:
    # Which capability applies depends on the requested role; the service decides.
    try:
        account = await ledger_service.open_account(
            store,
            principal,
            role=payload.role,
            name=payload.name,
            account_id=payload.account_id,
        )
    except EnrollmentError as e:
        raise to_http_exception(e) from None
    return account_out(account)


@router.post(
    "/accounts/{account_id}/courses",
    response_model=PurchaseOut,
    status_code=status.HTTP_201_CREATED,
)
async def grant_course(
    account_id: UUID,
    payload: GrantIn,
    principal: Annotated[Principal, Depends(require_capability(Capability.GRANT_COURSE))],
    store: Annotated[Store, Depends(get_store)],
) -> PurchaseOut:
    try:
        purchase = await purchase_service.grant_course(
            store, principal, account_id, payload.course_id
        )
    except EnrollmentError as e:
        raise to_http_exception(e) from None
    return purchase_out(purchase)


@router.post("/codes", response_model=list[CodeOut], status_code=status.HTTP_201_CREATED)
async def generate_codes(
    payload: CodesIn,
    principal: Annotated[Principal, Depends(require_capability(Capability.MANAGE_CODES))],
    store: Annotated[Store, Depends(get_store)],
) -> list[CodeOut]:
    try:
        codes = await code_service.generate_codes(
            store, principal, payload.course_id, payload.count
        )
    except EnrollmentError as e:
        logger.warning(
            "Code generation rejected user=%s course=%s code=%s",
            principal.user_id,
            payload.course_id,
            e.code,
        )
        raise to_http_exception(e) from None
    return [_code_out(c) for c in codes]


@router.get("/codes", response_model=list[CodeOut])
async def list_codes(
    principal: Annotated[Principal, Depends(require_capability(Capability.MANAGE_CODES))],
    store: Annotated[Store, Depends(get_store)],
    course_id: Annotated[UUID | None, Query()] = None,
) -> list[CodeOut]:
    try:
        codes = await code_service.list_codes(store, principal, course_id)
    except EnrollmentError as e:
        raise to_http_exception(e) from None
    return [_code_out(c) for c in codes]
