"""Redemption code generation and listing."""

from __future__ import annotations

import datetime
import logging
import secrets
from collections.abc import Callable
from uuid import UUID

from enrollment.models.principal import Capability, Principal
from enrollment.models.purchase import RedemptionCode
from enrollment.repos.errors import DuplicateKeyError
from enrollment.repos.unit_of_work import Store
from enrollment.services.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

MAX_BATCH = 100
# Upper bound on draws for one batch; a CSPRNG will never get near it.
_MAX_DRAWS_PER_CODE = 50


def random_code() -> str:
    """16 upper-case hex characters (64 random bits)."""
    return secrets.token_hex(8).upper()


async def generate_codes(
    store: Store,
    principal: Principal,
    course_id: UUID,
    count: int,
    *,
    generator: Callable[[], str] = random_code,
) -> list[RedemptionCode]:
    """Create ``count`` unused codes for a course in one transaction.

    A drawn code is redrawn while it collides with a stored code or with
    one already drawn for this batch.
    """
    if not principal.can(Capability.MANAGE_CODES):
        logger.warning("Code generation denied user=%s", principal.user_id)
        raise ForbiddenError()
    if not 1 <= count <= MAX_BATCH:
        raise ValidationError(f"Count must be between 1 and {MAX_BATCH}")

    now = int(datetime.datetime.now(datetime.UTC).timestamp())
    async with store.transaction() as uow:
        if await uow.content.get_course(course_id) is None:
            raise NotFoundError("Course not found")

        batch: set[str] = set()
        codes: list[RedemptionCode] = []
        draws = 0
        while len(codes) < count:
            draws += 1
            if draws > count * _MAX_DRAWS_PER_CODE:
                raise ConflictError("Could not generate unique codes")
            candidate = generator().strip().upper()
            if candidate in batch or await uow.codes.exists(candidate):
                continue
            batch.add(candidate)
            codes.append(
                RedemptionCode.new(
                    code=candidate,
                    course_id=course_id,
                    created_by=principal.user_id,
                    created_at=now,
                )
            )

        for code in codes:
            try:
                await uow.codes.add(code)
            except DuplicateKeyError:
                raise ConflictError("Could not generate unique codes") from None

    logger.info(
        "Generated %d codes user=%s course=%s", len(codes), principal.user_id, course_id
    )
    return codes


async def list_codes(
    store: Store, principal: Principal, course_id: UUID | None = None
) -> list[RedemptionCode]:
    if not principal.can(Capability.MANAGE_CODES):
        raise ForbiddenError()
    async with store.transaction() as uow:
        return await uow.codes.list(course_id)
