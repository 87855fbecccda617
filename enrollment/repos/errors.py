from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession


class DuplicateKeyError(Exception):
    """A write collided with an existing row on a unique key."""


async def flush_or_duplicate(session: AsyncSession, message: str) -> None:
    """Flush pending rows, turning a unique-key violation into DuplicateKeyError."""
    try:
        await session.flush()
    except IntegrityError as exc:
        raise DuplicateKeyError(message) from exc
