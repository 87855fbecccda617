from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    STUDENT = "STUDENT"
    TEACHER = "TEACHER"
    ADMIN = "ADMIN"


class Capability(str, Enum):
    """Permissions checked by the services and the API guards."""

    SPEND_BALANCE = "spend_balance"
    REDEEM_CODE = "redeem_code"
    CREDIT_BALANCE = "credit_balance"
    OPEN_ACCOUNT = "open_account"
    OPEN_PRIVILEGED_ACCOUNT = "open_privileged_account"
    GRANT_COURSE = "grant_course"
    MANAGE_CODES = "manage_codes"
    AUTHOR_CONTENT = "author_content"
    MANAGE_ANY_COURSE = "manage_any_course"
    PREVIEW_CONTENT = "preview_content"
    VIEW_RESULTS = "view_results"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.STUDENT: frozenset(
        {
            Capability.SPEND_BALANCE,
            Capability.REDEEM_CODE,
        }
    ),
    Role.TEACHER: frozenset(
        {
            Capability.SPEND_BALANCE,
            Capability.REDEEM_CODE,
            Capability.CREDIT_BALANCE,
            Capability.OPEN_ACCOUNT,
            Capability.MANAGE_CODES,
            Capability.AUTHOR_CONTENT,
            Capability.PREVIEW_CONTENT,
            Capability.VIEW_RESULTS,
        }
    ),
    Role.ADMIN: frozenset(Capability),
}


def role_allows(role: Role, capability: Capability) -> bool:
    """The single capability check used across the codebase."""
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity, passed explicitly into every operation.

    Built by the API layer from a verified bearer token; services never
    look identity up from ambient state.
    """

    user_id: UUID
    role: Role

    def can(self, capability: Capability) -> bool:
        return role_allows(self.role, capability)
