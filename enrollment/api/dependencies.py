from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from enrollment.core.logging import user_id_var
from enrollment.db import store as store_module
from enrollment.models.principal import Capability, Principal, Role
from enrollment.repos.unit_of_work import Store
from enrollment.services import token_service

logger = logging.getLogger(__name__)

# Tokens are issued by the platform auth service; the URL is documentation only.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": "UNAUTHORIZED", "message": detail},
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Verify the bearer token and build the caller's Principal.

    Async so the caller id it binds for logging lands in the request's own
    context rather than a threadpool copy.
    """
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthorized("Invalid token") from None

    try:
        user_id = UUID(str(claims["sub"]))
        role = Role(str(claims.get("role", Role.STUDENT.value)).upper())
    except ValueError:
        logger.warning("Token with malformed identity rejected sub=%r", claims.get("sub"))
        raise _unauthorized("Invalid token") from None

    principal = Principal(user_id=user_id, role=role)
    user_id_var.set(str(user_id))
    logger.debug("Token validated for user=%s role=%s", user_id, role.value)
    return principal


def require_capability(capability: Capability):
    """Dependency factory: demand a capability of the caller's role.

    Usage: Depends(require_capability(Capability.MANAGE_CODES))
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.can(capability):
            logger.warning(
                "Access denied: user=%s role=%s missing=%s",
                principal.user_id,
                principal.role.value,
                capability.value,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={"code": "FORBIDDEN", "message": "Insufficient permissions"},
            )
        return principal

    return _guard


def get_store() -> Store:
    return store_module.store
