from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from lms.db import engine as db_engine
from lms.models.principal import AUTHORING_ROLES, Principal
from lms.repos.pg_store import PgStore
from lms.repos.store import InMemoryStore, Store
from lms.services import token_service
from lms.services.wiring import LearningServices, build_services

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")

# Process-wide store used when no DATABASE_URL is configured.
_MEMORY_STORE = InMemoryStore()


def reset_memory_store() -> None:
    """Drop all in-memory state (tests)."""
    global _MEMORY_STORE
    _MEMORY_STORE = InMemoryStore()


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Extract and validate the JWT bearer token. Returns a Principal.

    Used as a FastAPI dependency on any protected endpoint.
    """
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
    )
    logger.debug(
        "Token validated for user=%s roles=%s",
        principal.user_id,
        principal.roles,
    )
    return principal


def current_user_id(
    principal: Annotated[Principal, Depends(require_user)],
) -> UUID:
    """The caller's id as a UUID; learner data is keyed by it."""
    try:
        return UUID(principal.user_id)
    except ValueError:
        logger.warning("Rejected token with non-UUID subject sub=%r", principal.user_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None


def require_any_role(roles: set[str] | frozenset[str]):
    """Dependency factory: demand at least one of the given roles.

    Usage: Depends(require_any_role({"admin", "instructor"}))
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_any_role(roles):
            logger.warning(
                "Access denied: user=%s has none of roles=%s",
                principal.user_id,
                roles,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


require_author = require_any_role(AUTHORING_ROLES)


async def get_store() -> AsyncIterator[Store]:
    """Request-scoped Store: Postgres when configured, else the in-memory one."""
    if db_engine.async_session_factory is None:
        yield _MEMORY_STORE
        return
    async with db_engine.session_scope() as session:
        yield PgStore(session)


def get_services(
    store: Annotated[Store, Depends(get_store)],
) -> LearningServices:
    return build_services(store)
