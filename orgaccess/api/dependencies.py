from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Query, status
from fastapi.security import OAuth2PasswordBearer

from orgaccess.core.config import SETTINGS
from orgaccess.db.engine import async_session_factory
from orgaccess.models.principal import Principal
from orgaccess.repos.store import InMemoryStore, PgStore, Store
from orgaccess.services import token_service

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")

# Backing store when no DATABASE_URL is configured (dev and tests).
memory_store = InMemoryStore()


async def get_store() -> AsyncGenerator[Store, None]:
    """Yield a request-scoped store.

    With a database, the store wraps one session whose transaction is
    committed when the request succeeds and rolled back otherwise.
    """
    if async_session_factory is None:
        yield memory_store
        return
    async with async_session_factory() as session:
        try:
            yield PgStore(session)
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Extract and validate the JWT bearer token. Returns a Principal."""
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
        "Token validated for user=%s roles=%s", principal.user_id, principal.roles
    )
    return principal


def require_platform_admin(
    principal: Annotated[Principal, Depends(require_user)],
) -> Principal:
    if not principal.is_platform_admin():
        logger.warning("Access denied: user=%s is not a platform admin", principal.user_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions",
        )
    return principal


def principal_user_id(principal: Principal) -> UUID:
    """The caller's ``sub`` as a user UUID, or 400 when it is not one."""
    try:
        return UUID(principal.user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Token subject is not a user id",
        ) from None


class PageParams:
    """``page`` / ``page_size`` query parameters, clamped to MAX_PAGE_SIZE."""

    def __init__(
        self,
        page: Annotated[int, Query(ge=1)] = 1,
        page_size: Annotated[int | None, Query(ge=1)] = None,
    ) -> None:
        self.page = page
        self.page_size = min(
            page_size or SETTINGS.default_page_size, SETTINGS.max_page_size
        )


StoreDep = Annotated[Store, Depends(get_store)]
UserDep = Annotated[Principal, Depends(require_user)]
AdminDep = Annotated[Principal, Depends(require_platform_admin)]
PageDep = Annotated[PageParams, Depends()]
