"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract and
validate the caller from the Authorization header. The result is a
CurrentPrincipal that the route passes explicitly to the services;
nothing below the route layer looks the caller up from global state.

FastAPI caches a dependency per request, so the token is validated and
the user row loaded once, no matter how many routes/dependencies ask.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from daybook.auth.jwt import TokenService, get_token_service
from daybook.auth.roles import Role, can_administer
from daybook.db.engine import get_db
from daybook.db.stores import UserStore
from daybook.errors import TokenError, Unauthenticated

logger = structlog.get_logger()

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class CurrentPrincipal:
    """The authenticated user making this request."""

    user_id: uuid.UUID
    username: str
    roles: frozenset[Role]

    @property
    def is_admin(self) -> bool:
        return can_administer(self.roles)


def _unauthorized(detail: str = "Invalid or expired token") -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Pull the token out of an Authorization header value.

    Raises Unauthenticated if the header is missing or not a Bearer token.
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise Unauthenticated("Missing bearer token")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise Unauthenticated("Empty bearer token")
    return token


async def resolve_principal(
    token: str, tokens: TokenService, db: AsyncSession
) -> CurrentPrincipal:
    """Validate an access token and load the user it names.

    Raises TokenError subclasses for bad tokens and Unauthenticated if
    the subject no longer exists or holds a role this build doesn't know.
    """
    username = tokens.validate(token)
    user = await UserStore(db).find_by_username(username)
    if user is None:
        raise Unauthenticated(f"Token subject {username!r} no longer exists")
    try:
        roles = Role.parse_all(user.roles)
    except ValueError as e:
        raise Unauthenticated(f"User {username!r} has an unknown role: {e}") from e
    return CurrentPrincipal(user_id=user.id, username=user.username, roles=roles)


async def get_current_principal(
    authorization: Optional[str] = Header(None),
    tokens: TokenService = Depends(get_token_service),
    db: AsyncSession = Depends(get_db),
) -> CurrentPrincipal:
    """Resolve the caller (required — 401 if no valid token).

    The reason for a rejection is logged; the response is always the
    same generic 401.
    """
    try:
        token = extract_bearer_token(authorization)
        principal = await resolve_principal(token, tokens, db)
    except (TokenError, Unauthenticated) as e:
        logger.info("auth.token_rejected", reason=type(e).__name__, error=str(e))
        raise _unauthorized()

    structlog.contextvars.bind_contextvars(username=principal.username)
    return principal


async def require_admin(
    principal: CurrentPrincipal = Depends(get_current_principal),
) -> CurrentPrincipal:
    """Resolve the caller and insist on the ADMIN role (403 otherwise)."""
    if not principal.is_admin:
        logger.warning("auth.admin_denied", username=principal.username)
        raise HTTPException(status_code=403, detail="Admin role required")
    return principal
