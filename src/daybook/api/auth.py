"""Auth API — registration, login, token refresh.

Learn: Routes for account and token lifecycle:
- POST /auth/register → create a new user account (role "User")
- POST /auth/login → username/password → JWT access + refresh tokens
- POST /auth/refresh → refresh token → new access token
- GET /auth/me → current user info

Login and refresh failures always answer with the same generic 401;
the specific reason only goes to the server log.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from daybook.auth.dependencies import CurrentPrincipal, get_current_principal
from daybook.auth.jwt import TokenService, get_token_service
from daybook.db.engine import get_db
from daybook.db.stores import UserStore
from daybook.errors import DuplicateUsername, InvalidCredentials, TokenError
from daybook.schemas.user import Credentials, LoginRequest, UserRead
from daybook.services.auth_service import AuthService

logger = structlog.get_logger()

router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


class MeRead(BaseModel):
    id: str
    username: str
    roles: list[str]
    entry_count: int


def _svc(
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(db, tokens)


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=UserRead, status_code=201)
async def register(body: Credentials, svc: AuthService = Depends(_svc)):
    """Create a new user account."""
    try:
        return await svc.register(body.username, body.password)
    except DuplicateUsername:
        raise HTTPException(status_code=409, detail="Username already taken")


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, svc: AuthService = Depends(_svc)):
    """Login with username and password → JWT tokens."""
    try:
        pair = await svc.login(body.username, body.password)
    except InvalidCredentials:
        raise HTTPException(
            status_code=401,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
    )


# ─── Refresh ────────────────────────────────────────────


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, svc: AuthService = Depends(_svc)):
    """Exchange a refresh token for a new access token.

    The refresh token itself is returned unchanged and still expires
    when it was always going to.
    """
    try:
        access_token = svc.refresh(body.refresh_token)
    except TokenError as e:
        logger.info("auth.refresh_rejected", reason=type(e).__name__, error=str(e))
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return TokenResponse(access_token=access_token, refresh_token=body.refresh_token)


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=MeRead)
async def get_me(
    principal: CurrentPrincipal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Get the current authenticated user's info."""
    return MeRead(
        id=str(principal.user_id),
        username=principal.username,
        roles=sorted(r.value for r in principal.roles),
        entry_count=await UserStore(db).count_entries(principal.user_id),
    )
