"""Admin API — user listing, admin creation, orphan collection.

Learn: The whole router is mounted behind require_admin (see
api/__init__.py), so granting the ADMIN role is never self-service:
the first admin comes from the CLI (daybook create-admin), later ones
from an existing admin.
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from daybook.auth.jwt import TokenService, get_token_service
from daybook.db.engine import get_db
from daybook.errors import DuplicateUsername, InconsistentState
from daybook.schemas.user import Credentials, UserRead
from daybook.services.auth_service import AuthService
from daybook.services.entry_service import EntryService

router = APIRouter(prefix="/admin")


class OrphanCollection(BaseModel):
    removed: int


def _svc(
    db: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
) -> AuthService:
    return AuthService(db, tokens)


@router.get("/users", response_model=list[UserRead])
async def list_users(svc: AuthService = Depends(_svc)):
    return await svc.list_users()


@router.post("/users", response_model=UserRead, status_code=201)
async def create_admin(body: Credentials, svc: AuthService = Depends(_svc)):
    """Create a user holding both the User and ADMIN roles."""
    try:
        return await svc.register_admin(body.username, body.password)
    except DuplicateUsername:
        raise HTTPException(status_code=409, detail="Username already taken")


@router.post("/orphans/collect", response_model=OrphanCollection)
async def collect_orphans(db: AsyncSession = Depends(get_db)):
    """Delete entries that no user lists."""
    try:
        removed = await EntryService(db).collect_orphans()
    except InconsistentState as e:
        raise HTTPException(status_code=500, detail=str(e))
    return OrphanCollection(removed=removed)
