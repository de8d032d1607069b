"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Role checks are applied at the include_router level using
FastAPI's dependencies parameter. Health and auth routers are open;
entry and user routes resolve the caller inside each handler (they
need the principal as an argument); the admin router additionally
requires the ADMIN role for every route.
"""

from fastapi import APIRouter, Depends

from daybook.api.admin import router as admin_router
from daybook.api.auth import router as auth_router
from daybook.api.entries import router as entries_router
from daybook.api.health import router as health_router
from daybook.api.users import router as users_router
from daybook.auth.dependencies import require_admin

api_router = APIRouter(prefix="/api/v1")

# Open routes: no auth required
api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])

# Protected routes: every handler depends on get_current_principal
api_router.include_router(entries_router, tags=["entries"])
api_router.include_router(users_router, tags=["users"])

# Admin routes: ADMIN role required
api_router.include_router(admin_router, tags=["admin"], dependencies=[Depends(require_admin)])
