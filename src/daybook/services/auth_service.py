"""Auth service — registration, login, token refresh, passwords.

Learn: Service layer separates business logic from HTTP routing.
Routes call services, services call the stores.

Two rules this service is built around:
1. Login never reveals whether the username or the password was wrong.
   Both raise InvalidCredentials; only the log says which.
2. Username uniqueness is decided by the database's unique index. The
   existence check up front is only for a friendlier fast path; a
   concurrent insert that wins the race still ends as DuplicateUsername.
"""

from functools import lru_cache
from typing import Iterable, NamedTuple

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from daybook.auth.dependencies import CurrentPrincipal
from daybook.auth.jwt import TokenService
from daybook.auth.password import hash_password, verify_password
from daybook.auth.roles import ADMIN_ROLES, DEFAULT_ROLES, Role
from daybook.db.models import User
from daybook.db.stores import UserStore
from daybook.errors import DuplicateUsername, InvalidCredentials, Unauthenticated

logger = structlog.get_logger()


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    # Verified against when the username is unknown, so both failure
    # paths pay the same bcrypt cost.
    return hash_password("daybook-timing-equalizer")


class AuthService:
    """Business logic for accounts and credentials."""

    def __init__(self, db: AsyncSession, tokens: TokenService):
        self.db = db
        self.users = UserStore(db)
        self.tokens = tokens

    # ─── Registration ───────────────────────────────────

    async def register(
        self,
        username: str,
        password: str,
        roles: Iterable[Role] = DEFAULT_ROLES,
    ) -> User:
        """Create an account. Raises DuplicateUsername if the name is taken."""
        role_names = [Role(r).value for r in roles]
        if not role_names:
            raise ValueError("a user needs at least one role")

        if await self.users.find_by_username(username) is not None:
            logger.info("auth.register_duplicate", username=username)
            raise DuplicateUsername(f"Username {username!r} is already taken")

        user = User(
            username=username,
            password_hash=hash_password(password),
            roles=role_names,
        )
        self.db.add(user)
        try:
            await self.db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent registration
            await self.db.rollback()
            logger.info("auth.register_race_lost", username=username)
            raise DuplicateUsername(f"Username {username!r} is already taken") from e

        logger.info("auth.registered", username=username, roles=role_names)
        return user

    async def register_admin(self, username: str, password: str) -> User:
        """Create an account with the ADMIN role. Callers must already be privileged."""
        return await self.register(username, password, roles=ADMIN_ROLES)

    # ─── Login / tokens ─────────────────────────────────

    async def login(self, username: str, password: str) -> TokenPair:
        """Check credentials and mint an access/refresh pair."""
        user = await self.users.find_by_username(username)
        if user is None:
            verify_password(password, _dummy_hash())
            logger.warning("auth.login_failed", username=username, reason="unknown_user")
            raise InvalidCredentials("Invalid credentials")

        if not verify_password(password, user.password_hash):
            logger.warning("auth.login_failed", username=username, reason="bad_password")
            raise InvalidCredentials("Invalid credentials")

        logger.info("auth.login", username=username)
        return self.issue_pair(user)

    def issue_pair(self, user: User) -> TokenPair:
        return TokenPair(
            access_token=self.tokens.issue_access(user.username, roles=user.roles),
            refresh_token=self.tokens.issue_refresh(user.username, roles=user.roles),
        )

    def refresh(self, refresh_token: str) -> str:
        """Exchange a refresh token for a new access token.

        Raises the TokenError subclasses from TokenService.
        """
        return self.tokens.refresh_to_bearer_token(refresh_token)

    # ─── Account management ─────────────────────────────

    async def change_password(
        self, principal: CurrentPrincipal, current_password: str, new_password: str
    ) -> None:
        user = await self.users.get(principal.user_id)
        if user is None:
            raise Unauthenticated("User no longer exists")
        if not verify_password(current_password, user.password_hash):
            logger.warning("auth.password_change_failed", username=principal.username)
            raise InvalidCredentials("Invalid credentials")

        user.password_hash = hash_password(new_password)
        await self.db.commit()
        logger.info("auth.password_changed", username=principal.username)

    async def list_users(self) -> list[User]:
        return await self.users.list_all()
