"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (minutes), sent as a Bearer header
- Refresh token: long-lived (days), only exchanged for a new access token

Tokens are never stored. A token is valid iff its signature verifies
and the clock has not reached its "exp" claim, so there is no
revocation: a leaked token stays usable until it expires.

The clock is injectable so expiry can be tested without sleeping.
"""

import time
from datetime import timedelta
from typing import Callable, Iterable, Optional

import jwt

from daybook.config import Settings, settings
from daybook.errors import InvalidSignature, MalformedToken, TokenExpired

ACCESS = "access"
REFRESH = "refresh"

_REQUIRED_CLAIMS = ["sub", "iat", "exp", "type"]


class TokenService:
    """Issues and validates signed access/refresh tokens.

    The signing key is fixed at construction; instances are safe to
    share across concurrent requests.
    """

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        clock: Callable[[], float] = time.time,
    ):
        self._secret = secret
        self._algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, cfg: Settings) -> "TokenService":
        return cls(
            cfg.jwt_secret,
            algorithm=cfg.jwt_algorithm,
            access_ttl=timedelta(minutes=cfg.access_token_expire_minutes),
            refresh_ttl=timedelta(days=cfg.refresh_token_expire_days),
        )

    # ─── Issue ──────────────────────────────────────────

    def issue_access(
        self,
        subject: str,
        roles: Iterable[str] = (),
        ttl: Optional[timedelta] = None,
    ) -> str:
        """Create a JWT access token for a username."""
        return self._issue(subject, ACCESS, roles, self.access_ttl if ttl is None else ttl)

    def issue_refresh(
        self,
        subject: str,
        roles: Iterable[str] = (),
        ttl: Optional[timedelta] = None,
    ) -> str:
        """Create a JWT refresh token for a username."""
        return self._issue(subject, REFRESH, roles, self.refresh_ttl if ttl is None else ttl)

    def _issue(
        self, subject: str, token_type: str, roles: Iterable[str], ttl: timedelta
    ) -> str:
        now = self._clock()
        payload = {
            "sub": subject,
            "type": token_type,
            "roles": list(roles),
            "iat": int(now),
            "exp": int(now + ttl.total_seconds()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    # ─── Verify ─────────────────────────────────────────

    def decode(self, token: str, expected_type: str = ACCESS) -> dict:
        """Verify a token and return its claims.

        Raises InvalidSignature, TokenExpired or MalformedToken.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                # exp/iat are checked against our own clock below
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": _REQUIRED_CLAIMS,
                },
            )
        except jwt.InvalidSignatureError:
            raise InvalidSignature("Signature verification failed")
        except jwt.InvalidTokenError as e:
            raise MalformedToken(f"Invalid token: {e}")

        exp = payload["exp"]
        if not isinstance(exp, (int, float)):
            raise MalformedToken("Invalid token: exp is not numeric")
        if self._clock() >= exp:
            raise TokenExpired("Token has expired")

        if payload["type"] != expected_type:
            raise MalformedToken(
                f"Invalid token: expected {expected_type} token, got {payload['type']}"
            )
        if not isinstance(payload["sub"], str) or not payload["sub"]:
            raise MalformedToken("Invalid token: empty subject")
        return payload

    def validate(self, token: str) -> str:
        """Validate an access token and return its subject (username)."""
        return self.decode(token, ACCESS)["sub"]

    def refresh_to_bearer_token(self, refresh_token: str) -> str:
        """Exchange a valid refresh token for a fresh access token."""
        payload = self.decode(refresh_token, REFRESH)
        return self.issue_access(payload["sub"], roles=payload.get("roles") or ())


# Process-wide instance, built once from settings
token_service = TokenService.from_settings(settings)


def get_token_service() -> TokenService:
    """FastAPI dependency — returns the process-wide token service."""
    return token_service
