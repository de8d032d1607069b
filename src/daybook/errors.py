"""Error taxonomy shared by the service layer.

Services raise these; API routes translate them to HTTP responses.
Authentication failures carry a detailed message for the server log,
but routes only ever send a generic detail back to the client.
"""


class DaybookError(Exception):
    """Base class for all domain errors."""


# ─── Authentication ─────────────────────────────────────


class InvalidCredentials(DaybookError):
    """Unknown username or wrong password. Never say which."""


class DuplicateUsername(DaybookError):
    """The username is already taken."""


class Unauthenticated(DaybookError):
    """No usable principal: missing token, or subject no longer exists."""


class Forbidden(DaybookError):
    """Authenticated, but missing a required role."""


# ─── Tokens ─────────────────────────────────────────────


class TokenError(DaybookError):
    """Raised when token verification fails."""


class InvalidSignature(TokenError):
    pass


class TokenExpired(TokenError):
    pass


class MalformedToken(TokenError):
    pass


# ─── Entries ────────────────────────────────────────────


class NotFound(DaybookError):
    """Entry absent, or not owned by the caller."""


class InconsistentState(DaybookError):
    """A multi-row mutation failed and was rolled back."""


class ExternalServiceUnavailable(DaybookError):
    """Speech or weather provider failed or timed out."""
