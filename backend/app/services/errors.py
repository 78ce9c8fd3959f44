"""Authentication error taxonomy.

Routers translate these into HTTP responses; services never build
HTTPExceptions themselves.
"""


class AuthError(Exception):
    """Base authentication error."""

    pass


class InvalidCredentialsError(AuthError):
    """Unknown email or wrong password. Never says which."""

    pass


class RateLimitedError(AuthError):
    """The account is locked after repeated failed logins."""

    def __init__(self, attempts_count: int):
        super().__init__("Too many failed attempts. Please try again later")
        self.attempts_count = attempts_count


class UserInactiveError(AuthError):
    """User account is deactivated."""

    pass


class InvalidOrExpiredTokenError(AuthError):
    """A session token failed signature, expiry, type or revocation checks."""

    pass


class TokenStoreUnavailableError(AuthError):
    """The token denylist could not be reached, so revocation is unknown."""

    pass


class EmailAlreadyRegisteredError(AuthError):
    """Registration with an email that already has an account."""

    pass


class EmailAlreadyVerifiedError(AuthError):
    """Verification requested for an account that is already verified."""

    pass


class InvalidVerificationTokenError(AuthError):
    """Email verification or password reset link is unknown, used or expired."""

    pass
