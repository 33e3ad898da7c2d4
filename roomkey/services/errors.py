"""Authentication error hierarchy.

Engine entry points report expected failures through return values
(``None``, ``False`` or a rotation outcome). The exceptions below cover the
cases that must not be silently absorbed: broken configuration, token
decoding and internal store conflicts.
"""


class AuthError(Exception):
    """Base authentication error."""

    pass


class ConfigurationError(AuthError):
    """Signing key or token lifetime configuration is unusable."""

    pass


class TokenError(AuthError):
    """JWT token error."""

    pass


class TokenExpiredError(TokenError):
    """JWT token has expired."""

    pass


class InvalidTokenError(TokenError):
    """JWT token is invalid."""

    pass


class TransientStoreConflict(AuthError):
    """The database refused a write because of a concurrent transaction.

    Raised and retried inside the refresh token store only.
    """

    pass
