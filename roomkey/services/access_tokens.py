"""Access token issuing and decoding (signed JWT)."""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

import jwt
from jwt.exceptions import PyJWTError

from roomkey.core.config import (
    ACCESS_TOKEN_MAX_MINUTES,
    ACCESS_TOKEN_MIN_MINUTES,
    MIN_SIGNING_KEY_BYTES,
    Settings,
    settings,
)
from roomkey.services.claims import ClaimSet
from roomkey.services.errors import ConfigurationError, InvalidTokenError, TokenExpiredError

REQUIRED_CLAIMS = ["sub", "jti", "iat", "nbf", "exp", "iss", "aud"]


@dataclass(frozen=True)
class IssuedAccessToken:
    token: str
    expires_at: datetime
    jti: str


class AccessTokenIssuer:
    """Signs and verifies access tokens.

    The key is fixed at construction and never exposed. Tokens are not
    stored; validity is signature, issuer, audience, expiry and the
    revocation registry.
    """

    _instance: Optional["AccessTokenIssuer"] = None
    _instance_lock: threading.Lock = threading.Lock()

    def __init__(
        self,
        signing_key: str,
        *,
        issuer: str,
        audience: str,
        ttl_minutes: int,
        algorithm: str = "HS256",
    ):
        if len(signing_key.encode("utf-8")) < MIN_SIGNING_KEY_BYTES:
            raise ConfigurationError(f"Signing key must be at least {MIN_SIGNING_KEY_BYTES} bytes")
        if not ACCESS_TOKEN_MIN_MINUTES <= ttl_minutes <= ACCESS_TOKEN_MAX_MINUTES:
            raise ConfigurationError(
                f"Access token lifetime must be between {ACCESS_TOKEN_MIN_MINUTES} "
                f"and {ACCESS_TOKEN_MAX_MINUTES} minutes, got {ttl_minutes}"
            )
        if not issuer or not audience:
            raise ConfigurationError("Issuer and audience must be set")

        self._signing_key = signing_key
        self.issuer = issuer
        self.audience = audience
        self.ttl = timedelta(minutes=ttl_minutes)
        self.algorithm = algorithm

    def __repr__(self) -> str:
        return f"<AccessTokenIssuer iss={self.issuer} aud={self.audience} ttl={self.ttl}>"

    @classmethod
    def from_settings(cls, config: Settings) -> "AccessTokenIssuer":
        return cls(
            config.jwt_signing_key,
            issuer=config.jwt_issuer,
            audience=config.jwt_audience,
            ttl_minutes=config.jwt_access_token_minutes,
            algorithm=config.jwt_algorithm,
        )

    @classmethod
    def get_instance(cls) -> "AccessTokenIssuer":
        """Get the process-wide issuer built from settings (thread-safe)."""
        if cls._instance is None:
            with cls._instance_lock:
                # Double-check locking pattern
                if cls._instance is None:
                    cls._instance = cls.from_settings(settings)
        return cls._instance

    def issue(self, claims: ClaimSet) -> IssuedAccessToken:
        """Sign ``claims`` into a token that expires ``ttl`` after issue time."""
        expires_at = claims.issued_at + self.ttl
        payload = {
            **claims.to_payload(),
            "iat": claims.issued_at,
            "nbf": claims.issued_at,
            "exp": expires_at,
            "iss": self.issuer,
            "aud": self.audience,
        }
        token = jwt.encode(payload, self._signing_key, algorithm=self.algorithm)
        return IssuedAccessToken(token=token, expires_at=expires_at, jti=claims.jti)

    def decode(self, token: str) -> dict[str, Any]:
        """Decode and validate a token. Expiry has no leeway."""
        try:
            return jwt.decode(
                token,
                self._signing_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                leeway=0,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except PyJWTError as e:
            raise InvalidTokenError(f"Invalid token: {e}") from e
