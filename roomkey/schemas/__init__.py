# roomkey Schemas
from roomkey.schemas.auth import (
    AuthResponse,
    ErrorResponse,
    LoginRequest,
    RefreshRequest,
    UserResponse,
)

__all__ = [
    "AuthResponse",
    "ErrorResponse",
    "LoginRequest",
    "RefreshRequest",
    "UserResponse",
]
