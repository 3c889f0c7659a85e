"""Authentication services package."""

from mymoney.services.auth.interface import (
    AuthCallback,
    AuthError,
    AuthProviderInterface,
    AuthUser,
)
from mymoney.services.auth.local import LocalAuthProvider

__all__ = [
    "AuthCallback",
    "AuthError",
    "AuthProviderInterface",
    "AuthUser",
    "LocalAuthProvider",
]
