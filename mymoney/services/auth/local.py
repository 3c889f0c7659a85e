"""
Local Auth Provider

Keeps accounts in memory with bcrypt password hashes. Used for tests
and offline sessions; a hosted provider plugs in through the same
interface.
"""

import inspect
import secrets
from typing import Callable, Optional
from uuid import uuid4

import bcrypt
import structlog

from mymoney.services.auth.interface import (
    AuthCallback,
    AuthError,
    AuthProviderInterface,
    AuthUser,
)


# bcrypt only reads the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


class _Account:
    
    def __init__(self, user: AuthUser, password: str, rounds: int):
        self.user = user
        self.rounds = rounds
        self.set_password(password)
    
    def set_password(self, password: str) -> None:
        salt = bcrypt.gensalt(rounds=self.rounds)
        self.password_hash = bcrypt.hashpw(_password_bytes(password), salt)
    
    def check_password(self, password: str) -> bool:
        return bcrypt.checkpw(_password_bytes(password), self.password_hash)


class LocalAuthProvider(AuthProviderInterface):
    """In-process accounts keyed by lower-cased email."""
    
    def __init__(self, rounds: int = 12):
        """
        Args:
            rounds: bcrypt cost factor used for new password hashes
        """
        self._accounts: dict[str, _Account] = {}
        self._current: Optional[AuthUser] = None
        self._listeners: list[AuthCallback] = []
        self._rounds = rounds
        self._logger = structlog.get_logger(__name__)
        # email -> reset token, for the caller to deliver out of band
        self.reset_tokens: dict[str, str] = {}
    
    async def _notify(self, user: Optional[AuthUser]) -> None:
        for callback in list(self._listeners):
            result = callback(user)
            if inspect.isawaitable(result):
                await result
    
    async def sign_up(self, email: str, password: str, name: str) -> AuthUser:
        key = email.strip().lower()
        if "@" not in key:
            raise AuthError(f"Invalid email address: {email}")
        if key in self._accounts:
            raise AuthError("User already registered")
        
        user = AuthUser(id=str(uuid4()), email=key, name=name.strip() or "New User")
        self._accounts[key] = _Account(user, password, self._rounds)
        self._logger.info("user_signed_up", user_id=user.id)
        
        self._current = user
        await self._notify(user)
        return user
    
    async def sign_in(self, email: str, password: str) -> AuthUser:
        account = self._accounts.get(email.strip().lower())
        if account is None or not account.check_password(password):
            raise AuthError("Invalid login credentials")
        
        self._current = account.user
        await self._notify(account.user)
        return account.user
    
    async def sign_out(self) -> None:
        self._current = None
        await self._notify(None)
    
    async def current_user(self) -> Optional[AuthUser]:
        return self._current
    
    def on_auth_change(self, callback: AuthCallback) -> Callable[[], None]:
        self._listeners.append(callback)
        
        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)
        
        return unsubscribe
    
    async def update_password(self, new_password: str) -> None:
        if self._current is None:
            raise AuthError("User not authenticated")
        self._accounts[self._current.email].set_password(new_password)
    
    async def request_password_reset(self, email: str) -> None:
        key = email.strip().lower()
        if key in self._accounts:
            self.reset_tokens[key] = secrets.token_urlsafe(24)
            self._logger.info("password_reset_requested", email=key)
