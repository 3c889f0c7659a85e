"""
Authentication Provider Interface

The hosted auth provider is an external collaborator. The ledger only
needs to know who is signed in and to hear about sign-in/sign-out so
the store can be re-bound and the cache reloaded.
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Optional, Union

from pydantic import BaseModel, Field


class AuthError(Exception):
    """Not signed in, invalid credentials, or rejected sign-up."""
    pass


class AuthUser(BaseModel):
    """The authenticated identity."""
    
    id: str
    email: str
    name: str = Field(default="New User")


AuthCallback = Callable[[Optional[AuthUser]], Union[Awaitable[None], None]]


class AuthProviderInterface(ABC):
    """Abstract auth provider."""
    
    @abstractmethod
    async def sign_up(self, email: str, password: str, name: str) -> AuthUser:
        """Register and sign in a new user."""
        pass
    
    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthUser:
        """
        Sign in with email and password.
        
        Raises:
            AuthError: On unknown email or wrong password
        """
        pass
    
    @abstractmethod
    async def sign_out(self) -> None:
        pass
    
    @abstractmethod
    async def current_user(self) -> Optional[AuthUser]:
        pass
    
    @abstractmethod
    def on_auth_change(self, callback: AuthCallback) -> Callable[[], None]:
        """
        Register `callback` for sign-in (user) and sign-out (None).
        
        Returns:
            A function that unsubscribes the callback
        """
        pass
    
    @abstractmethod
    async def update_password(self, new_password: str) -> None:
        """Change the signed-in user's password."""
        pass
    
    @abstractmethod
    async def request_password_reset(self, email: str) -> None:
        """Start the reset flow; silent for unknown addresses."""
        pass
