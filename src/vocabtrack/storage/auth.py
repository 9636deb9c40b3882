"""Authentication context boundary."""
from abc import ABC, abstractmethod
from typing import Optional


class AuthContext(ABC):
    """Supplies the signed-in user's id."""

    @abstractmethod
    def current_user_id(self) -> Optional[str]:
        """Stable per-user id, or None when signed out."""


class StaticAuthContext(AuthContext):
    """Auth context holding a fixed user id that can be changed on sign in/out."""

    def __init__(self, user_id: Optional[str] = None):
        self.user_id = user_id

    def current_user_id(self) -> Optional[str]:
        return self.user_id

    def sign_in(self, user_id: str) -> None:
        self.user_id = user_id

    def sign_out(self) -> None:
        self.user_id = None
