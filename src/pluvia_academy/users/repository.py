from __future__ import annotations

from typing import Optional, Protocol

from .model import User


class UserRepository(Protocol):
    """Repository interface for User.

    Note (DIP): the service layer depends on this interface, never on a concrete DB.
    """

    def get_by_email(self, email: str) -> Optional[User]:
        raise NotImplementedError
