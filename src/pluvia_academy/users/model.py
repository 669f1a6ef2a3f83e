from __future__ import annotations

from dataclasses import dataclass

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """Domain entity: a platform account.

    Note: Plain data object (no DB access code).
    """

    user_id: int
    full_name: str
    email: str
    password_hash: str
    role: Role
    is_active: bool = True


@dataclass(frozen=True)
class Actor:
    """Caller identity taken from the cookie session."""

    user_id: int
    role: Role
    full_name: str = ""

    @property
    def is_staff(self) -> bool:
        return self.role.is_staff
