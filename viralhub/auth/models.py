"""
Authentication Models
"""

import enum
from dataclasses import dataclass
from typing import Optional


class UserRole(enum.Enum):
    """User role for access control."""
    ADMIN = "admin"          # Agency admin
    MARKETER = "marketer"    # Agency staff
    CLIENT = "client"        # Client login, read-only

    @classmethod
    def parse(cls, value: Optional[str]) -> "UserRole":
        try:
            return cls((value or "").lower())
        except ValueError:
            return cls.CLIENT


INTERNAL_ROLES = frozenset({UserRole.ADMIN, UserRole.MARKETER})


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: Optional[str] = None
    role: UserRole = UserRole.CLIENT

    @property
    def is_internal(self) -> bool:
        return self.role in INTERNAL_ROLES
