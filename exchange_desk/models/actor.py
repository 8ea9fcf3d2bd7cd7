"""
Acting user passed explicitly into ledger and rate operations.
"""

import enum
from dataclasses import dataclass

from exchange_desk.lib.config import PRIVILEGED_ROLES, UNKNOWN_ACTOR


class UserRole(str, enum.Enum):
    """Back-office user roles."""

    ADMIN = "admin"
    EXCHANGE_USER = "exchange_user"
    PHARMACY_USER = "pharmacy_user"
    CONSTRUCTION_USER = "construction_user"


@dataclass(frozen=True)
class Actor:
    """The user on whose behalf an operation runs.

    Attributes:
        name: Display name recorded in voided_by and the activity log
        role: User role, only admin may configure or override rates
    """

    name: str = UNKNOWN_ACTOR
    role: UserRole = UserRole.EXCHANGE_USER

    @property
    def is_privileged(self) -> bool:
        """True if the actor may configure rates."""
        return self.role.value in PRIVILEGED_ROLES
