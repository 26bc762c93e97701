"""Account repository interface.

The order subsystem only consumes accounts: it resolves the caller's role
(``check_role``) and reads profiles for listings.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.accounts.constants import Role
    from modules.accounts.models import User


class IAccountRepository(IRepository["User"]):
    """Repository contract for marketplace users."""

    @abstractmethod
    def check_role(self, user_id: str) -> Optional[Role]:
        """Return the current role of *user_id*, or ``None`` if unknown/inactive."""
