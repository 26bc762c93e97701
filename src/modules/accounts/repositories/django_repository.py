"""Django ORM implementation of the Account repository."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog

from modules.accounts.constants import Role
from modules.accounts.models import User
from modules.accounts.repositories.interfaces import IAccountRepository

logger = structlog.get_logger(__name__)


class AccountDjangoRepository(IAccountRepository):
    """Concrete Account repository backed by Django ORM."""

    def __init__(self, using: str = "default") -> None:
        self._using = using

    def get_by_id(self, id: str) -> Optional[User]:
        return User.objects.using(self._using).filter(id=id).first()

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[User]:
        """List users with optional Django ORM look-ups, e.g. ``{"role": "seller"}``."""
        queryset = User.objects.using(self._using).all()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    def check_role(self, user_id: str) -> Optional[Role]:
        """Resolve the role from storage; a stale token cannot keep a revoked role."""
        role = (
            User.objects.using(self._using)
            .filter(id=user_id, is_active=True)
            .values_list("role", flat=True)
            .first()
        )
        if role is None:
            logger.warning("account.role_unresolved", user_id=user_id)
            return None
        return Role(role)
