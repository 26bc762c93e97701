"""DRF permission for order endpoints.

Resolves the authenticated user's role through the accounts repository
and checks it against the order role matrix before the view runs.
Ownership is checked later, by the service, once the order is loaded.
"""

from __future__ import annotations

from typing import Optional

from django.conf import settings
from rest_framework.permissions import BasePermission
from rest_framework.request import Request

from modules.accounts.dtos import Principal
from modules.accounts.repositories import AccountDjangoRepository
from modules.orders.policies import OrderAccessPolicy, OrderAction


def get_principal(request: Request) -> Optional[Principal]:
    """Return the request's ``Principal`` (cached), or ``None`` if unresolved."""
    cached = getattr(request, "_order_principal", None)
    if cached is not None:
        return cached

    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        return None
    role = AccountDjangoRepository(using=settings.ORDERS_DB_ALIAS).check_role(user.pk)
    if role is None:
        return None

    principal = Principal(id=user.pk, role=role)
    request._order_principal = principal
    return principal


class OrderRolePermission(BasePermission):
    """Allow the request only if the caller's role may perform the view action.

    Views declare ``order_actions``: a mapping of viewset action name to
    ``OrderAction``.  Actions missing from the mapping are denied.
    """

    message = "Your role is not allowed to perform this action."

    def has_permission(self, request: Request, view) -> bool:
        principal = get_principal(request)
        if principal is None:
            return False
        action = getattr(view, "order_actions", {}).get(getattr(view, "action", None))
        if action is None:
            return False
        return OrderAccessPolicy.is_allowed(principal.role, OrderAction(action))
