"""Order access policy.

Maps a principal's role to the order operations it may invoke and
performs the ownership checks that go with them:

- buyers own the orders they placed;
- sellers own the orders that contain at least one of their SKUs;
- shippers own the orders they claimed for delivery;
- admins own everything.

The request layer consults ``is_allowed`` through ``OrderRolePermission``
before reaching the service, and ``OrderService`` calls ``authorize`` and
the ``ensure_*`` checks again before touching an order.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Dict, FrozenSet, Optional

import structlog

from modules.accounts.constants import Role
from modules.orders.exceptions import AccessDenied, AuthenticationRequired

if TYPE_CHECKING:
    from modules.accounts.dtos import Principal
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class OrderAction(str, Enum):
    CREATE = "create"
    RETRIEVE = "retrieve"
    UPDATE = "update"
    DELETE = "delete"
    CLAIM = "claim"
    CONFIRM = "confirm"
    UPDATE_STATUS = "update_status"
    LIST_DETAILS = "list_details"
    LIST_BUYER = "list_buyer"
    LIST_SELLER = "list_seller"
    TOP_SELLING = "top_selling"


ALL_ROLES: FrozenSet[str] = frozenset(Role.values)

ROLE_MATRIX: Dict[OrderAction, FrozenSet[str]] = {
    OrderAction.CREATE: frozenset({Role.BUYER, Role.ADMIN}),
    OrderAction.UPDATE: frozenset({Role.BUYER, Role.ADMIN}),
    OrderAction.DELETE: frozenset({Role.BUYER, Role.ADMIN}),
    OrderAction.CLAIM: frozenset({Role.SHIPPER, Role.ADMIN}),
    OrderAction.CONFIRM: frozenset({Role.SHIPPER, Role.ADMIN}),
    OrderAction.UPDATE_STATUS: frozenset({Role.SELLER, Role.SHIPPER, Role.ADMIN}),
    OrderAction.LIST_BUYER: frozenset({Role.BUYER, Role.ADMIN}),
    OrderAction.LIST_SELLER: frozenset({Role.SELLER, Role.ADMIN}),
    # Read projections are open to every role; rows are scoped per principal.
    OrderAction.RETRIEVE: ALL_ROLES,
    OrderAction.LIST_DETAILS: ALL_ROLES,
    OrderAction.TOP_SELLING: ALL_ROLES,
}


class OrderAccessPolicy:
    """Role matrix plus ownership checks against the Order Store."""

    def __init__(self, order_repository: IOrderRepository) -> None:
        self._order_repo = order_repository

    # ------------------------------------------------------------------
    # Role matrix
    # ------------------------------------------------------------------

    @staticmethod
    def is_allowed(role: Optional[str], action: OrderAction) -> bool:
        return role is not None and role in ROLE_MATRIX[action]

    def authorize(self, principal: Optional[Principal], action: OrderAction) -> None:
        """Raise unless *principal* exists and its role may perform *action*.

        Raises:
            AuthenticationRequired: no principal.
            AccessDenied: the role is not in the matrix for *action*.
        """
        if principal is None:
            raise AuthenticationRequired("Authentication credentials were not provided.")
        if not self.is_allowed(principal.role, action):
            logger.warning(
                "order.access_denied",
                principal_id=principal.id,
                role=str(principal.role),
                action=action.value,
            )
            raise AccessDenied(
                f"Role '{principal.role}' may not perform '{action.value}'."
            )

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def ensure_buyer_owns(self, principal: Principal, order: Order) -> None:
        if principal.is_admin or order.buyer_id == principal.id:
            return
        self._deny(principal, order.id, "not_order_buyer")

    def ensure_seller_owns(self, principal: Principal, order_id: str) -> None:
        if principal.is_admin or self._order_repo.seller_has_items(order_id, principal.id):
            return
        self._deny(principal, order_id, "no_seller_items")

    def ensure_assigned_shipper(self, principal: Principal, order_id: str) -> None:
        if principal.is_admin or self._order_repo.has_delivery_claim(order_id, principal.id):
            return
        self._deny(principal, order_id, "not_assigned_shipper")

    def ensure_can_view(self, principal: Principal, order: Order) -> None:
        """Apply the read scope of ``read_scope`` to a single order."""
        if principal.role == Role.BUYER:
            self.ensure_buyer_owns(principal, order)
        elif principal.role == Role.SELLER:
            self.ensure_seller_owns(principal, order.id)
        elif principal.role == Role.SHIPPER:
            self.ensure_assigned_shipper(principal, order.id)

    # ------------------------------------------------------------------
    # Read scoping
    # ------------------------------------------------------------------

    @staticmethod
    def read_scope(principal: Principal) -> Dict[str, str]:
        """Repository filter restricting projections to the principal's orders."""
        if principal.role == Role.BUYER:
            return {"buyer_id": principal.id}
        if principal.role == Role.SELLER:
            return {"seller_id": principal.id}
        if principal.role == Role.SHIPPER:
            return {"shipper_id": principal.id}
        return {}

    @staticmethod
    def resolve_target_id(principal: Principal, requested_id: Optional[str]) -> str:
        """Listings target the requester unless an admin names someone else."""
        if not requested_id or requested_id == principal.id:
            return principal.id
        if not principal.is_admin:
            raise AccessDenied("Only admins may list another user's orders.")
        return requested_id

    def _deny(self, principal: Principal, order_id: str, reason: str) -> None:
        logger.warning(
            "order.ownership_denied",
            principal_id=principal.id,
            role=str(principal.role),
            order_id=order_id,
            reason=reason,
        )
        raise AccessDenied("You do not have access to this order.")
