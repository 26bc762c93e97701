"""Order service layer (the order lifecycle engine).

Orchestrates order creation, edits, cancellation and the status state
machine on top of the Order Store.  Every command is one unit of work:
the row lock, the precondition check and the conditional write all run
inside the same ``atomic`` block, so a concurrent commit can never slip
between the check and the write.

State machine::

    Pending -> Processing -> Dispatched -> Delivering -> Delivered
    Pending / Processing -> (deleted, conceptually Cancelled)

- claim:    Processing -> Dispatched, binds the shipper with a claim row.
- confirm:  Delivering -> Delivered, stamps the claim's finish time.
- generic status update: sellers and shippers follow ``ROLE_TRANSITIONS``;
  admins may set any status (administrative override).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Collection, List, Optional

import structlog
from django.utils import timezone

from modules.accounts.constants import Role
from modules.orders.constants import (
    ADDRESS_EDITABLE_STATES,
    CLAIMABLE_STATUS,
    CLAIMED_STATUS,
    CONFIRMABLE_STATUS,
    CONFIRMED_STATUS,
    DELETABLE_STATES,
    INITIAL_STATES,
    ROLE_TRANSITIONS,
    OrderStatus,
)
from modules.orders.dtos import (
    OrderDetailDTO,
    OrderSummaryDTO,
    SellerOrderDTO,
    TopSellingProductDTO,
)
from modules.orders.exceptions import InvalidOrderData, InvalidOrderStatus, OrderNotFound
from modules.orders.policies import OrderAccessPolicy, OrderAction

if TYPE_CHECKING:
    from modules.accounts.dtos import Principal
    from modules.orders.dtos import CreateOrderDTO, SellerOrderFiltersDTO, UpdateOrderDTO
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class OrderService:
    """Application service for Order use-cases.

    Receives the repository (and optionally the access policy) via
    constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        policy: Optional[OrderAccessPolicy] = None,
    ) -> None:
        self._order_repo = order_repository
        self._policy = policy or OrderAccessPolicy(order_repository)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_order(self, principal: Principal, dto: CreateOrderDTO) -> Order:
        """Create an order with a single line item for the requester.

        Raises:
            AccessDenied: the role may not place orders.
            InvalidOrderStatus: ``dto.status`` is not an initial status.
            PersistenceError: storage failure; nothing was written.
        """
        self._policy.authorize(principal, OrderAction.CREATE)
        log = logger.bind(buyer_id=principal.id, barcode=dto.barcode)

        if dto.status not in INITIAL_STATES:
            log.warning("order.invalid_initial_status", status=str(dto.status))
            raise InvalidOrderStatus(
                f"Orders cannot be created in status {dto.status}.",
                expected=INITIAL_STATES,
                target=dto.status,
            )

        log.info("order.creation_started")
        order = self._order_repo.create(
            {
                "buyer_id": principal.id,
                "address": dto.address,
                "status": dto.status,
                "items": [
                    {
                        "barcode": dto.barcode,
                        "variation_name": dto.variation_name,
                        "quantity": dto.quantity,
                        "price": dto.price,
                    }
                ],
            }
        )
        return self._order_repo.get_by_id(order.id) or order

    def update_order(
        self, principal: Principal, order_id: str, dto: UpdateOrderDTO
    ) -> Order:
        """Change the address and/or status of an order the requester owns.

        Edits stop once the order is dispatched.  Buyers may only move
        their order from ``Pending`` to ``Processing``; admins may set any
        status.

        Raises:
            OrderNotFound, AccessDenied, InvalidOrderStatus, PersistenceError.
        """
        self._policy.authorize(principal, OrderAction.UPDATE)
        log = logger.bind(order_id=order_id, principal_id=principal.id)

        with self._order_repo.atomic("update", order_id=order_id):
            order = self._locked_order(order_id)
            self._policy.ensure_buyer_owns(principal, order)

            if order.status not in ADDRESS_EDITABLE_STATES:
                log.warning("order.update_not_allowed", current_status=order.status)
                raise InvalidOrderStatus(
                    f"Order {order_id} can no longer be changed.",
                    expected=ADDRESS_EDITABLE_STATES,
                    actual=order.status,
                    target=dto.new_status,
                )

            if dto.new_status is not None and dto.new_status != order.status:
                if principal.is_admin:
                    self._order_repo.set_status(order_id, dto.new_status)
                else:
                    self._check_role_transition(
                        principal.role, order.status, dto.new_status
                    )
                    self._transition(
                        order_id, (order.status,), dto.new_status, log
                    )

            if dto.new_address is not None:
                self._order_repo.update(order_id, {"address": dto.new_address})

        log.info(
            "order.update_applied",
            new_status=dto.new_status,
            address_changed=dto.new_address is not None,
        )
        return self._order_repo.get_by_id(order_id)

    def cancel_order(self, principal: Principal, order_id: str) -> None:
        """Delete an order that has not left the seller yet.

        Items and delivery claims go with it.

        Raises:
            OrderNotFound, AccessDenied, InvalidOrderStatus, PersistenceError.
        """
        self._policy.authorize(principal, OrderAction.DELETE)
        log = logger.bind(order_id=order_id, principal_id=principal.id)

        with self._order_repo.atomic("delete", order_id=order_id):
            order = self._locked_order(order_id)
            self._policy.ensure_buyer_owns(principal, order)

            if order.status not in DELETABLE_STATES:
                log.warning("order.cancel_not_allowed", current_status=order.status)
                raise InvalidOrderStatus(
                    "Cannot cancel an order that is in transit or delivered.",
                    expected=DELETABLE_STATES,
                    actual=order.status,
                    target=OrderStatus.CANCELLED,
                )

            rows = self._order_repo.delete(order_id, order.buyer_id, DELETABLE_STATES)
            if rows == 0:
                self._raise_lost_race(
                    order_id, DELETABLE_STATES, OrderStatus.CANCELLED, log
                )

        log.info("order.cancelled", previous_status=order.status)

    def claim_order(self, principal: Principal, order_id: str) -> Order:
        """Bind the requesting shipper to a ``Processing`` order.

        Moves the order to ``Dispatched``.  When two shippers race for the
        same order exactly one wins; the other gets ``InvalidOrderStatus``
        and leaves no claim behind.

        Raises:
            OrderNotFound, AccessDenied, InvalidOrderStatus, PersistenceError.
        """
        self._policy.authorize(principal, OrderAction.CLAIM)
        log = logger.bind(order_id=order_id, shipper_id=principal.id)

        with self._order_repo.atomic("claim", order_id=order_id):
            order = self._locked_order(order_id)
            if order.status != CLAIMABLE_STATUS:
                log.warning("order.claim_not_allowed", current_status=order.status)
                raise InvalidOrderStatus(
                    f"Order {order_id} must be {CLAIMABLE_STATUS} to be claimed.",
                    expected=(CLAIMABLE_STATUS,),
                    actual=order.status,
                    target=CLAIMED_STATUS,
                )
            self._transition(order_id, (CLAIMABLE_STATUS,), CLAIMED_STATUS, log)
            claim = self._order_repo.add_delivery_claim(order_id, principal.id)

        log.info("order.claimed", claim_id=claim.id)
        return self._order_repo.get_by_id(order_id)

    def confirm_delivery(self, principal: Principal, order_id: str) -> Order:
        """Mark a ``Delivering`` order as ``Delivered`` and close the claim.

        Shippers can only confirm orders they claimed; an admin confirmation
        closes every claim on the order.

        Raises:
            OrderNotFound, AccessDenied, InvalidOrderStatus, PersistenceError.
        """
        self._policy.authorize(principal, OrderAction.CONFIRM)
        log = logger.bind(order_id=order_id, shipper_id=principal.id)

        with self._order_repo.atomic("confirm", order_id=order_id):
            order = self._locked_order(order_id)
            self._policy.ensure_assigned_shipper(principal, order_id)
            if order.status != CONFIRMABLE_STATUS:
                log.warning("order.confirm_not_allowed", current_status=order.status)
                raise InvalidOrderStatus(
                    f"Order {order_id} must be {CONFIRMABLE_STATUS} to be confirmed.",
                    expected=(CONFIRMABLE_STATUS,),
                    actual=order.status,
                    target=CONFIRMED_STATUS,
                )
            self._transition(order_id, (CONFIRMABLE_STATUS,), CONFIRMED_STATUS, log)
            finished = self._order_repo.finish_delivery_claims(
                order_id,
                None if principal.is_admin else principal.id,
                timezone.now(),
            )

        log.info("order.delivered", claims_finished=finished)
        return self._order_repo.get_by_id(order_id)

    def update_order_status(
        self, principal: Principal, order_id: str, new_status: str
    ) -> Order:
        """Generic status update for sellers, shippers and admins.

        Sellers must own a SKU in the order and shippers must have claimed
        it; both are limited to their role's transition table.  Admins
        bypass the state machine.

        Raises:
            InvalidOrderData: *new_status* is not a known status.
            OrderNotFound, AccessDenied, InvalidOrderStatus, PersistenceError.
        """
        self._policy.authorize(principal, OrderAction.UPDATE_STATUS)
        if new_status not in OrderStatus.values:
            raise InvalidOrderData(f"Unknown order status '{new_status}'.")
        log = logger.bind(
            order_id=order_id, principal_id=principal.id, new_status=new_status
        )

        with self._order_repo.atomic("update_status", order_id=order_id):
            order = self._locked_order(order_id)
            if principal.role == Role.SELLER:
                self._policy.ensure_seller_owns(principal, order_id)
            elif principal.role == Role.SHIPPER:
                self._policy.ensure_assigned_shipper(principal, order_id)

            if principal.is_admin:
                self._order_repo.set_status(order_id, new_status)
                log.info("order.status_overridden", previous_status=order.status)
            else:
                self._check_role_transition(principal.role, order.status, new_status)
                self._transition(order_id, (order.status,), new_status, log)
                log.info("order.status_updated", previous_status=order.status)

        return self._order_repo.get_by_id(order_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, principal: Principal, order_id: str) -> Order:
        """Retrieve a single order visible to *principal*.

        Raises:
            OrderNotFound: if the order does not exist.
            AccessDenied: the order is outside the principal's scope.
        """
        self._policy.authorize(principal, OrderAction.RETRIEVE)
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        self._policy.ensure_can_view(principal, order)
        return order

    def list_buyer_orders(
        self, principal: Principal, buyer_id: Optional[str] = None
    ) -> List[OrderSummaryDTO]:
        self._policy.authorize(principal, OrderAction.LIST_BUYER)
        target = self._policy.resolve_target_id(principal, buyer_id)
        return [
            OrderSummaryDTO.from_entity(order)
            for order in self._order_repo.list_for_buyer(target)
        ]

    def list_order_details(
        self,
        principal: Principal,
        status: Optional[str] = None,
        min_items: int = 0,
    ) -> List[OrderDetailDTO]:
        """Orders with buyer profiles, restricted to the principal's scope."""
        self._policy.authorize(principal, OrderAction.LIST_DETAILS)
        orders = self._order_repo.list_details(
            status=status,
            min_items=min_items,
            scope=self._policy.read_scope(principal),
        )
        return [OrderDetailDTO.from_entity(order) for order in orders]

    def list_seller_orders(
        self, principal: Principal, filters: SellerOrderFiltersDTO
    ) -> List[SellerOrderDTO]:
        self._policy.authorize(principal, OrderAction.LIST_SELLER)
        seller_id = self._policy.resolve_target_id(principal, filters.seller_id)
        rows = self._order_repo.list_for_seller(
            seller_id,
            status=filters.status,
            search=filters.search,
            limit=filters.limit,
            offset=filters.offset,
        )
        return [SellerOrderDTO(**row) for row in rows]

    def top_selling_products(
        self,
        principal: Principal,
        min_quantity: int = 0,
        seller_id: Optional[str] = None,
    ) -> List[TopSellingProductDTO]:
        """Quantity sold per SKU; sellers only ever see their own SKUs."""
        self._policy.authorize(principal, OrderAction.TOP_SELLING)
        if principal.role == Role.SELLER:
            seller_id = self._policy.resolve_target_id(principal, seller_id)
        rows = self._order_repo.top_selling_products(
            min_quantity=min_quantity, seller_id=seller_id
        )
        return [TopSellingProductDTO(**row) for row in rows]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _locked_order(self, order_id: str) -> Order:
        order = self._order_repo.get_for_update(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    @staticmethod
    def _check_role_transition(role: str, current: str, new_status: str) -> None:
        table = ROLE_TRANSITIONS.get(role, {})
        if new_status in table.get(current, frozenset()):
            return
        raise InvalidOrderStatus(
            f"Role '{role}' cannot move an order from {current} to {new_status}.",
            expected={src for src, targets in table.items() if new_status in targets},
            actual=current,
            target=new_status,
        )

    def _transition(
        self,
        order_id: str,
        expected: Collection[str],
        new_status: str,
        log,
    ) -> None:
        """Compare-and-set the status; losing the race raises ``InvalidOrderStatus``."""
        rows = self._order_repo.transition_status(order_id, expected, new_status)
        if rows == 0:
            self._raise_lost_race(order_id, expected, new_status, log)

    def _raise_lost_race(
        self,
        order_id: str,
        expected: Collection[str],
        new_status: str,
        log,
    ) -> None:
        actual = self._order_repo.current_status(order_id)
        log.warning("order.concurrent_change", actual_status=actual)
        if actual is None:
            raise OrderNotFound(f"Order {order_id} not found.")
        raise InvalidOrderStatus(
            f"Order {order_id} changed to {actual} concurrently.",
            expected=expected,
            actual=actual,
            target=new_status,
        )
