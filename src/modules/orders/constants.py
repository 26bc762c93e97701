"""Order domain constants.

Defines the status enumeration and the transition tables of the order
lifecycle.  Engine-driven transitions (claim, confirm delivery) are
fixed; the generic status update consults ``ROLE_TRANSITIONS`` for
sellers and shippers, while admins bypass it entirely.
"""

from django.db import models

from modules.accounts.constants import Role


class OrderStatus(models.TextChoices):
    PENDING = "Pending", "Pending"
    PROCESSING = "Processing", "Processing"
    DISPATCHED = "Dispatched", "Dispatched"
    DELIVERING = "Delivering", "Delivering"
    DELIVERED = "Delivered", "Delivered"
    SHIPPED = "Shipped", "Shipped"
    CANCELLED = "Cancelled", "Cancelled"


# Statuses an order may be created in.
INITIAL_STATES: frozenset[str] = frozenset(
    {OrderStatus.PENDING, OrderStatus.PROCESSING}
)

# Deletion (cancellation) and address edits stop once the order leaves the
# seller: nothing dispatched, in transit or delivered may change.
DELETABLE_STATES: frozenset[str] = frozenset(
    {OrderStatus.PENDING, OrderStatus.PROCESSING}
)
ADDRESS_EDITABLE_STATES: frozenset[str] = DELETABLE_STATES

# claimOrder: Processing -> Dispatched
CLAIMABLE_STATUS = OrderStatus.PROCESSING
CLAIMED_STATUS = OrderStatus.DISPATCHED

# confirmDelivery: Delivering -> Delivered
CONFIRMABLE_STATUS = OrderStatus.DELIVERING
CONFIRMED_STATUS = OrderStatus.DELIVERED

ROLE_TRANSITIONS: dict[str, dict[str, frozenset[str]]] = {
    Role.BUYER: {
        OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING}),
    },
    Role.SELLER: {
        OrderStatus.PENDING: frozenset(
            {OrderStatus.PROCESSING, OrderStatus.CANCELLED}
        ),
        OrderStatus.PROCESSING: frozenset({OrderStatus.CANCELLED}),
    },
    Role.SHIPPER: {
        OrderStatus.DISPATCHED: frozenset({OrderStatus.DELIVERING}),
    },
}

# Orders whose items count as sold in the top-selling report.
SOLD_STATES: frozenset[str] = frozenset({OrderStatus.DELIVERED})

SELLER_ORDERS_DEFAULT_LIMIT = 20
