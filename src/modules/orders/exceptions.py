"""Order domain exceptions.

Raised by the Order Store and the lifecycle service when a request
cannot be honoured.  The API layer (Views) translates them into HTTP
responses; nothing below the views swallows them.
"""

from __future__ import annotations

from typing import Iterable, Optional, Tuple


class OrderError(Exception):
    """Base class for every order subsystem failure."""


class InvalidOrderData(OrderError):
    """Missing or malformed input; the caller can fix the request."""


class AuthenticationRequired(OrderError):
    """No usable principal accompanies the request."""


class AccessDenied(OrderError):
    """The principal is authenticated but not allowed to do this."""


class OrderNotFound(OrderError):
    """The referenced order does not exist."""


class InvalidOrderStatus(OrderError):
    """The operation is not legal for the order's current status.

    ``expected`` lists the statuses the operation requires, ``actual`` is
    the status the order was found in and ``target`` the status that was
    requested, when there is one.
    """

    def __init__(
        self,
        message: str,
        expected: Iterable[str] = (),
        actual: Optional[str] = None,
        target: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.expected: Tuple[str, ...] = tuple(sorted(str(s) for s in expected))
        self.actual = str(actual) if actual is not None else None
        self.target = str(target) if target is not None else None


class PersistenceError(OrderError):
    """Storage failure; every write of the operation was rolled back."""
