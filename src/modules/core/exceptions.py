"""Project-wide DRF exception handler.

Every error response shares one envelope::

    {
        "type": "client_error" | "server_error",
        "errors": [{"code": "...", "detail": "...", "attr": "field" | null}]
    }

Extra top-level keys attached to an exception via ``extra`` (e.g. the
expected/actual status of a rejected transition) are merged into the
envelope so clients can render an actionable message.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler

logger = structlog.get_logger(__name__)


def api_exception_handler(exc: Exception, context: Dict[str, Any]):
    response = exception_handler(exc, context)
    if response is None:
        # Unhandled -> Django's 500 path; the view never swallows it.
        return None

    errors = _flatten_errors(response.data, getattr(exc, "default_code", "error"))
    body: Dict[str, Any] = {
        "type": "server_error" if response.status_code >= 500 else "client_error",
        "errors": errors,
    }
    extra = getattr(exc, "extra", None)
    if extra:
        body.update(extra)

    if response.status_code >= 500:
        logger.error("api.server_error", status_code=response.status_code)

    response.data = body
    return response


def _flatten_errors(
    data: Any, default_code: str, attr: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Turn DRF's nested ``detail`` structures into a flat error list."""
    if isinstance(data, dict):
        if "detail" in data and len(data) == 1:
            return _flatten_errors(data["detail"], default_code, attr)
        errors: List[Dict[str, Any]] = []
        for key, value in data.items():
            nested = key if attr is None else f"{attr}.{key}"
            if key == "non_field_errors":
                nested = attr
            errors.extend(_flatten_errors(value, default_code, nested))
        return errors
    if isinstance(data, list):
        errors = []
        for item in data:
            errors.extend(_flatten_errors(item, default_code, attr))
        return errors
    return [
        {
            "code": getattr(data, "code", None) or default_code,
            "detail": str(data),
            "attr": attr,
        }
    ]


class InvalidStateConflict(APIException):
    """HTTP form of a rejected lifecycle transition."""

    status_code = 400
    default_detail = "Operation not allowed for the current order status."
    default_code = "invalid_state"

    def __init__(
        self,
        detail: Optional[str] = None,
        expected: Optional[List[str]] = None,
        actual: Optional[str] = None,
    ) -> None:
        super().__init__(detail)
        self.extra = {"expected_status": expected or [], "actual_status": actual}


class PersistenceFailure(APIException):
    """Storage failure reported without leaking storage internals."""

    status_code = 500
    default_detail = "The order could not be saved. Please try again later."
    default_code = "persistence_error"
