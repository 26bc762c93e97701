"""Identifier generation for persisted records.

Every order, line item, delivery claim and user is keyed by an opaque
string.  UUIDv7 keeps ids collision-resistant across processes while
preserving creation order, so newest-first scans stay index friendly.
"""

from __future__ import annotations

import uuid6


def generate_id() -> str:
    """Return a new opaque, time-ordered identifier (32 hex characters)."""
    return uuid6.uuid7().hex
