"""Base abstract model shared by the marketplace apps.

``BaseModel`` gives every record an opaque string primary key generated
by ``modules.core.identifiers.generate_id`` plus ``created_at`` /
``updated_at`` bookkeeping.  ``created_at`` is server-assigned and never
editable.
"""

from __future__ import annotations

from django.db import models

from modules.core.identifiers import generate_id


class BaseModel(models.Model):
    """Abstract base with string PK and timestamp bookkeeping."""

    id = models.CharField(
        primary_key=True,
        max_length=100,
        default=generate_id,
        editable=False,
    )
    created_at = models.DateTimeField(auto_now_add=True, editable=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    def save(self, *args, **kwargs) -> None:
        """Ensure ``updated_at`` is refreshed even when ``update_fields`` is passed."""
        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "updated_at" not in update_fields:
            kwargs["update_fields"] = list(update_fields) + ["updated_at"]
        super().save(*args, **kwargs)
