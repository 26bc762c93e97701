"""Marketplace user model.

The authenticated principal of every order operation.  Identity and role
management live in the user service; this model is the local projection
the order subsystem joins against (buyer profile on order listings,
seller ownership of SKUs, shipper on delivery claims).

- ``id`` is an opaque string generated by ``generate_id``.
- ``role`` drives the order access policy.
- ``password`` is the Django hash and must never leave the API.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from django.contrib.auth.models import AbstractUser
from django.db import models

from modules.accounts.constants import Role
from modules.core.identifiers import generate_id


class User(AbstractUser):
    id = models.CharField(
        primary_key=True,
        max_length=100,
        default=generate_id,
        editable=False,
    )
    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.BUYER,
    )
    full_name = models.CharField(max_length=255, blank=True, default="")
    gender = models.CharField(max_length=20, blank=True, default="")
    date_of_birth = models.DateField(null=True, blank=True)
    address = models.CharField(max_length=255, blank=True, default="")
    rank = models.CharField(max_length=50, blank=True, default="")

    class Meta:
        db_table = "users"
        indexes = [
            models.Index(fields=["role"], name="users_role_idx"),
        ]

    @property
    def age(self) -> Optional[int]:
        if self.date_of_birth is None:
            return None
        today = date.today()
        born = self.date_of_birth
        return today.year - born.year - ((today.month, today.day) < (born.month, born.day))

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"
