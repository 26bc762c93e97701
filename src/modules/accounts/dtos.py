"""Account DTOs.

``Principal`` is the authenticated caller handed to the order services:
just an id and a role, independent of the HTTP layer.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, ConfigDict

from modules.accounts.constants import Role

if TYPE_CHECKING:
    from modules.accounts.models import User


class Principal(BaseModel):
    """Immutable authenticated caller."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class BuyerProfileDTO(BaseModel):
    """Public buyer profile attached to order detail rows.

    Credential fields (password, permissions, staff flags) are not part of
    this contract, so they can never be serialised.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    username: str
    full_name: str
    email: str
    gender: str
    age: Optional[int]
    date_of_birth: Optional[date]
    address: str
    rank: str

    @classmethod
    def from_entity(cls, user: User) -> BuyerProfileDTO:
        return cls(
            id=user.id,
            username=user.username,
            full_name=user.full_name,
            email=user.email,
            gender=user.gender,
            age=user.age,
            date_of_birth=user.date_of_birth,
            address=user.address,
            rank=user.rank,
        )
