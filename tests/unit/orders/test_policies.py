"""Unit tests for the order access policy (role matrix, ownership, scoping)."""

from __future__ import annotations

import pytest

from modules.accounts.constants import Role
from modules.accounts.dtos import Principal
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import AccessDenied, AuthenticationRequired
from modules.orders.policies import OrderAccessPolicy, OrderAction

pytestmark = pytest.mark.unit


@pytest.fixture()
def policy(repository):
    return OrderAccessPolicy(repository)


# ===========================================================================
# Role matrix
# ===========================================================================


class TestRoleMatrix:
    @pytest.mark.parametrize(
        "action, allowed",
        [
            (OrderAction.CREATE, {Role.BUYER, Role.ADMIN}),
            (OrderAction.UPDATE, {Role.BUYER, Role.ADMIN}),
            (OrderAction.DELETE, {Role.BUYER, Role.ADMIN}),
            (OrderAction.CLAIM, {Role.SHIPPER, Role.ADMIN}),
            (OrderAction.CONFIRM, {Role.SHIPPER, Role.ADMIN}),
            (OrderAction.UPDATE_STATUS, {Role.SELLER, Role.SHIPPER, Role.ADMIN}),
            (OrderAction.LIST_BUYER, {Role.BUYER, Role.ADMIN}),
            (OrderAction.LIST_SELLER, {Role.SELLER, Role.ADMIN}),
            (OrderAction.LIST_DETAILS, set(Role)),
            (OrderAction.TOP_SELLING, set(Role)),
            (OrderAction.RETRIEVE, set(Role)),
        ],
    )
    def test_matrix(self, action, allowed):
        for role in Role:
            assert OrderAccessPolicy.is_allowed(role, action) == (role in allowed)

    def test_plain_string_roles_accepted(self):
        assert OrderAccessPolicy.is_allowed("buyer", OrderAction.CREATE)

    def test_unknown_role_denied(self):
        assert not OrderAccessPolicy.is_allowed(None, OrderAction.RETRIEVE)
        assert not OrderAccessPolicy.is_allowed("guest", OrderAction.RETRIEVE)

    def test_authorize_without_principal(self, policy):
        with pytest.raises(AuthenticationRequired):
            policy.authorize(None, OrderAction.CREATE)

    def test_authorize_wrong_role(self, policy):
        with pytest.raises(AccessDenied, match="shipper"):
            policy.authorize(Principal(id="x", role=Role.SHIPPER), OrderAction.CREATE)

    def test_authorize_allowed_role(self, policy):
        policy.authorize(Principal(id="x", role=Role.BUYER), OrderAction.CREATE)


# ===========================================================================
# Ownership
# ===========================================================================


class TestOwnership:
    def test_buyer_owns_own_order(self, policy, order_factory, buyer, principal_of):
        policy.ensure_buyer_owns(principal_of(buyer), order_factory())

    def test_buyer_does_not_own_other_order(
        self, policy, order_factory, other_buyer, principal_of
    ):
        with pytest.raises(AccessDenied):
            policy.ensure_buyer_owns(principal_of(other_buyer), order_factory())

    def test_admin_owns_everything(self, policy, order_factory, admin_user, principal_of):
        order = order_factory()
        admin = principal_of(admin_user)
        policy.ensure_buyer_owns(admin, order)
        policy.ensure_seller_owns(admin, order.id)
        policy.ensure_assigned_shipper(admin, order.id)

    def test_seller_owns_order_with_its_sku(
        self, policy, order_factory, seller, other_seller, principal_of
    ):
        order = order_factory()
        policy.ensure_seller_owns(principal_of(seller), order.id)
        with pytest.raises(AccessDenied):
            policy.ensure_seller_owns(principal_of(other_seller), order.id)

    def test_shipper_owns_claimed_order(
        self, policy, order_factory, repository, shipper, other_shipper, principal_of
    ):
        order = order_factory(status=OrderStatus.DISPATCHED)
        repository.add_delivery_claim(order.id, shipper.id)

        policy.ensure_assigned_shipper(principal_of(shipper), order.id)
        with pytest.raises(AccessDenied):
            policy.ensure_assigned_shipper(principal_of(other_shipper), order.id)

    def test_can_view_dispatches_on_role(
        self, policy, order_factory, other_buyer, seller, shipper, principal_of
    ):
        order = order_factory()
        policy.ensure_can_view(principal_of(seller), order)
        with pytest.raises(AccessDenied):
            policy.ensure_can_view(principal_of(other_buyer), order)
        with pytest.raises(AccessDenied):
            policy.ensure_can_view(principal_of(shipper), order)


# ===========================================================================
# Read scoping
# ===========================================================================


class TestReadScope:
    @pytest.mark.parametrize(
        "role, expected_key",
        [
            (Role.BUYER, "buyer_id"),
            (Role.SELLER, "seller_id"),
            (Role.SHIPPER, "shipper_id"),
        ],
    )
    def test_scope_keyed_by_role(self, role, expected_key):
        assert OrderAccessPolicy.read_scope(Principal(id="u1", role=role)) == {
            expected_key: "u1"
        }

    def test_admin_unscoped(self):
        assert OrderAccessPolicy.read_scope(Principal(id="a", role=Role.ADMIN)) == {}

    def test_target_defaults_to_requester(self):
        principal = Principal(id="u1", role=Role.SELLER)
        assert OrderAccessPolicy.resolve_target_id(principal, None) == "u1"
        assert OrderAccessPolicy.resolve_target_id(principal, "u1") == "u1"

    def test_only_admin_overrides_target(self):
        with pytest.raises(AccessDenied):
            OrderAccessPolicy.resolve_target_id(Principal(id="u1", role=Role.BUYER), "u2")
        admin = Principal(id="a", role=Role.ADMIN)
        assert OrderAccessPolicy.resolve_target_id(admin, "u2") == "u2"
