"""Order API views.

Exposes the ``OrderService`` via HTTP using DRF ViewSets.
Domain exceptions are translated into DRF exceptions (and from there
into the project error envelope) by ``order_errors``; the view never
swallows generic exceptions.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from django.conf import settings
from pydantic import ValidationError as DTOValidationError
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import (
    NotAuthenticated,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.viewsets import GenericViewSet

from modules.core.exceptions import InvalidStateConflict, PersistenceFailure
from modules.orders.dtos import CreateOrderDTO, SellerOrderFiltersDTO, UpdateOrderDTO
from modules.orders.exceptions import (
    AccessDenied,
    AuthenticationRequired,
    InvalidOrderData,
    InvalidOrderStatus,
    OrderNotFound,
    PersistenceError,
)
from modules.orders.models import Order
from modules.orders.permissions import OrderRolePermission, get_principal
from modules.orders.policies import OrderAction
from modules.orders.repositories import OrderDjangoRepository
from modules.orders.serializers import (
    BuyerOrdersQuerySerializer,
    CreateOrderSerializer,
    OrderDetailSerializer,
    OrderDetailsQuerySerializer,
    OrderSerializer,
    OrderSummarySerializer,
    SellerOrderSerializer,
    SellerOrdersQuerySerializer,
    TopSellingProductSerializer,
    TopSellingQuerySerializer,
    UpdateOrderSerializer,
    UpdateOrderStatusSerializer,
)
from modules.orders.services import OrderService


@contextmanager
def order_errors() -> Iterator[None]:
    """Re-raise order domain errors as the matching DRF exceptions."""
    try:
        yield
    except DTOValidationError as exc:
        raise ValidationError([error["msg"] for error in exc.errors()]) from exc
    except InvalidOrderData as exc:
        raise ValidationError(str(exc)) from exc
    except AuthenticationRequired as exc:
        raise NotAuthenticated(str(exc)) from exc
    except AccessDenied as exc:
        raise PermissionDenied(str(exc)) from exc
    except OrderNotFound as exc:
        raise NotFound(str(exc)) from exc
    except InvalidOrderStatus as exc:
        raise InvalidStateConflict(
            str(exc), expected=list(exc.expected), actual=exc.actual
        ) from exc
    except PersistenceError as exc:
        raise PersistenceFailure() from exc


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Uses ``OrderService`` with an injected repository (DIP).
    Does **not** extend ``ModelViewSet``: all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.all()
    permission_classes = [IsAuthenticated, OrderRolePermission]
    order_actions = {
        "create": OrderAction.CREATE,
        "retrieve": OrderAction.RETRIEVE,
        "update": OrderAction.UPDATE,
        "partial_update": OrderAction.UPDATE,
        "destroy": OrderAction.DELETE,
        "claim": OrderAction.CLAIM,
        "confirm": OrderAction.CONFIRM,
        "update_status": OrderAction.UPDATE_STATUS,
        "details": OrderAction.LIST_DETAILS,
        "my_orders": OrderAction.LIST_BUYER,
        "seller": OrderAction.LIST_SELLER,
        "top_selling": OrderAction.TOP_SELLING,
    }

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderService(
            order_repository=OrderDjangoRepository(using=settings.ORDERS_DB_ALIAS),
        )

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/"""
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with order_errors():
            dto = CreateOrderDTO(**serializer.validated_data)
            order = self._service.create_order(get_principal(request), dto)

        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # Retrieve / Update / Delete
    # ------------------------------------------------------------------

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        with order_errors():
            order = self._service.get_order(get_principal(request), pk)
        return Response(OrderSerializer(order).data)

    def update(self, request: Request, pk: str | None = None) -> Response:
        """PUT/PATCH /api/v1/orders/{pk}/

        Body: ``new_status`` and/or ``new_address``; omitted fields keep
        their stored value.
        """
        serializer = UpdateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with order_errors():
            dto = UpdateOrderDTO(**serializer.validated_data)
            order = self._service.update_order(get_principal(request), pk, dto)
        return Response(OrderSerializer(order).data)

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        return self.update(request, pk)

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/orders/{pk}/

        Only ``Pending`` and ``Processing`` orders can be cancelled.
        """
        with order_errors():
            self._service.cancel_order(get_principal(request), pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def claim(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/claim/ (Processing -> Dispatched)"""
        with order_errors():
            order = self._service.claim_order(get_principal(request), pk)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["post"])
    def confirm(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/confirm/ (Delivering -> Delivered)"""
        with order_errors():
            order = self._service.confirm_delivery(get_principal(request), pk)
        return Response(OrderSerializer(order).data)

    @action(detail=True, methods=["patch"], url_path="status")
    def update_status(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/status/"""
        serializer = UpdateOrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with order_errors():
            order = self._service.update_order_status(
                get_principal(request), pk, serializer.validated_data["status"]
            )
        return Response(OrderSerializer(order).data)

    # ------------------------------------------------------------------
    # Read projections
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"])
    def details(self, request: Request) -> Response:
        """GET /api/v1/orders/details/?status=&min_items="""
        query = OrderDetailsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        with order_errors():
            rows = self._service.list_order_details(
                get_principal(request),
                status=query.validated_data.get("status"),
                min_items=query.validated_data["min_items"],
            )
        return Response(OrderDetailSerializer(rows, many=True).data)

    @action(detail=False, methods=["get"], url_path="my-orders")
    def my_orders(self, request: Request) -> Response:
        """GET /api/v1/orders/my-orders/?buyer_id= (buyer_id: admins only)"""
        query = BuyerOrdersQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        with order_errors():
            rows = self._service.list_buyer_orders(
                get_principal(request), buyer_id=query.validated_data.get("buyer_id")
            )
        return Response(OrderSummarySerializer(rows, many=True).data)

    @action(detail=False, methods=["get"])
    def seller(self, request: Request) -> Response:
        """GET /api/v1/orders/seller/?status=&search=&limit=&offset=&seller_id="""
        query = SellerOrdersQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        with order_errors():
            filters = SellerOrderFiltersDTO(**query.validated_data)
            rows = self._service.list_seller_orders(get_principal(request), filters)
        return Response(SellerOrderSerializer(rows, many=True).data)

    @action(detail=False, methods=["get"], url_path="reports/top-selling")
    def top_selling(self, request: Request) -> Response:
        """GET /api/v1/orders/reports/top-selling/?min_quantity=&seller_id="""
        query = TopSellingQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        with order_errors():
            rows = self._service.top_selling_products(
                get_principal(request),
                min_quantity=query.validated_data["min_quantity"],
                seller_id=query.validated_data.get("seller_id"),
            )
        return Response(TopSellingProductSerializer(rows, many=True).data)
