"""
Orders App Views - Customer orders & delivery manager operations
"""

from django.db.models import Q
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from core.permissions import IsDeliveryStaff
from core.serializers import AddressSerializer, CoordinatesSerializer
from core.tenancy import TenantScopedMixin
from .filters import DeliveryItemFilter
from .models import DeliveryItem, DeliveryItemStatus, MenuItem, Order
from .serializers import (
    DeliveryItemSerializer, DeliveryItemStatusSerializer, MenuItemSerializer,
    OrderConfirmSerializer, OrderCreateSerializer,
    OrderListSerializer, OrderSerializer,
)
from .services import OrderService, order_by_slot


class MenuItemViewSet(TenantScopedMixin, viewsets.ReadOnlyModelViewSet):
    """Dishes the company currently sells."""

    serializer_class = MenuItemSerializer
    search_fields = ['name']
    ordering_fields = ['name', 'price']

    def get_queryset(self):
        return MenuItem.objects.filter(company=self.get_company(), is_active=True)


class OrderViewSet(
    TenantScopedMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Customer orders.

    - create: place a subscription order (expands into delivery items)
    - confirm: post-payment confirmation, idempotent
    - delivery_items: the order's items by date and slot
    """

    serializer_class = OrderSerializer
    filterset_fields = ['status']
    ordering_fields = ['created_at', 'order_date', 'total_price']

    def get_queryset(self):
        return Order.objects.filter(user=self.request.user).select_related('delivery_address')

    def get_serializer_class(self):
        if self.action == 'list':
            return OrderListSerializer
        return OrderSerializer

    def create(self, request):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.create_order(
            request.user, self.get_company(), serializer.validated_data
        )
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def confirm(self, request, pk=None):
        """Confirm after payment; creates delivery items if missing."""
        order = self.get_object()
        serializer = OrderConfirmSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = OrderService.confirm_order(order, serializer.validated_data)
        return Response({'success': True, **result})

    @action(detail=True, methods=['get'], url_path='delivery-items')
    def delivery_items(self, request, pk=None):
        order = self.get_object()
        items = order_by_slot(
            order.delivery_items.select_related('menu_item', 'address', 'user')
        )
        return Response(DeliveryItemSerializer(items, many=True).data)


class DeliveryItemViewSet(viewsets.GenericViewSet):
    """
    Delivery item status for customers.

    Customers see their own items; delivery staff also see the items
    of their company.
    """

    serializer_class = DeliveryItemSerializer

    def get_queryset(self):
        user = self.request.user
        scope = Q(user=user)
        if user.is_delivery_staff:
            scope |= Q(order__company_id=user.company_id)
        return DeliveryItem.objects.filter(scope).select_related(
            'order', 'menu_item', 'address', 'user'
        )

    @action(detail=True, methods=['get', 'patch'])
    def status(self, request, pk=None):
        item = self.get_object()
        if request.method == 'GET':
            return Response({'success': True, 'data': OrderService.item_status(item)})

        serializer = DeliveryItemStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = OrderService.update_item_status(
            item, serializer.validated_data['status'].strip().upper(), request.user
        )
        return Response(DeliveryItemSerializer(item).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        item = self.get_object()
        item = OrderService.update_item_status(item, DeliveryItemStatus.CANCELLED, request.user)
        return Response(DeliveryItemSerializer(item).data)


# ===========================================
# Delivery manager endpoints (tenant scoped)
# ===========================================

class ManagerDashboardView(TenantScopedMixin, APIView):
    """
    GET /api/delivery-manager/dashboard/

    Orders with their items, the company's delivery executives and
    order counts.
    """

    permission_classes = [IsDeliveryStaff]

    def get(self, request):
        from logistics.serializers import DeliveryExecutiveSerializer
        from logistics.services.executives import ExecutiveService

        company = self.get_company()
        orders = OrderService.dashboard_orders(company)
        executives = ExecutiveService.list_executives(company)

        return Response({
            'success': True,
            'data': {
                'orders': OrderSerializer(orders, many=True).data,
                'delivery_executives': DeliveryExecutiveSerializer(executives, many=True).data,
                'stats': OrderService.dashboard_stats(company),
            },
        })


class ManagerDeliveryItemViewSet(
    TenantScopedMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Company delivery items with filters and manager-side transitions."""

    permission_classes = [IsDeliveryStaff]
    serializer_class = DeliveryItemSerializer
    filterset_class = DeliveryItemFilter
    search_fields = ['user__full_name', 'user__email', 'address__street', 'address__city', 'menu_item__name']
    ordering_fields = ['delivery_date', 'status', 'updated_at']

    def get_queryset(self):
        return order_by_slot(
            DeliveryItem.objects.filter(order__company=self.get_company())
            .select_related('order', 'menu_item', 'address', 'user')
        )

    @action(detail=True, methods=['put'])
    def cancel(self, request, pk=None):
        item = OrderService.cancel_item(self.get_object())
        return Response({
            'success': True,
            'message': 'Delivery item cancelled successfully',
            'data': DeliveryItemSerializer(item).data,
        })

    @action(detail=True, methods=['patch'])
    def status(self, request, pk=None):
        serializer = DeliveryItemStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = OrderService.update_item_status(
            self.get_object(), serializer.validated_data['status'].strip().upper(), request.user
        )
        return Response({'success': True, 'data': DeliveryItemSerializer(item).data})

    @action(detail=True, methods=['put'])
    def coordinates(self, request, pk=None):
        """Pin the item's delivery address on the map."""
        serializer = CoordinatesSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        address = OrderService.update_item_coordinates(
            self.get_object(),
            serializer.validated_data['latitude'],
            serializer.validated_data['longitude'],
        )
        return Response({'success': True, 'data': AddressSerializer(address).data})


class ManagerOrderViewSet(TenantScopedMixin, viewsets.GenericViewSet):
    permission_classes = [IsDeliveryStaff]
    serializer_class = OrderSerializer

    def get_queryset(self):
        return Order.objects.filter(company=self.get_company())

    @action(detail=True, methods=['put'])
    def cancel(self, request, pk=None):
        order = OrderService.cancel_order(self.get_object())
        return Response({
            'success': True,
            'message': 'Order cancelled successfully',
            'data': OrderSerializer(order).data,
        })
