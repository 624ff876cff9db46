"""
Orders App URLs
"""

from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import (
    MenuItemViewSet, OrderViewSet, DeliveryItemViewSet,
    ManagerDashboardView, ManagerDeliveryItemViewSet, ManagerOrderViewSet,
)

router = SimpleRouter()
router.register(r'menu-items', MenuItemViewSet, basename='menu-item')
router.register(r'orders', OrderViewSet, basename='order')
router.register(r'delivery-items', DeliveryItemViewSet, basename='delivery-item')
router.register(r'delivery-manager/delivery-items', ManagerDeliveryItemViewSet, basename='manager-delivery-item')
router.register(r'delivery-manager/orders', ManagerOrderViewSet, basename='manager-order')

urlpatterns = [
    path('delivery-manager/dashboard/', ManagerDashboardView.as_view(), name='manager-dashboard'),
    path('', include(router.urls)),
]
