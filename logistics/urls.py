"""
Logistics App URLs
"""

from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import (
    DeliveryPhotoView, ExecutiveViewSet, RoutePlannerViewSet,
    RouteProgramViewSet, RouteRunViewSet,
)

router = SimpleRouter()
router.register(r'executives', ExecutiveViewSet, basename='executive')
router.register(r'route-planner', RoutePlannerViewSet, basename='route-planner')
router.register(r'route-program', RouteProgramViewSet, basename='route-program')
router.register(r'route-runs', RouteRunViewSet, basename='route-run')

urlpatterns = [
    path(
        'executives/delivery-items/<uuid:pk>/photo/',
        DeliveryPhotoView.as_view(),
        name='executive-delivery-photo',
    ),
    path('', include(router.urls)),
]
