"""
MealRoute Main URL Configuration
"""

from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core import health


# ===========================================
# ADMIN SITE CUSTOMIZATION
# ===========================================
admin.site.site_header = "MealRoute Operations"
admin.site.site_title = "MealRoute Admin"
admin.site.index_title = "Orders, executives & route runs"


@api_view(['GET'])
@permission_classes([AllowAny])
def api_root(request):
    """API Root endpoint with available routes."""
    return Response({
        'name': 'MealRoute API',
        'version': '1.0.0',
        'endpoints': {
            'auth': {
                'token': '/api/auth/token/',
                'refresh': '/api/auth/token/refresh/',
            },
            'me': '/api/users/me/',
            'tenants': '/api/tenants/<path>/',
            'addresses': '/api/addresses/',
            'menu_items': '/api/menu-items/',
            'orders': '/api/orders/',
            'delivery_items': '/api/delivery-items/',
            'delivery_manager': {
                'dashboard': '/api/delivery-manager/dashboard/',
                'delivery_items': '/api/delivery-manager/delivery-items/',
            },
            'executives': '/api/executives/',
            'route_planner': '/api/route-planner/',
            'route_program': '/api/route-program/',
            'route_runs': '/api/route-runs/',
        }
    })


urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # Health probes
    path('health/', health.health_check, name='health'),
    path('health/ready/', health.readiness_check, name='health-ready'),

    # API Root & schema
    path('api/', api_root, name='api-root'),
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),

    # App URLs
    path('api/', include('core.urls')),
    path('api/', include('orders.urls')),
    path('api/', include('logistics.urls')),
]

# Serve media files in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
