"""
Core App Views - Current user, addresses & tenant resolution
"""

from rest_framework import mixins, viewsets, permissions, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView
from django.contrib.auth import get_user_model

from .exceptions import AppError
from .permissions import IsAdmin
from .models import Address
from .serializers import AddressSerializer, UserSerializer, CompanySerializer
from .tenancy import get_company_by_path

User = get_user_model()


class UserViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for User model.

    - List: Admin only (scoped to the admin's company unless superuser)
    - Retrieve: Self, or admin
    - me: Any authenticated user
    """

    serializer_class = UserSerializer
    filterset_fields = ['company']
    search_fields = ['email', 'full_name', 'phone_number']

    def get_permissions(self):
        if self.action == 'list':
            return [IsAdmin()]
        return [permissions.IsAuthenticated()]

    def get_queryset(self):
        user = self.request.user
        queryset = User.objects.select_related('company')
        if user.is_superuser:
            return queryset
        if user.is_admin:
            return queryset.filter(company_id=user.company_id)
        # Non-admin can only see their own profile
        return queryset.filter(pk=user.pk)

    @action(detail=False, methods=['get'])
    def me(self, request):
        """Get current user profile."""
        serializer = self.get_serializer(request.user)
        return Response(serializer.data)


class TenantResolveView(APIView):
    """
    Resolve a tenant from its URL path segment.

    GET /api/tenants/<path>/ -> {id, name, path}
    """

    permission_classes = [permissions.AllowAny]

    def get(self, request, path):
        company = get_company_by_path(path)
        if company is None:
            raise AppError(f"Unknown tenant '{path}'", status.HTTP_404_NOT_FOUND)
        return Response(CompanySerializer(company).data)


class AddressViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    mixins.UpdateModelMixin,
    viewsets.GenericViewSet,
):
    """
    The caller's own delivery addresses.

    Coordinates are read-only here; delivery staff pin them from the
    dashboard or on site.
    """

    serializer_class = AddressSerializer
    filterset_fields = ['address_type', 'city']

    def get_queryset(self):
        return Address.objects.filter(user=self.request.user)

    def perform_create(self, serializer):
        serializer.save(user=self.request.user)
