"""
Tenant resolution.

A request targets a company through, in order of precedence:
the X-Company-ID header, the `company_id` query parameter,
`company_id` in the request body, then the authenticated user's company.
"""

import uuid

from rest_framework import status

from .exceptions import AppError
from .models import Company


def get_company_by_path(path):
    """Return the active company whose lower-cased name matches `path`."""
    if not path or not str(path).strip():
        return None
    return Company.objects.filter(
        name__iexact=str(path).strip(),
        is_active=True,
    ).first()


def resolve_company_id(request):
    header = request.headers.get('X-Company-ID')
    if header:
        return header.strip()

    query_params = getattr(request, 'query_params', request.GET)
    if query_params.get('company_id'):
        return query_params['company_id'].strip()

    data = getattr(request, 'data', None)
    if hasattr(data, 'get') and data.get('company_id'):
        return str(data['company_id']).strip()

    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated and user.company_id:
        return str(user.company_id)

    return None


class TenantScopedMixin:
    """View mixin exposing the company a request operates on."""

    def get_company(self) -> Company:
        if hasattr(self, '_company'):
            return self._company

        company_id = resolve_company_id(self.request)
        if not company_id:
            raise AppError("company_id is required", status.HTTP_400_BAD_REQUEST)

        try:
            company = Company.objects.get(pk=uuid.UUID(str(company_id)))
        except (ValueError, Company.DoesNotExist):
            raise AppError("Company not found", status.HTTP_404_NOT_FOUND)

        user = self.request.user
        if not user.is_admin and user.company_id != company.pk:
            raise AppError(
                "You do not have access to this company",
                status.HTTP_403_FORBIDDEN,
            )

        self._company = company
        return company
