"""
Logistics App Filters
"""

import django_filters

from orders.models import MealType
from .models import RouteRun, RouteRunStatus


class RouteRunFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=RouteRunStatus.choices)
    delivery_session = django_filters.ChoiceFilter(choices=MealType.choices)
    delivery_date = django_filters.DateFilter()
    created_after = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    created_before = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = RouteRun
        fields = ['status', 'delivery_session', 'delivery_date']
