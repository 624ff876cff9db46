"""
Orders App Filters - delivery item listing for delivery staff
"""

import django_filters
from django.db.models import Q

from .models import DeliveryItem, DeliveryItemStatus, MealType


class DeliveryItemFilter(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=DeliveryItemStatus.choices)
    delivery_time_slot = django_filters.ChoiceFilter(choices=MealType.choices)
    delivery_date = django_filters.DateFilter()
    date_from = django_filters.DateFilter(field_name='delivery_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='delivery_date', lookup_expr='lte')
    customer = django_filters.CharFilter(method='filter_customer')
    city = django_filters.CharFilter(field_name='address__city', lookup_expr='icontains')
    order = django_filters.UUIDFilter(field_name='order_id')

    class Meta:
        model = DeliveryItem
        fields = ['status', 'delivery_time_slot', 'delivery_date', 'order']

    def filter_customer(self, queryset, name, value):
        return queryset.filter(
            Q(user__full_name__icontains=value) | Q(user__email__icontains=value)
        )
