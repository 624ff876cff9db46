"""
Order Service for MealRoute

Expands subscription orders into per-meal delivery items and applies
status transitions for customers and delivery staff.

Expansion:
    selected_dates x order_items -> one DeliveryItem each, unless the
    customer skipped that meal on that date. A meal-specific address
    (delivery_locations[meal_type]) overrides the primary address.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from django.db import transaction
from django.db.models import Case, Count, F, IntegerField, Q, Value, When
from django.utils import timezone
from rest_framework import status

from core.exceptions import AppError
from core.models import Address
from .models import (
    DeliveryItem, DeliveryItemStatus, MealType, MenuItem, Order, OrderStatus,
    to_meal_type,
)

logger = logging.getLogger(__name__)


SLOT_ORDER = Case(
    When(delivery_time_slot=MealType.BREAKFAST, then=Value(0)),
    When(delivery_time_slot=MealType.LUNCH, then=Value(1)),
    When(delivery_time_slot=MealType.DINNER, then=Value(2)),
    default=Value(3),
    output_field=IntegerField(),
)


def order_by_slot(queryset):
    """Order delivery items by date, then breakfast -> lunch -> dinner."""
    return queryset.annotate(slot_rank=SLOT_ORDER).order_by('delivery_date', 'slot_rank', 'created_at')


def _normalize_skip_meals(skip_meals) -> Dict[str, set]:
    """{'2026-01-05': {'Lunch': True}} -> {'2026-01-05': {'lunch'}}"""
    normalized = {}
    for day, meals in (skip_meals or {}).items():
        if not isinstance(meals, dict):
            continue
        skipped = {to_meal_type(meal, default=None) for meal, flag in meals.items() if flag}
        skipped.discard(None)
        if skipped:
            normalized[str(day)] = skipped
    return normalized


def _meal_locations(delivery_locations) -> Dict[str, str]:
    """{'Noon': addr_id} -> {'lunch': addr_id}; unknown meal keys are rejected."""
    locations = {}
    unknown = []
    for meal, address_id in (delivery_locations or {}).items():
        if not address_id:
            continue
        meal_type = to_meal_type(meal, default=None)
        if meal_type is None:
            unknown.append(str(meal))
            continue
        locations[meal_type] = address_id
    if unknown:
        raise AppError(
            "Unknown meal in delivery_locations",
            status.HTTP_400_BAD_REQUEST,
            details={'delivery_locations': sorted(unknown)},
        )
    return locations


def _unique_dates(dates) -> list:
    seen = []
    for day in dates:
        if day not in seen:
            seen.append(day)
    return sorted(seen)


class OrderService:
    """Order placement and delivery item lifecycle."""

    @classmethod
    def _load_addresses(cls, user, address_ids) -> Dict[str, Address]:
        ids = {str(a) for a in address_ids if a}
        addresses = {str(a.pk): a for a in Address.objects.filter(user=user, pk__in=ids)}
        missing = ids - set(addresses)
        if missing:
            raise AppError(
                "Address not found for this user",
                status.HTTP_400_BAD_REQUEST,
                details={'address_ids': sorted(missing)},
            )
        return addresses

    @classmethod
    def _load_menu_items(cls, company, menu_item_ids) -> Dict[str, MenuItem]:
        ids = {str(m) for m in menu_item_ids}
        items = {
            str(m.pk): m
            for m in MenuItem.objects.filter(company=company, is_active=True, pk__in=ids)
        }
        missing = ids - set(items)
        if missing:
            raise AppError(
                "Menu item not available",
                status.HTTP_400_BAD_REQUEST,
                details={'menu_item_ids': sorted(missing)},
            )
        return items

    @classmethod
    def _expand(
        cls,
        order: Order,
        entries: List[dict],
        dates: list,
        skip_meals: dict,
        locations: Dict[str, Optional[Address]],
        primary_address: Optional[Address],
    ) -> List[DeliveryItem]:
        """
        Build (unsaved) delivery items for every date x entry pair.

        Each entry is {'menu_item': MenuItem, 'quantity': int, 'meal_type': MealType}.
        """
        skipped = _normalize_skip_meals(skip_meals)
        items = []
        for day in _unique_dates(dates):
            day_skips = skipped.get(day.isoformat(), set())
            for entry in entries:
                meal_type = entry['meal_type']
                if meal_type in day_skips:
                    continue
                items.append(DeliveryItem(
                    order=order,
                    user=order.user,
                    menu_item=entry['menu_item'],
                    quantity=entry['quantity'],
                    delivery_date=day,
                    delivery_time_slot=meal_type,
                    address=locations.get(meal_type) or primary_address,
                ))
        return items

    @classmethod
    def create_order(cls, user, company, data: dict) -> Order:
        """
        Place an order and create its delivery items.

        Args:
            data: validated payload with order_date, delivery_address_id,
                order_items, selected_dates, skip_meals, delivery_locations
        """
        locations_in = _meal_locations(data.get('delivery_locations'))
        addresses = cls._load_addresses(
            user, [data['delivery_address_id'], *locations_in.values()]
        )
        primary_address = addresses[str(data['delivery_address_id'])]
        locations = {meal: addresses[str(aid)] for meal, aid in locations_in.items()}

        menu_items = cls._load_menu_items(
            company, [entry['menu_item_id'] for entry in data['order_items']]
        )
        entries = [
            {
                'menu_item': menu_items[str(entry['menu_item_id'])],
                'quantity': entry.get('quantity') or 1,
                'meal_type': to_meal_type(entry.get('meal_type')),
            }
            for entry in data['order_items']
        ]

        with transaction.atomic():
            order = Order.objects.create(
                user=user,
                company=company,
                order_date=data.get('order_date') or timezone.localdate(),
                delivery_address=primary_address,
                status=OrderStatus.PENDING,
            )
            items = cls._expand(
                order, entries, data['selected_dates'],
                data.get('skip_meals'), locations, primary_address,
            )
            if not items:
                raise AppError(
                    "Every meal was skipped; nothing to deliver",
                    status.HTTP_400_BAD_REQUEST,
                )
            DeliveryItem.objects.bulk_create(items)

            meal_times = []
            for item in items:
                if item.delivery_time_slot not in meal_times:
                    meal_times.append(item.delivery_time_slot)
            order.order_times = [str(m) for m in meal_times]
            order.total_price = sum((item.line_total for item in items), Decimal('0.00'))
            order.save(update_fields=['order_times', 'total_price', 'updated_at'])

        logger.info(
            f"[ORDERS] Order {order.pk} placed by {user.pk}: "
            f"{len(items)} delivery items, total {order.total_price}"
        )
        return order

    @classmethod
    def confirm_order(cls, order: Order, schedule: Optional[dict] = None) -> dict:
        """
        Confirm an order after payment, creating its delivery items if needed.

        Safe to call repeatedly: an order that already has items is only
        marked CONFIRMED.
        """
        with transaction.atomic():
            order = Order.objects.select_for_update().get(pk=order.pk)

            if order.status == OrderStatus.CANCELLED:
                raise AppError("Cannot confirm a cancelled order", status.HTTP_400_BAD_REQUEST)

            existing = order.delivery_items.count()
            if existing:
                if order.status == OrderStatus.PENDING:
                    order.status = OrderStatus.CONFIRMED
                    order.save(update_fields=['status', 'updated_at'])
                return {
                    'order_id': str(order.pk),
                    'created': 0,
                    'count': existing,
                    'message': 'Delivery items already exist',
                }

            schedule = schedule or {}
            order_times = schedule.get('order_times') or order.order_times
            if not order_times or not schedule.get('selected_dates') or not schedule.get('order_items'):
                raise AppError(
                    "order_times, selected_dates and order_items are required",
                    status.HTTP_400_BAD_REQUEST,
                )

            first_entry = schedule['order_items'][0]
            menu_item = cls._load_menu_items(order.company, [first_entry['menu_item_id']])[
                str(first_entry['menu_item_id'])
            ]

            meal_types = []
            for label in order_times:
                meal_type = to_meal_type(label)
                if meal_type not in meal_types:
                    meal_types.append(meal_type)
            entries = [
                {'menu_item': menu_item, 'quantity': 1, 'meal_type': meal_type}
                for meal_type in meal_types
            ]

            locations_in = _meal_locations(schedule.get('delivery_locations'))
            addresses = cls._load_addresses(order.user, locations_in.values())
            locations = {meal: addresses[str(aid)] for meal, aid in locations_in.items()}

            items = cls._expand(
                order, entries, schedule['selected_dates'],
                schedule.get('skip_meals'), locations, order.delivery_address,
            )
            if not items:
                raise AppError(
                    "Every meal was skipped; nothing to deliver",
                    status.HTTP_400_BAD_REQUEST,
                )
            DeliveryItem.objects.bulk_create(items)

            order.order_times = [str(m) for m in meal_types]
            order.status = OrderStatus.CONFIRMED
            order.save(update_fields=['order_times', 'status', 'updated_at'])

        logger.info(f"[ORDERS] Order {order.pk} confirmed with {len(items)} delivery items")
        return {
            'order_id': str(order.pk),
            'created': len(items),
            'count': len(items),
            'message': 'Delivery items created',
        }

    # ===========================================
    # Delivery item transitions
    # ===========================================

    @classmethod
    def update_item_status(cls, item: DeliveryItem, new_status: str, actor) -> DeliveryItem:
        """
        Change a delivery item's status.

        Delivery staff may set any status on an open item. Customers may
        only cancel their own items. DELIVERED and CANCELLED are final.
        """
        if new_status not in DeliveryItemStatus.values:
            raise AppError(
                "Invalid status",
                status.HTTP_400_BAD_REQUEST,
                details={'valid_statuses': list(DeliveryItemStatus.values)},
            )

        if not actor.is_delivery_staff:
            if item.user_id != actor.pk:
                raise AppError(
                    "You can only update your own delivery items",
                    status.HTTP_403_FORBIDDEN,
                )
            if new_status != DeliveryItemStatus.CANCELLED:
                raise AppError(
                    "Customers can only cancel delivery items",
                    status.HTTP_403_FORBIDDEN,
                )
            return cls.cancel_item(item)

        if new_status == DeliveryItemStatus.CANCELLED:
            return cls.cancel_item(item)

        if item.is_terminal:
            raise AppError(
                f"Delivery item is already {item.status}",
                status.HTTP_400_BAD_REQUEST,
            )

        item.status = new_status
        item.save(update_fields=['status', 'updated_at'])
        logger.info(f"[ORDERS] Delivery item {item.pk} -> {new_status} by {actor.pk}")
        return item

    @classmethod
    def cancel_item(cls, item: DeliveryItem) -> DeliveryItem:
        if item.status == DeliveryItemStatus.DELIVERED:
            raise AppError("Cannot cancel a delivered item", status.HTTP_400_BAD_REQUEST)
        if item.status == DeliveryItemStatus.CANCELLED:
            raise AppError("Delivery item is already cancelled", status.HTTP_400_BAD_REQUEST)

        item.status = DeliveryItemStatus.CANCELLED
        item.save(update_fields=['status', 'updated_at'])
        logger.info(f"[ORDERS] Delivery item {item.pk} cancelled")
        return item

    @classmethod
    def cancel_order(cls, order: Order) -> Order:
        """Cancel an order and every one of its delivery items."""
        with transaction.atomic():
            order = Order.objects.select_for_update().get(pk=order.pk)
            if order.status == OrderStatus.DELIVERED:
                raise AppError("Cannot cancel a delivered order", status.HTTP_400_BAD_REQUEST)
            if order.status == OrderStatus.CANCELLED:
                raise AppError("Order is already cancelled", status.HTTP_400_BAD_REQUEST)

            cancelled = order.delivery_items.update(
                status=DeliveryItemStatus.CANCELLED,
                updated_at=timezone.now(),
            )
            order.status = OrderStatus.CANCELLED
            order.save(update_fields=['status', 'updated_at'])

        logger.info(f"[ORDERS] Order {order.pk} cancelled ({cancelled} delivery items)")
        return order

    @classmethod
    def item_status(cls, item: DeliveryItem) -> dict:
        return {
            'delivery_item_id': str(item.pk),
            'address_id': str(item.address_id) if item.address_id else None,
            'status': item.status,
            'delivery_date': item.delivery_date.isoformat(),
            'delivery_time_slot': item.delivery_time_slot,
            'updated_at': item.updated_at.isoformat(),
            'order_status': item.order.status,
            'order_date': item.order.order_date.isoformat(),
        }

    @classmethod
    def update_item_coordinates(cls, item: DeliveryItem, latitude, longitude) -> Address:
        if item.address is None:
            raise AppError("Delivery item has no address", status.HTTP_404_NOT_FOUND)
        try:
            item.address.set_coordinates(latitude, longitude)
        except ValueError as e:
            raise AppError(str(e), status.HTTP_400_BAD_REQUEST)
        return item.address

    # ===========================================
    # Delivery manager dashboard
    # ===========================================

    @classmethod
    def dashboard_orders(cls, company):
        return (
            Order.objects.filter(company=company)
            .select_related('user', 'delivery_address')
            .prefetch_related('delivery_items__menu_item', 'delivery_items__address')
        )

    @classmethod
    def dashboard_stats(cls, company) -> dict:
        """
        Order counts for the manager dashboard.

        pending:   at least one item still PENDING
        completed: has items and all of them DELIVERED
        cancelled: at least one item CANCELLED
        """
        orders = Order.objects.filter(company=company).annotate(
            n_items=Count('delivery_items'),
            n_pending=Count('delivery_items', filter=Q(delivery_items__status=DeliveryItemStatus.PENDING)),
            n_delivered=Count('delivery_items', filter=Q(delivery_items__status=DeliveryItemStatus.DELIVERED)),
            n_cancelled=Count('delivery_items', filter=Q(delivery_items__status=DeliveryItemStatus.CANCELLED)),
        )
        return {
            'total_orders': orders.count(),
            'pending_orders': orders.filter(n_pending__gt=0).count(),
            'completed_orders': orders.filter(n_items__gt=0, n_delivered=F('n_items')).count(),
            'cancelled_orders': orders.filter(n_cancelled__gt=0).count(),
        }
