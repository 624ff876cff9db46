"""
ORDERS App - Meal subscription orders & per-meal delivery items

Handles: Menu items (priced per company), Orders, Delivery items
"""

import uuid
from decimal import Decimal
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


class MealType(models.TextChoices):
    """Meal session a delivery belongs to."""
    BREAKFAST = 'breakfast', 'Breakfast'
    LUNCH = 'lunch', 'Lunch'
    DINNER = 'dinner', 'Dinner'


# Order-time labels used by the storefront checkout
ORDER_TIME_SLOTS = {
    'Morning': MealType.BREAKFAST,
    'Noon': MealType.LUNCH,
    'Night': MealType.DINNER,
}


def to_meal_type(value, default=MealType.BREAKFAST):
    """
    Map a meal type or order-time label to a MealType.

    'lunch', 'Lunch' and 'Noon' all map to MealType.LUNCH.
    Unknown values fall back to `default`.
    """
    if value is None:
        return default
    text = str(value).strip()
    if text in ORDER_TIME_SLOTS:
        return ORDER_TIME_SLOTS[text]
    lowered = text.lower()
    if lowered in MealType.values:
        return MealType(lowered)
    return default


class MenuItem(models.Model):
    """Priced dish a company sells. Managed from the admin."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(
        'core.Company',
        on_delete=models.CASCADE,
        related_name='menu_items',
        verbose_name="Company"
    )
    name = models.CharField(max_length=150, verbose_name="Name")
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))],
        verbose_name="Price (INR)"
    )
    is_active = models.BooleanField(default=True, verbose_name="Available")

    class Meta:
        verbose_name = "Menu item"
        verbose_name_plural = "Menu items"
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.price} INR)"


class OrderStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    CONFIRMED = 'CONFIRMED', 'Confirmed'
    DELIVERED = 'DELIVERED', 'Delivered'
    CANCELLED = 'CANCELLED', 'Cancelled'


class Order(models.Model):
    """
    A customer's meal subscription order.

    One order fans out into one DeliveryItem per selected date and
    meal, each with its own status.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='orders',
        verbose_name="Customer"
    )
    company = models.ForeignKey(
        'core.Company',
        on_delete=models.CASCADE,
        related_name='orders',
        verbose_name="Company"
    )
    order_date = models.DateField(verbose_name="Order date")
    order_times = models.JSONField(default=list, blank=True, verbose_name="Meals")
    total_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('0.00'),
        verbose_name="Total (INR)"
    )
    delivery_address = models.ForeignKey(
        'core.Address',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders',
        verbose_name="Primary delivery address"
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
        db_index=True,
        verbose_name="Status"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Order"
        verbose_name_plural = "Orders"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['company', 'status']),
        ]

    def __str__(self):
        return f"Order #{str(self.id)[:8]} - {self.user} ({self.get_status_display()})"

    @property
    def is_closed(self) -> bool:
        return self.status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


class DeliveryItemStatus(models.TextChoices):
    PENDING = 'PENDING', 'Pending'
    CONFIRMED = 'CONFIRMED', 'Confirmed'
    IN_PROGRESS = 'IN_PROGRESS', 'In progress'
    DELIVERED = 'DELIVERED', 'Delivered'
    CANCELLED = 'CANCELLED', 'Cancelled'


TERMINAL_ITEM_STATUSES = (DeliveryItemStatus.DELIVERED, DeliveryItemStatus.CANCELLED)


class DeliveryItem(models.Model):
    """One meal to deliver on a given date and session."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name='delivery_items',
        verbose_name="Order"
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='delivery_items',
        verbose_name="Customer"
    )
    menu_item = models.ForeignKey(
        MenuItem,
        on_delete=models.PROTECT,
        related_name='delivery_items',
        verbose_name="Menu item"
    )
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])
    delivery_date = models.DateField(db_index=True, verbose_name="Delivery date")
    delivery_time_slot = models.CharField(
        max_length=10,
        choices=MealType.choices,
        default=MealType.BREAKFAST,
        verbose_name="Time slot"
    )
    address = models.ForeignKey(
        'core.Address',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='delivery_items',
        verbose_name="Delivery address"
    )
    status = models.CharField(
        max_length=20,
        choices=DeliveryItemStatus.choices,
        default=DeliveryItemStatus.PENDING,
        db_index=True,
        verbose_name="Status"
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Delivery item"
        verbose_name_plural = "Delivery items"
        ordering = ['delivery_date', 'created_at']
        indexes = [
            models.Index(fields=['delivery_date', 'delivery_time_slot']),
        ]

    def __str__(self):
        return f"{self.menu_item.name} x{self.quantity} - {self.delivery_date} {self.delivery_time_slot}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ITEM_STATUSES

    @property
    def line_total(self) -> Decimal:
        return self.menu_item.price * self.quantity
