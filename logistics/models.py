"""
LOGISTICS App - Delivery Executives & Route Runs for MealRoute

Handles: Delivery executive profiles, recorded route-planning runs
"""

import uuid
from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from orders.models import MealType


class ExecutiveStatus(models.TextChoices):
    ACTIVE = 'ACTIVE', 'Active'
    INACTIVE = 'INACTIVE', 'Inactive'


class DeliveryExecutive(models.Model):
    """
    Courier profile attached to a DELIVERY_EXECUTIVE user.

    Only ACTIVE executives are counted when a manager plans routes.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='executive_profile',
        verbose_name="User"
    )
    company = models.ForeignKey(
        'core.Company',
        on_delete=models.CASCADE,
        related_name='delivery_executives',
        verbose_name="Company"
    )
    status = models.CharField(
        max_length=10,
        choices=ExecutiveStatus.choices,
        default=ExecutiveStatus.ACTIVE,
        db_index=True,
        verbose_name="Status"
    )
    image = models.ImageField(upload_to='executives/', null=True, blank=True, verbose_name="Photo")
    location_label = models.CharField(max_length=255, blank=True, verbose_name="Location")
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)
    location_updated_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Delivery executive"
        verbose_name_plural = "Delivery executives"
        ordering = ['user__full_name']

    def __str__(self):
        return f"{self.user} ({self.get_status_display()})"

    @property
    def is_active(self) -> bool:
        return self.status == ExecutiveStatus.ACTIVE


class RouteRunStatus(models.TextChoices):
    DRAFT = 'DRAFT', 'Draft'
    APPROVED = 'APPROVED', 'Approved'
    DISCARDED = 'DISCARDED', 'Discarded'


class RouteRun(models.Model):
    """
    One execution of the external route program.

    `result` holds the planned stops keyed by meal type
    ({"breakfast": [{"Delivery_Name": ..., "Executive": ..., "Location": ...}]}).
    A DRAFT run is either approved (routes saved upstream) or discarded.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    company = models.ForeignKey(
        'core.Company',
        on_delete=models.CASCADE,
        related_name='route_runs',
        verbose_name="Company"
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name='route_runs',
        verbose_name="Run by"
    )
    executive_count = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        verbose_name="Executives"
    )
    delivery_date = models.DateField(null=True, blank=True)
    delivery_session = models.CharField(
        max_length=10,
        choices=MealType.choices,
        null=True,
        blank=True
    )
    request_id = models.CharField(max_length=100, blank=True, db_index=True, verbose_name="Upstream request ID")
    status = models.CharField(
        max_length=10,
        choices=RouteRunStatus.choices,
        default=RouteRunStatus.DRAFT,
        db_index=True
    )
    result = models.JSONField(default=dict, blank=True)
    files = models.JSONField(default=list, blank=True)
    export_urls = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_route_runs'
    )
    discarded_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = "Route run"
        verbose_name_plural = "Route runs"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['company', 'status', '-created_at']),
        ]

    def __str__(self):
        return f"Run {str(self.id)[:8]} - {self.executive_count} executives ({self.status})"

    def meal_counts(self) -> dict:
        return {
            meal: len(self.result.get(meal) or [])
            for meal in MealType.values
        }
