"""
Delivery Executive Service for MealRoute

Profiles, availability toggles and positions of delivery executives.
"""

import logging
import uuid
from typing import List, Optional, Tuple

from django.db import transaction
from django.utils import timezone
from rest_framework import status

from core.exceptions import AppError
from core.models import Address, UserRole
from orders.models import DeliveryItem, DeliveryItemStatus
from ..models import DeliveryExecutive, ExecutiveStatus
from .route_program import RouteProgramClient

logger = logging.getLogger(__name__)


class ExecutiveService:
    """Delivery executive management."""

    PROFILE_FIELDS = ('image', 'location_label', 'latitude', 'longitude', 'status')

    @classmethod
    def list_executives(cls, company, status_filter: Optional[str] = None):
        queryset = DeliveryExecutive.objects.filter(company=company).select_related('user')
        if status_filter:
            queryset = queryset.filter(status=status_filter.strip().upper())
        return queryset

    @classmethod
    def active_executives(cls, company):
        return cls.list_executives(company, ExecutiveStatus.ACTIVE)

    @classmethod
    def upsert_profile(cls, user, data: dict) -> Tuple[DeliveryExecutive, bool]:
        """Create or update the caller's executive profile."""
        if not user.has_role(UserRole.DELIVERY_EXECUTIVE):
            raise AppError("User is not a delivery executive", status.HTTP_403_FORBIDDEN)
        if not user.company_id:
            raise AppError("Delivery executive has no company", status.HTTP_400_BAD_REQUEST)

        defaults = {k: v for k, v in data.items() if k in cls.PROFILE_FIELDS}
        if 'latitude' in defaults or 'longitude' in defaults:
            defaults['location_updated_at'] = timezone.now()

        executive, created = DeliveryExecutive.objects.update_or_create(
            user=user,
            defaults={'company_id': user.company_id, **defaults},
        )
        logger.info(
            f"[EXECUTIVES] Profile {'created' if created else 'updated'} for {user.pk}"
        )
        return executive, created

    @classmethod
    def update_location(
        cls,
        executive: DeliveryExecutive,
        latitude,
        longitude,
        label: Optional[str] = None,
        address_id=None,
    ):
        """
        Record the executive's position.

        With `address_id`, the coordinates pin that customer address
        instead (the executive is standing at the stop).
        """
        if latitude is None or longitude is None:
            raise AppError("Latitude and longitude are required", status.HTTP_400_BAD_REQUEST)

        if address_id:
            address = Address.objects.filter(
                pk=address_id, user__company_id=executive.company_id
            ).first()
            if address is None:
                raise AppError("Address not found", status.HTTP_404_NOT_FOUND)
            try:
                address.set_coordinates(latitude, longitude)
            except ValueError as e:
                raise AppError(str(e), status.HTTP_400_BAD_REQUEST)
            logger.info(f"[EXECUTIVES] {executive.pk} pinned address {address.pk}")
            return address

        executive.latitude = float(latitude)
        executive.longitude = float(longitude)
        executive.location_updated_at = timezone.now()
        update_fields = ['latitude', 'longitude', 'location_updated_at', 'updated_at']
        if label is not None:
            executive.location_label = label
            update_fields.append('location_label')
        executive.save(update_fields=update_fields)
        return executive

    @classmethod
    def update_statuses(cls, company, updates: List[dict]) -> List[DeliveryExecutive]:
        """
        Apply [{executive_id, status}, ...] all-or-nothing.

        Every executive must belong to `company`, every status must
        be ACTIVE or INACTIVE and an executive may not be given two
        different statuses.
        """
        if not updates:
            raise AppError("updates must be a non-empty list", status.HTTP_400_BAD_REQUEST)

        errors = []
        wanted = {}
        for index, entry in enumerate(updates):
            executive_id = entry.get('executive_id')
            new_status = str(entry.get('status') or '').strip().upper()
            try:
                executive_id = uuid.UUID(str(executive_id))
            except ValueError:
                errors.append({'index': index, 'error': 'Invalid executive_id'})
                continue
            if new_status not in ExecutiveStatus.values:
                errors.append({'index': index, 'executive_id': str(executive_id), 'error': 'Invalid status'})
                continue
            if wanted.get(executive_id, new_status) != new_status:
                errors.append({'index': index, 'executive_id': str(executive_id), 'error': 'Conflicting status'})
                continue
            wanted[executive_id] = new_status

        found = {
            e.pk: e for e in DeliveryExecutive.objects.filter(company=company, pk__in=wanted.keys())
        }
        for executive_id in wanted:
            if executive_id not in found:
                errors.append({'executive_id': str(executive_id), 'error': 'Executive not found'})

        if errors:
            raise AppError("Invalid executive status updates", status.HTTP_400_BAD_REQUEST, details=errors)

        with transaction.atomic():
            now = timezone.now()
            for executive_id, new_status in wanted.items():
                executive = found[executive_id]
                executive.status = new_status
                executive.updated_at = now
            DeliveryExecutive.objects.bulk_update(found.values(), ['status', 'updated_at'])

        logger.info(f"[EXECUTIVES] {len(found)} status update(s) for {company}")
        return list(cls.list_executives(company).filter(pk__in=found.keys()))

    @classmethod
    def upload_delivery_photo(
        cls,
        item: DeliveryItem,
        image,
        session: str,
        date: str,
        client: Optional[RouteProgramClient] = None,
    ) -> dict:
        """Send proof of delivery upstream; mark the item DELIVERED on success."""
        if item.address_id is None:
            raise AppError("No address associated with this delivery item", status.HTTP_404_NOT_FOUND)
        if item.is_terminal:
            raise AppError(f"Delivery item is already {item.status}", status.HTTP_400_BAD_REQUEST)

        client = client or RouteProgramClient()
        response = client.upload_delivery_photo(image, item.address_id, session, date)

        if response.get('success'):
            item.status = DeliveryItemStatus.DELIVERED
            item.save(update_fields=['status', 'updated_at'])
            logger.info(f"[EXECUTIVES] Delivery item {item.pk} delivered with photo")

        return response
