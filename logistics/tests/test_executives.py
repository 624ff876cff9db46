"""
Tests for delivery executive profiles, availability and delivery photos.
"""

from datetime import date
from decimal import Decimal
from io import BytesIO
from unittest.mock import MagicMock, patch

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from PIL import Image
from rest_framework.test import APIClient

from core.exceptions import AppError
from core.models import Address, Company, User
from logistics.models import DeliveryExecutive, ExecutiveStatus
from logistics.services.executives import ExecutiveService
from orders.models import DeliveryItem, DeliveryItemStatus, MealType, MenuItem, Order


def make_image(name='pod.png'):
    buffer = BytesIO()
    Image.new('RGB', (4, 4), color='white').save(buffer, format='PNG')
    return SimpleUploadedFile(name, buffer.getvalue(), content_type='image/png')


class ExecutiveTestMixin:

    def setUp(self):
        self.company = Company.objects.create(name='JKHM')
        self.other = Company.objects.create(name='JLG')
        self.manager = User.objects.create_user(
            email='manager@jkhm.in', roles='DELIVERY_MANAGER', company=self.company
        )
        self.ravi = User.objects.create_user(
            email='ravi@jkhm.in', full_name='Ravi', roles='DELIVERY_EXECUTIVE', company=self.company
        )
        self.sunil = User.objects.create_user(
            email='sunil@jkhm.in', full_name='Sunil', roles='DELIVERY_EXECUTIVE', company=self.company
        )
        self.ravi_profile = DeliveryExecutive.objects.create(user=self.ravi, company=self.company)
        self.sunil_profile = DeliveryExecutive.objects.create(
            user=self.sunil, company=self.company, status=ExecutiveStatus.INACTIVE
        )

        self.customer = User.objects.create_user(email='asha@example.com', company=self.company)
        self.address = Address.objects.create(
            user=self.customer, street='12 MG Road', city='Bengaluru', pincode='560001'
        )
        menu_item = MenuItem.objects.create(company=self.company, name='Thali', price=Decimal('120.00'))
        order = Order.objects.create(
            user=self.customer, company=self.company, order_date=date(2026, 1, 4),
            delivery_address=self.address,
        )
        self.item = DeliveryItem.objects.create(
            order=order, user=self.customer, menu_item=menu_item,
            delivery_date=date(2026, 1, 5), delivery_time_slot=MealType.LUNCH,
            address=self.address,
        )


class ExecutiveServiceTestCase(ExecutiveTestMixin, TestCase):
    """Tests for ExecutiveService."""

    # ==========================================
    # Profiles
    # ==========================================

    def test_list_and_status_filter(self):
        self.assertEqual(ExecutiveService.list_executives(self.company).count(), 2)
        active = ExecutiveService.list_executives(self.company, 'active')
        self.assertEqual(list(active), [self.ravi_profile])
        self.assertEqual(list(ExecutiveService.active_executives(self.company)), [self.ravi_profile])

    def test_upsert_creates_then_updates(self):
        user = User.objects.create_user(
            email='new@jkhm.in', roles='DELIVERY_EXECUTIVE', company=self.company
        )
        executive, created = ExecutiveService.upsert_profile(user, {'location_label': 'Depot'})
        self.assertTrue(created)
        self.assertEqual(executive.company, self.company)
        self.assertIsNone(executive.location_updated_at)

        executive, created = ExecutiveService.upsert_profile(
            user, {'latitude': 12.97, 'longitude': 77.59, 'unknown': 'dropped'}
        )
        self.assertFalse(created)
        self.assertEqual(executive.latitude, 12.97)
        self.assertIsNotNone(executive.location_updated_at)

    def test_upsert_requires_role(self):
        with self.assertRaises(AppError) as ctx:
            ExecutiveService.upsert_profile(self.customer, {})
        self.assertEqual(ctx.exception.status_code, 403)

    def test_upsert_requires_company(self):
        user = User.objects.create_user(email='free@example.com', roles='DELIVERY_EXECUTIVE')
        with self.assertRaises(AppError) as ctx:
            ExecutiveService.upsert_profile(user, {})
        self.assertEqual(ctx.exception.status_code, 400)

    # ==========================================
    # Location
    # ==========================================

    def test_update_own_location(self):
        executive = ExecutiveService.update_location(self.ravi_profile, 12.9, 77.6, label='Koramangala')
        executive.refresh_from_db()
        self.assertEqual((executive.latitude, executive.longitude), (12.9, 77.6))
        self.assertEqual(executive.location_label, 'Koramangala')
        self.assertIsNotNone(executive.location_updated_at)

    def test_pin_customer_address(self):
        address = ExecutiveService.update_location(
            self.ravi_profile, 12.97, 77.59, address_id=self.address.pk
        )
        self.assertEqual(address, self.address)
        self.address.refresh_from_db()
        self.assertEqual(self.address.geo_location, '12.97,77.59')

        self.ravi_profile.refresh_from_db()
        self.assertIsNone(self.ravi_profile.latitude)

    def test_pin_address_of_other_company(self):
        stranger = User.objects.create_user(email='x@jlg.in', company=self.other)
        address = Address.objects.create(user=stranger, street='x', city='y', pincode='110001')
        with self.assertRaises(AppError) as ctx:
            ExecutiveService.update_location(self.ravi_profile, 1, 2, address_id=address.pk)
        self.assertEqual(ctx.exception.status_code, 404)

    # ==========================================
    # Bulk availability
    # ==========================================

    def test_bulk_status_update(self):
        executives = ExecutiveService.update_statuses(self.company, [
            {'executive_id': str(self.ravi_profile.pk), 'status': 'inactive'},
            {'executive_id': str(self.sunil_profile.pk), 'status': 'ACTIVE'},
        ])
        self.assertEqual(len(executives), 2)
        self.ravi_profile.refresh_from_db()
        self.sunil_profile.refresh_from_db()
        self.assertEqual(self.ravi_profile.status, ExecutiveStatus.INACTIVE)
        self.assertEqual(self.sunil_profile.status, ExecutiveStatus.ACTIVE)

    def test_bulk_status_is_all_or_nothing(self):
        foreign_user = User.objects.create_user(
            email='e@jlg.in', roles='DELIVERY_EXECUTIVE', company=self.other
        )
        foreign = DeliveryExecutive.objects.create(user=foreign_user, company=self.other)

        with self.assertRaises(AppError) as ctx:
            ExecutiveService.update_statuses(self.company, [
                {'executive_id': str(self.ravi_profile.pk), 'status': 'INACTIVE'},
                {'executive_id': str(foreign.pk), 'status': 'INACTIVE'},
                {'executive_id': 'not-a-uuid', 'status': 'ACTIVE'},
                {'executive_id': str(self.sunil_profile.pk), 'status': 'ON_BREAK'},
            ])

        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(len(ctx.exception.details), 3)
        self.ravi_profile.refresh_from_db()
        self.assertEqual(self.ravi_profile.status, ExecutiveStatus.ACTIVE)

    def test_bulk_status_rejects_conflicting_entries(self):
        with self.assertRaises(AppError) as ctx:
            ExecutiveService.update_statuses(self.company, [
                {'executive_id': str(self.ravi_profile.pk), 'status': 'INACTIVE'},
                {'executive_id': str(self.ravi_profile.pk), 'status': 'ACTIVE'},
            ])

        self.assertEqual(ctx.exception.details, [
            {'index': 1, 'executive_id': str(self.ravi_profile.pk), 'error': 'Conflicting status'},
        ])
        self.ravi_profile.refresh_from_db()
        self.assertEqual(self.ravi_profile.status, ExecutiveStatus.ACTIVE)

    def test_bulk_status_requires_updates(self):
        with self.assertRaises(AppError):
            ExecutiveService.update_statuses(self.company, [])

    # ==========================================
    # Delivery photos
    # ==========================================

    def test_photo_marks_item_delivered(self):
        program = MagicMock()
        program.upload_delivery_photo.return_value = {'success': True, 'url': 'https://f/pod.png'}
        image = make_image()

        response = ExecutiveService.upload_delivery_photo(
            self.item, image, 'lunch', '2026-01-05', client=program
        )

        self.assertTrue(response['success'])
        program.upload_delivery_photo.assert_called_once_with(image, self.address.pk, 'lunch', '2026-01-05')
        self.item.refresh_from_db()
        self.assertEqual(self.item.status, DeliveryItemStatus.DELIVERED)

    def test_rejected_photo_keeps_status(self):
        program = MagicMock()
        program.upload_delivery_photo.return_value = {'message': 'queued'}
        ExecutiveService.upload_delivery_photo(self.item, make_image(), 'lunch', '2026-01-05', client=program)
        self.item.refresh_from_db()
        self.assertEqual(self.item.status, DeliveryItemStatus.PENDING)

    def test_photo_for_cancelled_item_rejected(self):
        """A customer-cancelled meal cannot be marked delivered."""
        self.item.status = DeliveryItemStatus.CANCELLED
        self.item.save()
        program = MagicMock()
        program.upload_delivery_photo.return_value = {'success': True}

        with self.assertRaises(AppError) as ctx:
            ExecutiveService.upload_delivery_photo(self.item, make_image(), 'lunch', '2026-01-05', client=program)

        self.assertEqual(ctx.exception.status_code, 400)
        program.upload_delivery_photo.assert_not_called()
        self.item.refresh_from_db()
        self.assertEqual(self.item.status, DeliveryItemStatus.CANCELLED)

    def test_photo_without_address(self):
        self.item.address = None
        self.item.save()
        with self.assertRaises(AppError) as ctx:
            ExecutiveService.upload_delivery_photo(self.item, make_image(), 'lunch', '2026-01-05', client=MagicMock())
        self.assertEqual(ctx.exception.status_code, 404)


class ExecutiveAPITestCase(ExecutiveTestMixin, TestCase):
    """Tests for /api/executives/."""

    def setUp(self):
        super().setUp()
        self.api = APIClient()

    def test_manager_lists_executives(self):
        self.api.force_authenticate(self.manager)
        response = self.api.get('/api/executives/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual([e['full_name'] for e in response.data], ['Ravi', 'Sunil'])

        response = self.api.get('/api/executives/', {'status': 'INACTIVE'})
        self.assertEqual([e['full_name'] for e in response.data], ['Sunil'])

    def test_active_executives(self):
        self.api.force_authenticate(self.manager)
        response = self.api.get('/api/executives/active/')
        self.assertEqual(response.data['count'], 1)

    def test_executive_cannot_list(self):
        self.api.force_authenticate(self.ravi)
        response = self.api.get('/api/executives/')
        self.assertEqual(response.status_code, 403)

    def test_bulk_status_api(self):
        self.api.force_authenticate(self.manager)
        response = self.api.post('/api/executives/status/', {
            'updates': [{'executive_id': str(self.sunil_profile.pk), 'status': 'ACTIVE'}],
        }, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['message'], '1 executive(s) updated')
        self.assertEqual(response.data['data'][0]['status'], 'ACTIVE')

    def test_profile_put_then_get(self):
        user = User.objects.create_user(
            email='new@jkhm.in', roles='DELIVERY_EXECUTIVE', company=self.company
        )
        self.api.force_authenticate(user)

        response = self.api.get('/api/executives/me/')
        self.assertEqual(response.status_code, 404)

        response = self.api.put('/api/executives/me/', {'location_label': 'Depot'}, format='json')
        self.assertEqual(response.status_code, 201)

        response = self.api.put('/api/executives/me/', {'status': 'INACTIVE'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], 'INACTIVE')
        self.assertEqual(response.data['location_label'], 'Depot')

    def test_location_api(self):
        self.api.force_authenticate(self.ravi)
        response = self.api.post('/api/executives/me/location/', {
            'latitude': 12.93, 'longitude': 77.62, 'location': 'HSR Layout',
        }, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['location_label'], 'HSR Layout')

    def test_location_api_pins_address(self):
        self.api.force_authenticate(self.ravi)
        response = self.api.post('/api/executives/me/location/', {
            'latitude': 12.93, 'longitude': 77.62, 'address_id': str(self.address.pk),
        }, format='json')

        self.assertEqual(response.data['data']['geo_location'], '12.93,77.62')

    def test_location_out_of_range(self):
        self.api.force_authenticate(self.ravi)
        response = self.api.post('/api/executives/me/location/', {
            'latitude': 120, 'longitude': 77.62,
        }, format='json')
        self.assertEqual(response.status_code, 400)

    @patch('logistics.services.executives.RouteProgramClient')
    def test_photo_upload_api(self, mock_client):
        mock_client.return_value.upload_delivery_photo.return_value = {'success': True}
        self.api.force_authenticate(self.ravi)

        response = self.api.post(
            f'/api/executives/delivery-items/{self.item.pk}/photo/',
            {'image': make_image(), 'session': 'lunch', 'date': '2026-01-05'},
            format='multipart',
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], 'DELIVERED')
        args = mock_client.return_value.upload_delivery_photo.call_args.args
        self.assertEqual(args[1:], (self.address.pk, 'lunch', '2026-01-05'))

    def test_photo_upload_other_company_item(self):
        foreign_user = User.objects.create_user(
            email='e@jlg.in', roles='DELIVERY_EXECUTIVE', company=self.other
        )
        self.api.force_authenticate(foreign_user)
        response = self.api.post(
            f'/api/executives/delivery-items/{self.item.pk}/photo/',
            {'image': make_image(), 'session': 'lunch', 'date': '2026-01-05'},
            format='multipart',
        )
        self.assertEqual(response.status_code, 404)
