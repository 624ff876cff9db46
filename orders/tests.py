"""
MealRoute Orders Tests
======================

Tests for:
1. Menu browsing and order placement (date x meal expansion, skips, per-meal addresses)
2. Post-payment confirmation (idempotent)
3. Delivery item transitions (customer vs delivery staff)
4. Delivery manager dashboard & endpoints
"""

from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework.test import APIClient

from core.exceptions import AppError
from core.models import Address, Company, User
from orders.models import (
    DeliveryItem, DeliveryItemStatus, MealType, MenuItem, Order, OrderStatus,
    to_meal_type,
)
from orders.services import OrderService


class OrdersTestMixin:
    """Shared fixtures: one tenant, one customer, two dishes."""

    def setUp(self):
        self.company = Company.objects.create(name='JKHM')
        self.customer = User.objects.create_user(
            email='customer@example.com',
            password='testpass123',
            full_name='Asha Rao',
            company=self.company,
        )
        self.home = Address.objects.create(
            user=self.customer, street='12 MG Road', city='Bengaluru', pincode='560001'
        )
        self.office = Address.objects.create(
            user=self.customer, street='4 Tech Park', city='Bengaluru', pincode='560103'
        )
        self.idli = MenuItem.objects.create(company=self.company, name='Idli', price=Decimal('50.00'))
        self.thali = MenuItem.objects.create(company=self.company, name='Thali', price=Decimal('120.00'))

    def order_payload(self, **overrides):
        payload = {
            'order_date': '2026-01-04',
            'delivery_address_id': str(self.home.pk),
            'order_items': [
                {'menu_item_id': str(self.idli.pk), 'quantity': 1, 'meal_type': 'breakfast'},
                {'menu_item_id': str(self.thali.pk), 'quantity': 2, 'meal_type': 'Lunch'},
            ],
            'selected_dates': ['2026-01-05', '2026-01-06', '2026-01-05'],
            'skip_meals': {'2026-01-06': {'lunch': True, 'breakfast': False}},
            'delivery_locations': {'Noon': str(self.office.pk)},
        }
        payload.update(overrides)
        return payload

    def place_order(self, **overrides):
        data = self.order_payload(**overrides)
        data['order_date'] = date.fromisoformat(data['order_date'])
        data['selected_dates'] = [date.fromisoformat(d) for d in data['selected_dates']]
        return OrderService.create_order(self.customer, self.company, data)


class TestMealTypes(TestCase):

    def test_order_time_aliases(self):
        self.assertEqual(to_meal_type('Morning'), MealType.BREAKFAST)
        self.assertEqual(to_meal_type('Noon'), MealType.LUNCH)
        self.assertEqual(to_meal_type('Night'), MealType.DINNER)

    def test_case_insensitive_names(self):
        self.assertEqual(to_meal_type('DINNER'), MealType.DINNER)
        self.assertEqual(to_meal_type(' lunch '), MealType.LUNCH)

    def test_unknown_falls_back_to_breakfast(self):
        self.assertEqual(to_meal_type('brunch'), MealType.BREAKFAST)
        self.assertEqual(to_meal_type(None), MealType.BREAKFAST)
        self.assertEqual(to_meal_type('', default=MealType.DINNER), MealType.DINNER)


class TestMenuAPI(OrdersTestMixin, TestCase):
    """Tests for /api/menu-items/."""

    def setUp(self):
        super().setUp()
        self.thali.is_active = False
        self.thali.save()
        other = Company.objects.create(name='JLG')
        MenuItem.objects.create(company=other, name='Dosa', price=Decimal('60.00'))
        self.client = APIClient()
        self.client.force_authenticate(self.customer)

    def test_lists_active_items_of_own_company(self):
        response = self.client.get('/api/menu-items/')
        self.assertEqual(response.status_code, 200)
        names = [m['name'] for m in response.data['results']]
        self.assertEqual(names, ['Idli'])
        self.assertEqual(response.data['results'][0]['price'], '50.00')

    def test_inactive_item_is_hidden(self):
        response = self.client.get(f'/api/menu-items/{self.thali.pk}/')
        self.assertEqual(response.status_code, 404)

    def test_read_only(self):
        response = self.client.post('/api/menu-items/', {'name': 'Vada', 'price': '30.00'}, format='json')
        self.assertEqual(response.status_code, 405)


class TestOrderPlacement(OrdersTestMixin, TestCase):
    """Tests for OrderService.create_order and POST /api/orders/."""

    # ==========================================
    # Expansion
    # ==========================================

    def test_expands_dates_and_meals(self):
        """Duplicate dates collapse; skipped meals produce no item."""
        order = self.place_order()

        items = list(order.delivery_items.order_by('delivery_date', 'delivery_time_slot'))
        slots = [(i.delivery_date.isoformat(), i.delivery_time_slot) for i in items]
        self.assertEqual(slots, [
            ('2026-01-05', MealType.BREAKFAST),
            ('2026-01-05', MealType.LUNCH),
            ('2026-01-06', MealType.BREAKFAST),
        ])
        self.assertTrue(all(i.status == DeliveryItemStatus.PENDING for i in items))
        self.assertTrue(all(i.user_id == self.customer.pk for i in items))

    def test_meal_specific_address(self):
        order = self.place_order()
        lunch = order.delivery_items.get(delivery_time_slot=MealType.LUNCH)
        breakfast = order.delivery_items.filter(delivery_time_slot=MealType.BREAKFAST).first()
        self.assertEqual(lunch.address, self.office)
        self.assertEqual(breakfast.address, self.home)

    def test_total_and_order_times(self):
        order = self.place_order()
        # 2 x Idli + 1 x (2 x Thali)
        self.assertEqual(order.total_price, Decimal('340.00'))
        self.assertEqual(order.order_times, ['breakfast', 'lunch'])
        self.assertEqual(order.status, OrderStatus.PENDING)

    def test_all_meals_skipped(self):
        with self.assertRaises(AppError) as ctx:
            self.place_order(
                selected_dates=['2026-01-06'],
                skip_meals={'2026-01-06': {'Morning': True, 'Noon': True}},
            )
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertFalse(Order.objects.exists())

    def test_unknown_skip_key_is_ignored(self):
        """A skip entry for an unrecognised meal must not skip breakfast."""
        order = self.place_order(
            selected_dates=['2026-01-05'],
            skip_meals={'2026-01-05': {'Snacks': True}},
        )
        slots = sorted(order.delivery_items.values_list('delivery_time_slot', flat=True))
        self.assertEqual(slots, [MealType.BREAKFAST, MealType.LUNCH])

    def test_unknown_delivery_location_key_rejected(self):
        with self.assertRaises(AppError) as ctx:
            self.place_order(delivery_locations={'Snacks': str(self.office.pk)})
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.details, {'delivery_locations': ['Snacks']})
        self.assertFalse(Order.objects.exists())

    def test_foreign_address_rejected(self):
        stranger = User.objects.create_user(email='other@example.com', company=self.company)
        address = Address.objects.create(user=stranger, street='x', city='y', pincode='110001')

        with self.assertRaises(AppError) as ctx:
            self.place_order(delivery_address_id=str(address.pk))
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.details, {'address_ids': [str(address.pk)]})

    def test_inactive_menu_item_rejected(self):
        self.thali.is_active = False
        self.thali.save()
        with self.assertRaises(AppError) as ctx:
            self.place_order()
        self.assertEqual(ctx.exception.message, 'Menu item not available')

    # ==========================================
    # API
    # ==========================================

    def test_create_order_api(self):
        client = APIClient()
        client.force_authenticate(self.customer)

        response = client.post('/api/orders/', self.order_payload(), format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['total_price'], '340.00')
        self.assertEqual(len(response.data['delivery_items']), 3)

        order_id = response.data['id']
        response = client.get(f'/api/orders/{order_id}/delivery-items/')
        self.assertEqual(response.status_code, 200)
        slots = [(i['delivery_date'], i['delivery_time_slot']) for i in response.data]
        self.assertEqual(slots[:2], [('2026-01-05', 'breakfast'), ('2026-01-05', 'lunch')])

    def test_customer_only_sees_own_orders(self):
        self.place_order()
        stranger = User.objects.create_user(email='other@example.com', company=self.company)
        client = APIClient()
        client.force_authenticate(stranger)

        response = client.get('/api/orders/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 0)

    def test_order_for_other_company_forbidden(self):
        other = Company.objects.create(name='JLG')
        client = APIClient()
        client.force_authenticate(self.customer)

        response = client.post(
            '/api/orders/', self.order_payload(), format='json',
            HTTP_X_COMPANY_ID=str(other.pk),
        )
        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.data['success'])


class TestOrderConfirmation(OrdersTestMixin, TestCase):
    """Tests for OrderService.confirm_order."""

    def setUp(self):
        super().setUp()
        self.bare_order = Order.objects.create(
            user=self.customer,
            company=self.company,
            order_date=date(2026, 1, 4),
            order_times=['Morning', 'Night'],
            delivery_address=self.home,
        )

    def schedule(self):
        return {
            'selected_dates': [date(2026, 1, 5), date(2026, 1, 6)],
            'order_items': [{'menu_item_id': self.thali.pk, 'quantity': 3}],
            'skip_meals': {},
            'delivery_locations': {},
        }

    def test_creates_items_from_order_times(self):
        result = OrderService.confirm_order(self.bare_order, self.schedule())

        self.assertEqual(result['created'], 4)
        self.bare_order.refresh_from_db()
        self.assertEqual(self.bare_order.status, OrderStatus.CONFIRMED)
        self.assertEqual(self.bare_order.order_times, ['breakfast', 'dinner'])

        items = self.bare_order.delivery_items.all()
        self.assertEqual({i.delivery_time_slot for i in items}, {MealType.BREAKFAST, MealType.DINNER})
        # The first menu line is used, one portion per meal
        self.assertTrue(all(i.menu_item_id == self.thali.pk and i.quantity == 1 for i in items))

    def test_second_confirmation_is_noop(self):
        OrderService.confirm_order(self.bare_order, self.schedule())
        result = OrderService.confirm_order(self.bare_order, self.schedule())

        self.assertEqual(result['created'], 0)
        self.assertEqual(result['count'], 4)
        self.assertEqual(result['message'], 'Delivery items already exist')
        self.assertEqual(DeliveryItem.objects.filter(order=self.bare_order).count(), 4)

    def test_placed_order_confirms_without_schedule(self):
        order = self.place_order()
        result = OrderService.confirm_order(order)
        self.assertEqual(result['created'], 0)
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.CONFIRMED)

    def test_missing_schedule(self):
        with self.assertRaises(AppError) as ctx:
            OrderService.confirm_order(self.bare_order, {})
        self.assertEqual(ctx.exception.status_code, 400)

    def test_all_meals_skipped_on_confirm(self):
        schedule = self.schedule()
        schedule['selected_dates'] = [date(2026, 1, 5)]
        schedule['skip_meals'] = {'2026-01-05': {'Morning': True, 'Night': True}}

        with self.assertRaises(AppError) as ctx:
            OrderService.confirm_order(self.bare_order, schedule)
        self.assertEqual(ctx.exception.status_code, 400)

        self.bare_order.refresh_from_db()
        self.assertEqual(self.bare_order.status, OrderStatus.PENDING)
        self.assertFalse(self.bare_order.delivery_items.exists())

    def test_cancelled_order_cannot_be_confirmed(self):
        self.bare_order.status = OrderStatus.CANCELLED
        self.bare_order.save()
        with self.assertRaises(AppError) as ctx:
            OrderService.confirm_order(self.bare_order, self.schedule())
        self.assertEqual(ctx.exception.status_code, 400)

    def test_confirm_api(self):
        client = APIClient()
        client.force_authenticate(self.customer)
        response = client.post(f'/api/orders/{self.bare_order.pk}/confirm/', {
            'selected_dates': ['2026-01-05'],
            'order_items': [{'menu_item_id': str(self.idli.pk)}],
        }, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['created'], 2)


class TestDeliveryItemTransitions(OrdersTestMixin, TestCase):
    """Tests for customer and staff status changes."""

    def setUp(self):
        super().setUp()
        self.order = self.place_order()
        self.item = self.order.delivery_items.first()
        self.seller = User.objects.create_user(
            email='seller@jkhm.in', roles='SELLER', company=self.company
        )

    def test_customer_can_cancel_own_item(self):
        item = OrderService.update_item_status(self.item, DeliveryItemStatus.CANCELLED, self.customer)
        self.assertEqual(item.status, DeliveryItemStatus.CANCELLED)

    def test_customer_cannot_deliver(self):
        with self.assertRaises(AppError) as ctx:
            OrderService.update_item_status(self.item, DeliveryItemStatus.DELIVERED, self.customer)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_customer_cannot_touch_others_items(self):
        stranger = User.objects.create_user(email='other@example.com', company=self.company)
        with self.assertRaises(AppError) as ctx:
            OrderService.update_item_status(self.item, DeliveryItemStatus.CANCELLED, stranger)
        self.assertEqual(ctx.exception.status_code, 403)

    def test_staff_sets_any_status(self):
        item = OrderService.update_item_status(self.item, DeliveryItemStatus.IN_PROGRESS, self.seller)
        self.assertEqual(item.status, DeliveryItemStatus.IN_PROGRESS)

    def test_staff_cannot_cancel_delivered_item(self):
        self.item.status = DeliveryItemStatus.DELIVERED
        self.item.save()
        with self.assertRaises(AppError) as ctx:
            OrderService.update_item_status(self.item, DeliveryItemStatus.CANCELLED, self.seller)
        self.assertEqual(ctx.exception.status_code, 400)

    def test_staff_cannot_reopen_cancelled_item(self):
        OrderService.cancel_item(self.item)
        with self.assertRaises(AppError) as ctx:
            OrderService.update_item_status(self.item, DeliveryItemStatus.PENDING, self.seller)
        self.assertEqual(ctx.exception.status_code, 400)
        self.item.refresh_from_db()
        self.assertEqual(self.item.status, DeliveryItemStatus.CANCELLED)

    def test_staff_cannot_change_delivered_item(self):
        self.item.status = DeliveryItemStatus.DELIVERED
        self.item.save()
        with self.assertRaises(AppError) as ctx:
            OrderService.update_item_status(self.item, DeliveryItemStatus.IN_PROGRESS, self.seller)
        self.assertEqual(ctx.exception.status_code, 400)

    def test_invalid_status(self):
        with self.assertRaises(AppError) as ctx:
            OrderService.update_item_status(self.item, 'LOST', self.seller)
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertIn('DELIVERED', ctx.exception.details['valid_statuses'])

    def test_delivered_item_cannot_be_cancelled(self):
        self.item.status = DeliveryItemStatus.DELIVERED
        self.item.save()
        with self.assertRaises(AppError) as ctx:
            OrderService.cancel_item(self.item)
        self.assertEqual(ctx.exception.message, 'Cannot cancel a delivered item')

    def test_cancel_twice(self):
        OrderService.cancel_item(self.item)
        with self.assertRaises(AppError) as ctx:
            OrderService.cancel_item(self.item)
        self.assertEqual(ctx.exception.message, 'Delivery item is already cancelled')

    def test_cancel_order_cancels_every_item(self):
        OrderService.cancel_order(self.order)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, OrderStatus.CANCELLED)
        self.assertFalse(
            self.order.delivery_items.exclude(status=DeliveryItemStatus.CANCELLED).exists()
        )

    def test_status_api(self):
        client = APIClient()
        client.force_authenticate(self.customer)

        response = client.get(f'/api/delivery-items/{self.item.pk}/status/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['status'], 'PENDING')
        self.assertEqual(response.data['data']['order_status'], 'PENDING')

        response = client.patch(
            f'/api/delivery-items/{self.item.pk}/status/', {'status': 'delivered'}, format='json'
        )
        self.assertEqual(response.status_code, 403)

        response = client.post(f'/api/delivery-items/{self.item.pk}/cancel/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['status'], 'CANCELLED')

    def test_item_of_other_customer_is_hidden(self):
        stranger = User.objects.create_user(email='other@example.com', company=self.company)
        client = APIClient()
        client.force_authenticate(stranger)
        response = client.get(f'/api/delivery-items/{self.item.pk}/status/')
        self.assertEqual(response.status_code, 404)


class TestManagerDashboard(OrdersTestMixin, TestCase):
    """Tests for delivery manager endpoints."""

    def setUp(self):
        super().setUp()
        self.manager = User.objects.create_user(
            email='manager@jkhm.in', roles='DELIVERY_MANAGER', company=self.company
        )
        self.client = APIClient()
        self.client.force_authenticate(self.manager)

        self.pending_order = self.place_order()
        self.done_order = self.place_order(selected_dates=['2026-01-07'], skip_meals={})
        self.done_order.delivery_items.update(status=DeliveryItemStatus.DELIVERED)
        self.cancelled_order = self.place_order(selected_dates=['2026-01-08'], skip_meals={})
        OrderService.cancel_order(self.cancelled_order)

    def test_dashboard_stats(self):
        stats = OrderService.dashboard_stats(self.company)
        self.assertEqual(stats, {
            'total_orders': 3,
            'pending_orders': 1,
            'completed_orders': 1,
            'cancelled_orders': 1,
        })

    def test_dashboard_api(self):
        response = self.client.get('/api/delivery-manager/dashboard/')
        self.assertEqual(response.status_code, 200)
        data = response.data['data']
        self.assertEqual(len(data['orders']), 3)
        self.assertEqual(data['delivery_executives'], [])
        self.assertEqual(data['stats']['total_orders'], 3)

    def test_customer_cannot_open_dashboard(self):
        client = APIClient()
        client.force_authenticate(self.customer)
        response = client.get('/api/delivery-manager/dashboard/')
        self.assertEqual(response.status_code, 403)

    def test_other_tenant_forbidden(self):
        other = Company.objects.create(name='JLG')
        response = self.client.get(
            '/api/delivery-manager/dashboard/', HTTP_X_COMPANY_ID=str(other.pk)
        )
        self.assertEqual(response.status_code, 403)

    def test_unknown_tenant(self):
        response = self.client.get('/api/delivery-manager/dashboard/?company_id=not-a-uuid')
        self.assertEqual(response.status_code, 404)

    def test_filter_items(self):
        response = self.client.get('/api/delivery-manager/delivery-items/', {
            'status': 'PENDING',
            'delivery_time_slot': 'lunch',
        })
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['address']['street'], '4 Tech Park')

    def test_filter_by_date_range_and_customer(self):
        response = self.client.get('/api/delivery-manager/delivery-items/', {
            'date_from': '2026-01-07',
            'date_to': '2026-01-08',
            'customer': 'asha',
        })
        self.assertEqual(response.data['count'], 4)

    def test_manager_cancel_item(self):
        item = self.pending_order.delivery_items.first()
        response = self.client.put(f'/api/delivery-manager/delivery-items/{item.pk}/cancel/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['message'], 'Delivery item cancelled successfully')

    def test_manager_cancel_delivered_item(self):
        item = self.done_order.delivery_items.first()
        response = self.client.put(f'/api/delivery-manager/delivery-items/{item.pk}/cancel/')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error']['message'], 'Cannot cancel a delivered item')

    def test_manager_status_update(self):
        item = self.pending_order.delivery_items.first()
        response = self.client.patch(
            f'/api/delivery-manager/delivery-items/{item.pk}/status/',
            {'status': 'in_progress'}, format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['status'], 'IN_PROGRESS')

    def test_manager_sets_coordinates(self):
        item = self.pending_order.delivery_items.filter(delivery_time_slot=MealType.BREAKFAST).first()
        response = self.client.put(
            f'/api/delivery-manager/delivery-items/{item.pk}/coordinates/',
            {'latitude': 12.9716, 'longitude': 77.5946}, format='json',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['geo_location'], '12.9716,77.5946')
        self.home.refresh_from_db()
        self.assertEqual(self.home.latitude, 12.9716)

    def test_manager_cancel_order(self):
        response = self.client.put(f'/api/delivery-manager/orders/{self.pending_order.pk}/cancel/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['status'], 'CANCELLED')

        response = self.client.put(f'/api/delivery-manager/orders/{self.pending_order.pk}/cancel/')
        self.assertEqual(response.status_code, 400)
