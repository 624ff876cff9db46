"""
MealRoute Core Tests
====================

Tests for:
1. Custom User Model (creation, multi-role checks)
2. Addresses (pincode validation, coordinates, own-address API)
3. Tenant resolution (path, header, query, user company)
4. Error envelope & security middleware
5. Health probes
"""

from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.test import TestCase, RequestFactory
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from core.exceptions import AppError
from core.health import ROUTE_PLANNER_HEALTH_CACHE_KEY
from core.models import Address, Company, User, UserRole, parse_roles
from core.tenancy import get_company_by_path, resolve_company_id


class TestUserModel(TestCase):
    """Tests for the custom User model."""

    def setUp(self):
        self.company = Company.objects.create(name='JKHM')
        self.manager = User.objects.create_user(
            email='manager@jkhm.in',
            password='testpass123',
            roles='delivery_manager, seller',
            full_name='Manager Test',
            company=self.company,
        )
        self.customer = User.objects.create_user(
            email='customer@example.com',
            password='testpass123',
            full_name='Customer Test',
        )

    # ==========================================
    # Creation & roles
    # ==========================================

    def test_user_creation_with_email(self):
        """User should be created with email as identifier."""
        self.assertEqual(self.customer.email, 'customer@example.com')
        self.assertTrue(self.customer.check_password('testpass123'))

    def test_default_role_is_customer(self):
        self.assertEqual(self.customer.role_list, [UserRole.CUSTOMER])
        self.assertEqual(self.customer.primary_role, UserRole.CUSTOMER)

    def test_roles_are_normalized_on_save(self):
        """Comma-separated roles are stored upper-cased without blanks."""
        self.manager.refresh_from_db()
        self.assertEqual(self.manager.roles, 'DELIVERY_MANAGER,SELLER')

    def test_role_matching_is_case_insensitive(self):
        self.assertTrue(self.manager.has_role('delivery_manager'))
        self.assertTrue(self.manager.has_role(UserRole.SELLER))
        self.assertFalse(self.manager.has_role(UserRole.ADMIN))
        self.assertTrue(self.manager.has_any_role(['admin', 'Seller']))

    def test_empty_roles_means_no_roles(self):
        user = User.objects.create_user(email='nobody@example.com', roles='')
        self.assertEqual(user.role_list, [])
        self.assertIsNone(user.primary_role)
        self.assertFalse(user.has_any_role(UserRole.values))

    def test_delivery_staff_flags(self):
        self.assertTrue(self.manager.is_delivery_staff)
        self.assertFalse(self.manager.is_admin)
        self.assertFalse(self.customer.is_delivery_staff)

    def test_superuser_is_admin(self):
        admin = User.objects.create_superuser(email='root@example.com', password='x')
        self.assertTrue(admin.is_admin)
        self.assertTrue(admin.has_role(UserRole.ADMIN))

    def test_unknown_role_fails_validation(self):
        self.customer.roles = 'CUSTOMER,CHEF'
        with self.assertRaises(ValidationError):
            self.customer.full_clean()

    def test_parse_roles_deduplicates(self):
        self.assertEqual(parse_roles(['seller', 'SELLER', ' admin ']), ['SELLER', 'ADMIN'])


class TestAddressModel(TestCase):
    """Tests for Address validation and coordinates."""

    def setUp(self):
        self.user = User.objects.create_user(email='addr@example.com')
        self.address = Address.objects.create(
            user=self.user, street='12 MG Road', city='Bengaluru', pincode='560001'
        )

    def test_invalid_pincode_rejected(self):
        for pincode in ('056001', '56001', '5600011', 'ABCDEF'):
            address = Address(user=self.user, street='x', city='y', pincode=pincode)
            with self.assertRaises(ValidationError):
                address.full_clean()

    def test_no_coordinates_gives_empty_links(self):
        self.assertEqual(self.address.geo_location, '')
        self.assertEqual(self.address.google_maps_url, '')

    def test_set_coordinates_builds_maps_link(self):
        self.address.set_coordinates('12.9716', 77.5946)
        self.address.refresh_from_db()
        self.assertEqual(self.address.geo_location, '12.9716,77.5946')
        self.assertEqual(self.address.google_maps_url, 'https://maps.google.com/?q=12.9716,77.5946')

    def test_set_coordinates_out_of_range(self):
        with self.assertRaises(ValueError):
            self.address.set_coordinates(95, 10)
        with self.assertRaises(ValueError):
            self.address.set_coordinates(10, -190)


class TestTenancy(TestCase):
    """Tests for tenant lookup and company resolution."""

    def setUp(self):
        self.factory = RequestFactory()
        self.jkhm = Company.objects.create(name='JKHM')
        self.jlg = Company.objects.create(name='JLG')
        self.user = User.objects.create_user(email='u@jkhm.in', company=self.jkhm)

    def test_get_company_by_path_is_case_insensitive(self):
        self.assertEqual(get_company_by_path('jkhm'), self.jkhm)
        self.assertEqual(get_company_by_path(' JlG '), self.jlg)

    def test_get_company_by_path_unknown_or_blank(self):
        self.assertIsNone(get_company_by_path('unknown'))
        self.assertIsNone(get_company_by_path(''))
        self.assertIsNone(get_company_by_path('   '))
        self.assertIsNone(get_company_by_path(None))

    def test_header_has_priority(self):
        request = self.factory.get(
            f'/api/x/?company_id={self.jlg.pk}', HTTP_X_COMPANY_ID=str(self.jkhm.pk)
        )
        request.user = self.user
        self.assertEqual(resolve_company_id(request), str(self.jkhm.pk))

    def test_query_param_before_user_company(self):
        request = self.factory.get(f'/api/x/?company_id={self.jlg.pk}')
        request.user = self.user
        self.assertEqual(resolve_company_id(request), str(self.jlg.pk))

    def test_falls_back_to_user_company(self):
        request = self.factory.get('/api/x/')
        request.user = self.user
        self.assertEqual(resolve_company_id(request), str(self.jkhm.pk))

    def test_nothing_to_resolve(self):
        request = self.factory.get('/api/x/')
        request.user = User.objects.create_user(email='lonely@example.com')
        self.assertIsNone(resolve_company_id(request))


class TestCoreAPI(TestCase):
    """Tests for auth, profile and tenant endpoints."""

    def setUp(self):
        self.client = APIClient()
        self.company = Company.objects.create(name='JKHM')
        self.user = User.objects.create_user(
            email='seller@jkhm.in',
            password='testpass123',
            roles='SELLER,CUSTOMER',
            company=self.company,
        )

    def test_token_carries_roles_and_company(self):
        response = self.client.post('/api/auth/token/', {
            'email': 'seller@jkhm.in',
            'password': 'testpass123',
        }, format='json')
        self.assertEqual(response.status_code, 200)

        token = AccessToken(response.data['access'])
        self.assertEqual(token['roles'], ['SELLER', 'CUSTOMER'])
        self.assertEqual(token['company_id'], str(self.company.pk))

    def test_bearer_token_authenticates(self):
        token = AccessToken.for_user(self.user)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        response = self.client.get('/api/users/me/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['email'], 'seller@jkhm.in')
        self.assertEqual(response.data['roles'], ['SELLER', 'CUSTOMER'])
        self.assertEqual(response.data['company']['path'], 'jkhm')

    def test_unauthenticated_gets_envelope(self):
        response = self.client.get('/api/users/me/')
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.data['success'])
        self.assertIn('message', response.data['error'])

    def test_user_list_requires_admin(self):
        self.client.force_authenticate(self.user)
        response = self.client.get('/api/users/')
        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.data['success'])

    def test_tenant_resolve(self):
        response = self.client.get('/api/tenants/JkHm/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['name'], 'JKHM')
        self.assertEqual(response.data['path'], 'jkhm')

    def test_tenant_resolve_unknown(self):
        response = self.client.get('/api/tenants/nope/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error']['message'], "Unknown tenant 'nope'")


class TestAddressAPI(TestCase):
    """Tests for /api/addresses/."""

    def setUp(self):
        self.client = APIClient()
        self.company = Company.objects.create(name='JKHM')
        self.customer = User.objects.create_user(email='asha@example.com', company=self.company)
        self.stranger = User.objects.create_user(email='kiran@example.com', company=self.company)
        self.home = Address.objects.create(
            user=self.customer, street='12 MG Road', city='Bengaluru', pincode='560001'
        )
        self.foreign = Address.objects.create(
            user=self.stranger, street='9 Park Street', city='Kolkata', pincode='700016'
        )
        self.client.force_authenticate(self.customer)

    def test_lists_only_own_addresses(self):
        response = self.client.get('/api/addresses/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual([a['id'] for a in response.data['results']], [str(self.home.pk)])

    def test_other_users_address_is_hidden(self):
        response = self.client.get(f'/api/addresses/{self.foreign.pk}/')
        self.assertEqual(response.status_code, 404)

    def test_create_address(self):
        response = self.client.post('/api/addresses/', {
            'street': '4 Tech Park',
            'city': 'Bengaluru',
            'pincode': '560103',
            'address_type': 'Shipping',
            'latitude': 1.0,
        }, format='json')

        self.assertEqual(response.status_code, 201)
        address = Address.objects.get(pk=response.data['id'])
        self.assertEqual(address.user, self.customer)
        # Coordinates are pinned by delivery staff only
        self.assertIsNone(address.latitude)

    def test_create_address_bad_pincode(self):
        response = self.client.post('/api/addresses/', {
            'street': '4 Tech Park', 'city': 'Bengaluru', 'pincode': '060103',
        }, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data['success'])


class TestErrorEnvelope(TestCase):
    """Tests for the API exception handler."""

    def test_app_error_status(self):
        self.assertEqual(AppError('x', 404).status, 'fail')
        self.assertEqual(AppError('x').status, 'error')
        self.assertEqual(AppError('x').status_code, 500)

    def test_validation_error_envelope(self):
        company = Company.objects.create(name='JKHM')
        user = User.objects.create_user(email='c@jkhm.in', company=company)
        client = APIClient()
        client.force_authenticate(user)

        response = client.post('/api/orders/', {}, format='json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error']['message'], 'Validation Error')
        self.assertIn('delivery_address_id', response.data['error']['details'])


class TestSecurityMiddleware(TestCase):
    """Tests for security headers."""

    def test_security_headers_present(self):
        response = self.client.get('/health/')
        self.assertEqual(response['X-Content-Type-Options'], 'nosniff')
        self.assertEqual(response['X-Frame-Options'], 'DENY')
        self.assertEqual(response['Referrer-Policy'], 'strict-origin-when-cross-origin')


class TestHealthChecks(TestCase):
    """Tests for liveness and readiness probes."""

    def setUp(self):
        cache.clear()

    def test_liveness(self):
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'ok')

    def test_readiness_without_planner_probe(self):
        response = self.client.get('/health/ready/')
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body['checks']['database']['status'], 'healthy')
        self.assertEqual(body['checks']['cache']['status'], 'healthy')
        self.assertEqual(body['checks']['route_planner']['status'], 'unknown')

    def test_unhealthy_planner_only_degrades(self):
        cache.set(ROUTE_PLANNER_HEALTH_CACHE_KEY, {
            'success': False,
            'status': 'ERROR',
            'message': 'Connection refused',
            'checked_at': '2026-01-05T10:00:00+05:30',
        })
        response = self.client.get('/health/ready/')
        self.assertEqual(response.status_code, 200)
        planner = response.json()['checks']['route_planner']
        self.assertEqual(planner['status'], 'degraded')
        self.assertEqual(planner['error'], 'Connection refused')
