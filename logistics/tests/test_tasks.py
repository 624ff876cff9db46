"""
Tests for logistics Celery tasks.
"""

from unittest.mock import patch

from django.core.cache import cache
from django.test import TestCase

from core.health import ROUTE_PLANNER_HEALTH_CACHE_KEY
from logistics.services.route_program import RouteProgramError
from logistics.tasks import dispatch_routes, refresh_route_planner_health


class DispatchRoutesTaskTestCase(TestCase):

    @patch('logistics.tasks.RouteProgramClient')
    def test_routes_sent(self, mock_client):
        mock_client.return_value.send_routes.return_value = {'success': True, 'sent': 3}

        result = dispatch_routes('company-1', 3, requested_by='user-1')

        self.assertEqual(result, {'success': True, 'response': {'success': True, 'sent': 3}})
        mock_client.return_value.send_routes.assert_called_once_with(3)

    @patch('logistics.tasks.RouteProgramClient')
    def test_failure_is_reported(self, mock_client):
        mock_client.return_value.send_routes.side_effect = RouteProgramError('WhatsApp gateway down', 502)

        result = dispatch_routes('company-1', 3)

        self.assertEqual(result, {'success': False, 'error': 'WhatsApp gateway down'})


class RoutePlannerHealthTaskTestCase(TestCase):

    def setUp(self):
        cache.clear()

    @patch('logistics.tasks.RoutePlannerClient')
    def test_result_is_cached(self, mock_client):
        mock_client.return_value.health.return_value = {'success': True, 'status': 'OK'}

        result = refresh_route_planner_health()

        cached = cache.get(ROUTE_PLANNER_HEALTH_CACHE_KEY)
        self.assertEqual(cached, result)
        self.assertTrue(cached['success'])
        self.assertIn('checked_at', cached)

    @patch('logistics.tasks.RoutePlannerClient')
    def test_unhealthy_planner_degrades_readiness(self, mock_client):
        mock_client.return_value.health.return_value = {
            'success': False,
            'status': 'ERROR',
            'error': 'Connection failed',
            'message': 'Health check failed: route planner unreachable',
        }
        refresh_route_planner_health()

        response = self.client.get('/health/ready/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['checks']['route_planner']['status'], 'degraded')
