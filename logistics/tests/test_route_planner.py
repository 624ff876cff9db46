"""
Tests for the AI route planner client and its API proxy.
"""

from unittest.mock import MagicMock, patch

import requests
from django.test import TestCase
from rest_framework.test import APIClient

from core.models import Company, User
from logistics.services.route_planner import RoutePlannerClient, RoutePlannerError


def make_response(payload, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.json.return_value = payload
    return response


class RoutePlannerClientTestCase(TestCase):
    """Tests for RoutePlannerClient request building and error mapping."""

    def setUp(self):
        self.session = MagicMock()
        self.client = RoutePlannerClient(
            base_url='http://planner.local:5001/', timeout=5, session=self.session
        )

    def last_call(self):
        args, kwargs = self.session.request.call_args
        return args[0], args[1], kwargs

    # ==========================================
    # Error mapping
    # ==========================================

    def test_transport_failure_is_bad_gateway(self):
        self.session.request.side_effect = requests.ConnectionError('refused')

        with self.assertRaises(RoutePlannerError) as ctx:
            self.client.available_dates()

        self.assertEqual(ctx.exception.status_code, 502)
        self.assertEqual(ctx.exception.details, {'reason': 'refused'})

    def test_upstream_status_is_propagated(self):
        self.session.request.return_value = make_response(
            {'error': 'No deliveries for that session'}, status_code=404
        )

        with self.assertRaises(RoutePlannerError) as ctx:
            self.client.plan_route('2026-01-05', 'lunch', 2, {'lat': 12.9, 'lng': 77.6})

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.message, 'No deliveries for that session')

    def test_success_false_is_bad_gateway(self):
        self.session.request.return_value = make_response({'success': False, 'error': 'Solver timeout'})

        with self.assertRaises(RoutePlannerError) as ctx:
            self.client.plan_route('2026-01-05', 'lunch', 2, {'lat': 12.9, 'lng': 77.6})

        self.assertEqual(ctx.exception.status_code, 502)
        self.assertEqual(ctx.exception.message, 'Solver timeout')

    # ==========================================
    # Service & planning
    # ==========================================

    def test_health_ok(self):
        self.session.request.return_value = make_response(
            {'status': 'OK', 'service': 'route-planner', 'port': 5001}
        )
        result = self.client.health()

        self.assertTrue(result['success'])
        self.assertEqual(result['port'], 5001)
        method, url, _ = self.last_call()
        self.assertEqual((method, url), ('GET', 'http://planner.local:5001/api/health'))

    def test_health_never_raises(self):
        self.session.request.side_effect = requests.Timeout('timed out')
        result = self.client.health()

        self.assertFalse(result['success'])
        self.assertEqual(result['status'], 'ERROR')
        self.assertEqual(result['error'], 'Connection failed')

    def test_available_dates(self):
        self.session.request.return_value = make_response(
            {'available_dates': ['2026-01-05', '2026-01-06']}
        )
        result = self.client.available_dates(limit=7)

        self.assertEqual(result, {'success': True, 'available_dates': ['2026-01-05', '2026-01-06']})
        _, _, kwargs = self.last_call()
        self.assertEqual(kwargs['params'], {'limit': 7})
        self.assertEqual(kwargs['timeout'], 5)

    def test_delivery_data_omits_empty_filters(self):
        self.session.request.return_value = make_response({'data': [{'id': 1}]})
        result = self.client.delivery_data(date='2026-01-05')

        self.assertEqual(result['data'], [{'id': 1}])
        _, _, kwargs = self.last_call()
        self.assertEqual(kwargs['params'], {'date': '2026-01-05'})

    def test_plan_route_body(self):
        self.session.request.return_value = make_response(
            {'route_id': 'R-1', 'num_drivers': 2, 'total_deliveries': 14}
        )
        result = self.client.plan_route('2026-01-05', 'lunch', 2, {'lat': 12.9, 'lng': 77.6})

        self.assertTrue(result['success'])
        self.assertEqual(result['route_id'], 'R-1')
        method, url, kwargs = self.last_call()
        self.assertEqual(url, 'http://planner.local:5001/api/route/plan')
        self.assertEqual(kwargs['json'], {
            'delivery_date': '2026-01-05',
            'delivery_session': 'lunch',
            'num_drivers': 2,
            'depot_location': {'lat': 12.9, 'lng': 77.6},
        })

    def test_predict_start_time_prefers_route_id(self):
        self.session.request.return_value = make_response({'recommended_start_time': '06:40'})
        self.client.predict_start_time(route_id='R-1', delivery_date='2026-01-05')

        _, _, kwargs = self.last_call()
        self.assertEqual(kwargs['json'], {'route_id': 'R-1'})

    # ==========================================
    # Journeys
    # ==========================================

    def test_start_journey_keeps_requested_route(self):
        self.session.request.return_value = make_response({'journey_id': 'J-9'})
        result = self.client.start_journey('D-1', route_id='R-1')
        self.assertEqual(result['route_id'], 'R-1')
        self.assertEqual(result['journey_id'], 'J-9')

    def test_start_journey_uses_upstream_route(self):
        self.session.request.return_value = make_response({'route_id': 'R-2'})
        result = self.client.start_journey('D-1')

        self.assertEqual(result['route_id'], 'R-2')
        _, _, kwargs = self.last_call()
        self.assertEqual(kwargs['json'], {'driver_id': 'D-1'})

    def test_mark_stop_precedence(self):
        """planned_stop_id beats stop_order, driver_id beats user_id."""
        self.session.request.return_value = make_response({'success': True})
        self.client.mark_stop(
            'R-1', 'DEL-4',
            planned_stop_id='PS-4', stop_order=3,
            driver_id='D-1', user_id='U-1',
            current_location={'lat': 12.91, 'lng': 77.61},
            latitude=1.0, longitude=2.0,
        )

        _, _, kwargs = self.last_call()
        self.assertEqual(kwargs['json'], {
            'route_id': 'R-1',
            'delivery_id': 'DEL-4',
            'planned_stop_id': 'PS-4',
            'driver_id': 'D-1',
            'current_location': {'lat': 12.91, 'lng': 77.61},
        })

    def test_mark_stop_fallbacks(self):
        self.session.request.return_value = make_response({'success': True})
        self.client.mark_stop(
            'R-1', 'DEL-4', stop_order=0, user_id='U-1',
            status='CUSTOMER_UNAVAILABLE', latitude=12.9, longitude=77.6,
        )

        _, _, kwargs = self.last_call()
        self.assertEqual(kwargs['json'], {
            'route_id': 'R-1',
            'delivery_id': 'DEL-4',
            'stop_order': 0,
            'driver_id': 'U-1',
            'status': 'CUSTOMER_UNAVAILABLE',
            'current_location': {'lat': 12.9, 'lng': 77.6},
        })

    def test_check_traffic_normalizes_reply(self):
        self.session.request.return_value = make_response({
            'heavy_traffic_detected': True,
            'max_traffic_multiplier': 1.8,
        })
        result = self.client.check_traffic('R-1', check_all_segments=None)

        self.assertTrue(result['traffic_checked'])
        self.assertTrue(result['heavy_traffic_detected'])
        self.assertFalse(result['reoptimized'])
        self.assertEqual(result['traffic_segments'], [])
        _, _, kwargs = self.last_call()
        self.assertTrue(kwargs['json']['check_all_segments'])

    def test_check_traffic_requires_route(self):
        with self.assertRaises(RoutePlannerError) as ctx:
            self.client.check_traffic('')
        self.assertEqual(ctx.exception.status_code, 400)
        self.session.request.assert_not_called()

    def test_route_order(self):
        self.session.request.return_value = make_response({'stops': [{'stop_order': 1}]})
        result = self.client.route_order('R-1')
        self.assertEqual(result, {'success': True, 'route_id': 'R-1', 'stops': [{'stop_order': 1}]})

    def test_complete_driver_session(self):
        self.session.request.return_value = make_response({'message': 'done'})
        self.client.complete_driver_session('R-1')

        method, url, kwargs = self.last_call()
        self.assertEqual(url, 'http://planner.local:5001/api/driver-session/0/complete')
        self.assertEqual(kwargs['json'], {'route_id': 'R-1'})

    def test_driver_maps_require_date_and_session(self):
        with self.assertRaises(RoutePlannerError) as ctx:
            self.client.driver_next_stop_maps('2026-01-05', '')
        self.assertEqual(ctx.exception.status_code, 400)
        with self.assertRaises(RoutePlannerError):
            self.client.driver_route_overview_maps(None, 'lunch')


class RoutePlannerAPITestCase(TestCase):
    """Tests for /api/route-planner/ permissions and request forwarding."""

    def setUp(self):
        self.company = Company.objects.create(name='JKHM')
        self.manager = User.objects.create_user(
            email='manager@jkhm.in', roles='DELIVERY_MANAGER', company=self.company
        )
        self.executive = User.objects.create_user(
            email='exec@jkhm.in', roles='DELIVERY_EXECUTIVE', company=self.company
        )
        self.api = APIClient()

        patcher = patch('logistics.views.RoutePlannerClient')
        self.planner = patcher.start().return_value
        self.addCleanup(patcher.stop)

    def test_plan_route(self):
        self.planner.plan_route.return_value = {'success': True, 'route_id': 'R-1'}
        self.api.force_authenticate(self.manager)

        response = self.api.post('/api/route-planner/route/plan/', {
            'delivery_date': '2026-01-05',
            'delivery_session': 'lunch',
            'num_drivers': 3,
            'depot_location': {'lat': 12.97, 'lng': 77.59},
        }, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['route_id'], 'R-1')
        self.planner.plan_route.assert_called_once_with(
            '2026-01-05', 'lunch', 3, {'lat': 12.97, 'lng': 77.59}
        )

    def test_plan_route_validation(self):
        self.api.force_authenticate(self.manager)
        response = self.api.post('/api/route-planner/route/plan/', {
            'delivery_date': '2026-01-05',
            'delivery_session': 'brunch',
            'num_drivers': 0,
        }, format='json')

        self.assertEqual(response.status_code, 400)
        details = response.data['error']['details']
        self.assertIn('delivery_session', details)
        self.assertIn('num_drivers', details)
        self.planner.plan_route.assert_not_called()

    def test_executive_cannot_plan(self):
        self.api.force_authenticate(self.executive)
        response = self.api.get('/api/route-planner/health/')
        self.assertEqual(response.status_code, 403)

    def test_executive_can_run_journey(self):
        self.planner.start_journey.return_value = {'success': True, 'route_id': 'R-1'}
        self.api.force_authenticate(self.executive)

        response = self.api.post(
            '/api/route-planner/journey/start/', {'driver_id': 'D-1'}, format='json'
        )
        self.assertEqual(response.status_code, 200)
        self.planner.start_journey.assert_called_once_with('D-1', None)

    def test_upstream_error_envelope(self):
        self.planner.tracking_status.side_effect = RoutePlannerError('Route not found', 404)
        self.api.force_authenticate(self.manager)

        response = self.api.get('/api/route-planner/route/tracking-status/R-404/')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data['error']['message'], 'Route not found')
        self.planner.tracking_status.assert_called_once_with('R-404')

    def test_reoptimize_requires_route(self):
        self.api.force_authenticate(self.manager)
        response = self.api.post('/api/route-planner/route/reoptimize/', {}, format='json')
        self.assertEqual(response.status_code, 400)

    def test_driver_maps_query(self):
        self.planner.driver_next_stop_maps.return_value = {'success': True, 'drivers': []}
        self.api.force_authenticate(self.manager)

        response = self.api.get(
            '/api/route-planner/drivers/next-stop-maps/', {'date': '2026-01-05', 'session': 'dinner'}
        )
        self.assertEqual(response.status_code, 200)
        self.planner.driver_next_stop_maps.assert_called_once_with('2026-01-05', 'dinner')

    def test_mark_stop_forwarding(self):
        self.planner.mark_stop.return_value = {'success': True}
        self.api.force_authenticate(self.executive)

        response = self.api.post('/api/route-planner/journey/mark-stop/', {
            'route_id': 'R-1',
            'delivery_id': 'DEL-1',
            'stop_order': 2,
            'current_location': {'lat': 12.9, 'lng': 77.6},
        }, format='json')

        self.assertEqual(response.status_code, 200)
        kwargs = self.planner.mark_stop.call_args.kwargs
        self.assertEqual(kwargs['route_id'], 'R-1')
        self.assertEqual(kwargs['stop_order'], 2)
        self.assertEqual(kwargs['current_location'], {'lat': 12.9, 'lng': 77.6})

    def test_complete_session_requires_route(self):
        self.api.force_authenticate(self.executive)
        response = self.api.post('/api/route-planner/journey/complete-session/', {}, format='json')
        self.assertEqual(response.status_code, 400)
        self.planner.complete_driver_session.assert_not_called()
