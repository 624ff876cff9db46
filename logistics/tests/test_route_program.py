"""
Tests for the route program client and /api/route-program/.
"""

from unittest.mock import MagicMock, patch

import requests
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from core.models import Company, User
from logistics.models import RouteRun, RouteRunStatus
from logistics.services.route_program import (
    REQUEST_SOURCE, RouteProgramClient, RouteProgramError,
)


def make_response(payload, status_code=200, text=''):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.json.return_value = payload
    response.text = text
    return response


class RouteProgramClientTestCase(TestCase):
    """Tests for RouteProgramClient."""

    def setUp(self):
        self.session = MagicMock()
        self.session.headers = {}
        self.client = RouteProgramClient(
            base_url='http://program.local:5000', token='secret', timeout=10, session=self.session
        )

    def test_bearer_token_on_session(self):
        self.assertEqual(self.session.headers['Authorization'], 'Bearer secret')

    def test_no_token_no_header(self):
        session = MagicMock()
        session.headers = {}
        RouteProgramClient(base_url='http://program.local:5000', token='', session=session)
        self.assertNotIn('Authorization', session.headers)

    def test_run_script_payload(self):
        self.session.request.return_value = make_response({'success': True, 'requestId': 'REQ-1'})
        result = self.client.run_script(4)

        self.assertEqual(result['requestId'], 'REQ-1')
        args, kwargs = self.session.request.call_args
        self.assertEqual(args, ('POST', 'http://program.local:5000/run_script'))
        self.assertEqual(kwargs['json']['executiveCount'], 4)
        self.assertEqual(kwargs['json']['source'], REQUEST_SOURCE)
        self.assertIn('timestamp', kwargs['json'])

    def test_save_routes_sends_request_id(self):
        self.session.request.return_value = make_response({'success': True})
        self.client.save_routes('REQ-1')
        _, kwargs = self.session.request.call_args
        self.assertEqual(kwargs['json']['requestId'], 'REQ-1')

    def test_upstream_failure(self):
        self.session.request.return_value = make_response({'message': 'Script crashed'}, status_code=500)
        with self.assertRaises(RouteProgramError) as ctx:
            self.client.send_routes(2)
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.message, 'Script crashed')

    def test_unreachable(self):
        self.session.request.side_effect = requests.ConnectionError('refused')
        with self.assertRaises(RouteProgramError) as ctx:
            self.client.session_data()
        self.assertEqual(ctx.exception.status_code, 502)

    def test_success_false(self):
        self.session.request.return_value = make_response({'success': False, 'error': 'No executives'})
        with self.assertRaises(RouteProgramError) as ctx:
            self.client.send_executive_count(3)
        self.assertEqual(ctx.exception.status_code, 502)

    # ==========================================
    # Files & photos
    # ==========================================

    @override_settings(ROUTE_PROGRAM_FILE_HOSTS=['files.example.com'])
    @patch('logistics.services.route_program.requests.get')
    def test_fetch_file_content(self, mock_get):
        mock_get.return_value = make_response(None, text='Executive,Stop\nRavi,1\n')
        result = self.client.fetch_file_content('https://files.example.com/routes/lunch.csv')

        self.assertEqual(result, {
            'success': True,
            'filename': 'lunch.csv',
            'content': 'Executive,Stop\nRavi,1\n',
        })
        # The program token is not forwarded to file hosts
        self.assertNotIn('Authorization', mock_get.call_args.kwargs['headers'])

    @patch('logistics.services.route_program.requests.get')
    def test_fetch_file_from_program_host(self, mock_get):
        mock_get.return_value = make_response(None, text='ok')
        result = self.client.fetch_file_content('http://program.local:5000/out.txt', filename='routes.txt')
        self.assertEqual(result['filename'], 'routes.txt')

    @patch('logistics.services.route_program.requests.get')
    def test_fetch_file_unknown_host(self, mock_get):
        with self.assertRaises(RouteProgramError) as ctx:
            self.client.fetch_file_content('http://169.254.169.254/latest/meta-data')
        self.assertEqual(ctx.exception.status_code, 400)
        mock_get.assert_not_called()

    def test_fetch_file_bad_scheme(self):
        with self.assertRaises(RouteProgramError) as ctx:
            self.client.fetch_file_content('file:///etc/passwd')
        self.assertEqual(ctx.exception.status_code, 400)

    def test_upload_delivery_photo(self):
        self.session.request.return_value = make_response({'success': True})
        image = SimpleUploadedFile('pod.jpg', b'jpeg-bytes', content_type='image/jpeg')
        image.read()

        self.client.upload_delivery_photo(image, 'ADDR-1', 'lunch', '2026-01-05')

        args, kwargs = self.session.request.call_args
        self.assertEqual(args[1], 'http://program.local:5000/upload_delivery_pic')
        self.assertEqual(kwargs['files']['image'], ('pod.jpg', b'jpeg-bytes', 'image/jpeg'))
        self.assertEqual(kwargs['data'], {'address_id': 'ADDR-1', 'session': 'lunch', 'date': '2026-01-05'})


class RouteProgramAPITestCase(TestCase):
    """Tests for /api/route-program/."""

    def setUp(self):
        self.company = Company.objects.create(name='JKHM')
        self.manager = User.objects.create_user(
            email='manager@jkhm.in', roles='DELIVERY_MANAGER', company=self.company
        )
        self.api = APIClient()
        self.api.force_authenticate(self.manager)

        patcher = patch('logistics.views.RouteProgramClient')
        self.program = patcher.start().return_value
        self.addCleanup(patcher.stop)

    def test_run_records_draft(self):
        self.program.send_executive_count.return_value = {'success': True}
        self.program.run_script.return_value = {
            'success': True,
            'requestId': 'REQ-7',
            'data': {'externalResponse': {'result': {
                'breakfast': [{'Delivery_Name': 'Asha', 'Executive': 'Ravi', 'Location': 'MG Road'}],
            }}},
            'files': ['https://files.example.com/routes/breakfast.csv'],
        }

        response = self.api.post('/api/route-program/run/', {
            'executive_count': 3,
            'delivery_session': 'breakfast',
        }, format='json')

        self.assertEqual(response.status_code, 201)
        run = RouteRun.objects.get()
        self.assertEqual(run.status, RouteRunStatus.DRAFT)
        self.assertEqual(run.request_id, 'REQ-7')
        self.assertEqual(run.company, self.company)
        self.assertEqual(response.data['run']['meal_counts'], {'breakfast': 1, 'lunch': 0, 'dinner': 0})
        self.assertEqual(response.data['run']['files'][0]['filename'], 'breakfast.csv')
        self.program.run_script.assert_called_once_with(3)

    def test_run_rejects_zero_executives(self):
        response = self.api.post('/api/route-program/run/', {'executive_count': 0}, format='json')
        self.assertEqual(response.status_code, 400)
        self.program.run_script.assert_not_called()

    def test_script_failure_records_nothing(self):
        self.program.run_script.side_effect = RouteProgramError('Script crashed', 500)
        response = self.api.post('/api/route-program/run/', {'executive_count': 2}, format='json')

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data['error']['message'], 'Script crashed')
        self.assertFalse(RouteRun.objects.exists())

    @patch('logistics.views.dispatch_routes')
    def test_send_routes_is_queued(self, mock_task):
        mock_task.delay.return_value.id = 'task-123'
        response = self.api.post('/api/route-program/send-routes/', {'executive_count': 5}, format='json')

        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.data['task_id'], 'task-123')
        mock_task.delay.assert_called_once_with(str(self.company.pk), 5, str(self.manager.pk))

    def test_session_data(self):
        self.program.session_data.return_value = {'sessions': ['breakfast']}
        response = self.api.get('/api/route-program/session-data/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data'], {'sessions': ['breakfast']})

    def test_seller_cannot_run_program(self):
        seller = User.objects.create_user(email='seller@jkhm.in', roles='SELLER', company=self.company)
        api = APIClient()
        api.force_authenticate(seller)
        response = api.post('/api/route-program/run/', {'executive_count': 2}, format='json')
        self.assertEqual(response.status_code, 403)
