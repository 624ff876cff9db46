"""
Route Program client for MealRoute

The route program is an external script runner: given the number of
active delivery executives it computes per-meal routes, produces
downloadable files and can push the routes to the executives.

Each POST carries the executive count (where relevant), an ISO
timestamp and the dashboard source tag.
"""

import logging
from typing import Optional
from urllib.parse import urlparse

import requests
from django.conf import settings
from django.utils import timezone
from rest_framework import status

from core.exceptions import AppError

logger = logging.getLogger(__name__)

REQUEST_SOURCE = 'delivery-manager-dashboard'


class RouteProgramError(AppError):
    default_detail = 'Route program request failed'


class RouteProgramClient:
    """Client for the external route program."""

    def __init__(self, base_url: Optional[str] = None, token: Optional[str] = None,
                 timeout: Optional[int] = None, session=None):
        self.base_url = (base_url or settings.ROUTE_PROGRAM_BASE_URL).rstrip('/')
        self.timeout = timeout or settings.ROUTE_PROGRAM_TIMEOUT
        self.session = session or requests.Session()
        token = token if token is not None else settings.ROUTE_PROGRAM_TOKEN
        if token:
            self.session.headers.update({'Authorization': f"Bearer {token}"})

    def _payload(self, **extra) -> dict:
        return {
            **extra,
            'timestamp': timezone.now().isoformat(),
            'source': REQUEST_SOURCE,
        }

    def _request(self, method: str, path: str, action: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"[ROUTE PROGRAM] {action} failed: {e}")
            raise RouteProgramError(
                f"{action} failed: route program unreachable",
                status.HTTP_502_BAD_GATEWAY,
                details={'reason': str(e)},
            )

        try:
            data = response.json()
        except ValueError:
            data = {'raw': response.text}
        if not isinstance(data, dict):
            data = {'data': data}

        if not response.ok:
            message = data.get('error') or data.get('message') or f"{action} failed"
            logger.error(f"[ROUTE PROGRAM] {action} failed: HTTP {response.status_code} - {message}")
            raise RouteProgramError(message, response.status_code, details=data)

        if data.get('success') is False:
            message = data.get('error') or data.get('message') or f"{action} failed"
            logger.error(f"[ROUTE PROGRAM] {action} rejected: {message}")
            raise RouteProgramError(message, status.HTTP_502_BAD_GATEWAY, details=data)

        logger.info(f"[ROUTE PROGRAM] {action} OK")
        return data

    # ===========================================
    # Program execution
    # ===========================================

    def send_executive_count(self, count: int) -> dict:
        return self._request(
            'POST', '/executive_count', 'Send executive count',
            json=self._payload(executiveCount=count),
        )

    def run_script(self, count: int) -> dict:
        return self._request(
            'POST', '/run_script', 'Run route script',
            json=self._payload(executiveCount=count),
        )

    def send_routes(self, count: int) -> dict:
        return self._request(
            'POST', '/send_routes', 'Send routes',
            json=self._payload(executiveCount=count),
        )

    def session_data(self) -> dict:
        return self._request('GET', '/session_data', 'Fetch session data')

    def route_planning(self) -> dict:
        return self._request('POST', '/route_planning', 'Route planning', json=self._payload())

    def save_routes(self, request_id: str) -> dict:
        return self._request(
            'POST', '/save_routes', 'Save routes',
            json=self._payload(requestId=request_id),
        )

    # ===========================================
    # Files & delivery photos
    # ===========================================

    def allowed_file_hosts(self) -> set:
        hosts = {urlparse(self.base_url).hostname}
        hosts.update(h.strip().lower() for h in settings.ROUTE_PROGRAM_FILE_HOSTS if h.strip())
        return {h for h in hosts if h}

    def fetch_file_content(self, url: str, filename: Optional[str] = None) -> dict:
        """Fetch a text file produced by the program (CSV/TXT routes)."""
        parsed = urlparse(url or '')
        if parsed.scheme not in ('http', 'https') or not parsed.hostname:
            raise RouteProgramError('A valid http(s) URL is required', status.HTTP_400_BAD_REQUEST)
        if parsed.hostname.lower() not in self.allowed_file_hosts():
            raise RouteProgramError(
                f"Files from {parsed.hostname} cannot be fetched",
                status.HTTP_400_BAD_REQUEST,
            )

        try:
            # Plain request: the program token is not sent to file hosts
            response = requests.get(
                url,
                headers={'Accept': 'text/plain,text/html,*/*'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[ROUTE PROGRAM] File fetch failed for {url}: {e}")
            raise RouteProgramError(
                'Failed to fetch file', status.HTTP_502_BAD_GATEWAY, details={'reason': str(e)}
            )

        if not response.ok:
            raise RouteProgramError(
                f"Failed to fetch file: {response.status_code}",
                response.status_code,
            )

        return {
            'success': True,
            'filename': filename or parsed.path.rsplit('/', 1)[-1],
            'content': response.text,
        }

    def upload_delivery_photo(self, image, address_id, session: str, date: str) -> dict:
        """Forward a proof-of-delivery photo for an address."""
        if hasattr(image, 'seek'):
            image.seek(0)
        files = {
            'image': (
                getattr(image, 'name', 'delivery.jpg'),
                image.read(),
                getattr(image, 'content_type', None) or 'application/octet-stream',
            ),
        }
        data = {'address_id': str(address_id), 'session': session, 'date': date}
        return self._request(
            'POST', '/upload_delivery_pic', 'Upload delivery photo', files=files, data=data,
        )
