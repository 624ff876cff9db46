"""
AI Route Planner client for MealRoute

Thin HTTP client for the external route optimisation service. Route
construction, driver assignment and traffic analysis all happen
upstream; this module only forwards requests and normalises replies.

Error mapping:
    upstream non-2xx      -> RoutePlannerError(upstream message, upstream status)
    transport failure     -> RoutePlannerError(message, 502)
    2xx with success=false -> RoutePlannerError(upstream message, 502)
"""

import logging
from typing import Optional

import requests
from django.conf import settings
from rest_framework import status

from core.exceptions import AppError

logger = logging.getLogger(__name__)


class RoutePlannerError(AppError):
    default_detail = 'Route planner request failed'


class RoutePlannerClient:
    """
    Client for the AI route planner.

    Usage:
        client = RoutePlannerClient()
        plan = client.plan_route('2026-01-05', 'lunch', 4, {'lat': 12.97, 'lng': 77.59})
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[int] = None, session=None):
        self.base_url = (base_url or settings.ROUTE_PLANNER_BASE_URL).rstrip('/')
        self.timeout = timeout or settings.ROUTE_PLANNER_TIMEOUT
        self.session = session or requests.Session()
        self.session.headers.update({'Content-Type': 'application/json'})

    def _request(self, method: str, path: str, action: str, params=None, json=None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(
                method, url, params=params, json=json, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"[ROUTE PLANNER] {action} failed: {e}")
            raise RoutePlannerError(
                f"{action} failed: route planner unreachable",
                status.HTTP_502_BAD_GATEWAY,
                details={'reason': str(e)},
            )

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {'data': data}

        if not response.ok:
            message = data.get('error') or data.get('message') or f"{action} failed"
            logger.error(
                f"[ROUTE PLANNER] {action} failed: HTTP {response.status_code} - {message}"
            )
            raise RoutePlannerError(message, response.status_code, details=data or None)

        if data.get('success') is False:
            message = data.get('error') or f"{action} failed"
            logger.error(f"[ROUTE PLANNER] {action} rejected: {message}")
            raise RoutePlannerError(message, status.HTTP_502_BAD_GATEWAY, details=data)

        return data

    # ===========================================
    # Service & delivery data
    # ===========================================

    def health(self) -> dict:
        """Probe the planner. Never raises."""
        try:
            data = self._request('GET', '/api/health', 'Health check')
        except RoutePlannerError as e:
            logger.warning(f"[ROUTE PLANNER] Health check failed: {e.message}")
            return {
                'success': False,
                'status': 'ERROR',
                'error': 'Connection failed',
                'message': e.message,
            }
        return {
            'success': True,
            'status': data.get('status') or 'OK',
            'service': data.get('service'),
            'port': data.get('port'),
            'timestamp': data.get('timestamp'),
        }

    def available_dates(self, limit: int = 30) -> dict:
        data = self._request(
            'GET', '/api/delivery_data/available-dates', 'Fetch available dates',
            params={'limit': limit},
        )
        dates = data.get('available_dates') or []
        logger.info(f"[ROUTE PLANNER] {len(dates)} available dates")
        return {'success': True, 'available_dates': dates}

    def delivery_data(self, date: Optional[str] = None, session: Optional[str] = None) -> dict:
        params = {}
        if date:
            params['date'] = date
        if session:
            params['session'] = session
        data = self._request('GET', '/api/delivery_data', 'Fetch delivery data', params=params)
        return {'success': True, 'data': data.get('data') or []}

    # ===========================================
    # Route planning
    # ===========================================

    def plan_route(self, delivery_date, delivery_session, num_drivers, depot_location) -> dict:
        data = self._request('POST', '/api/route/plan', 'Route planning', json={
            'delivery_date': delivery_date,
            'delivery_session': delivery_session,
            'num_drivers': num_drivers,
            'depot_location': depot_location,
        })
        logger.info(
            f"[ROUTE PLANNER] Planned {delivery_date}/{delivery_session}: "
            f"{data.get('num_drivers')} drivers, {data.get('total_deliveries')} deliveries"
        )
        return {**data, 'success': True}

    def predict_start_time(
        self,
        route_id=None,
        delivery_date=None,
        delivery_session=None,
        depot_location=None,
    ) -> dict:
        """Predict a start time for a known route, or for a date/session/depot."""
        if route_id:
            body = {'route_id': route_id}
        else:
            body = {
                'delivery_date': delivery_date,
                'delivery_session': delivery_session,
                'depot_location': depot_location,
            }
        data = self._request('POST', '/api/route/predict-start-time', 'Start time prediction', json=body)
        return {**data, 'success': True}

    def reoptimize(self, payload: dict) -> dict:
        data = self._request('POST', '/api/route/reoptimize', 'Route reoptimization', json=payload)
        logger.info(
            f"[ROUTE PLANNER] Reoptimize {payload.get('route_id')}: reoptimized={data.get('reoptimized')}"
        )
        return {**data, 'success': True}

    def tracking_status(self, route_id) -> dict:
        data = self._request('GET', f"/api/route/tracking-status/{route_id}", 'Fetch tracking status')
        return {**data, 'success': True}

    # ===========================================
    # Journeys
    # ===========================================

    def start_journey(self, driver_id, route_id=None) -> dict:
        body = {'driver_id': driver_id}
        if route_id:
            body['route_id'] = route_id
        data = self._request('POST', '/api/journey/start', 'Journey start', json=body)

        final_route_id = data.get('route_id') or route_id
        logger.info(
            f"[ROUTE PLANNER] Journey started: driver={driver_id} route={final_route_id} "
            f"journey={data.get('journey_id')}"
        )
        return {**data, 'route_id': final_route_id}

    def mark_stop(
        self,
        route_id,
        delivery_id,
        planned_stop_id=None,
        stop_order=None,
        driver_id=None,
        user_id=None,
        completed_at=None,
        status=None,
        current_location=None,
        latitude=None,
        longitude=None,
    ) -> dict:
        """
        Mark a stop as reached.

        planned_stop_id wins over stop_order, driver_id over user_id and
        current_location over the legacy latitude/longitude pair.
        """
        body = {'route_id': route_id, 'delivery_id': delivery_id}

        if planned_stop_id:
            body['planned_stop_id'] = planned_stop_id
        elif stop_order is not None:
            body['stop_order'] = stop_order

        if driver_id:
            body['driver_id'] = driver_id
        elif user_id:
            body['driver_id'] = user_id

        if completed_at:
            body['completed_at'] = completed_at
        if status:
            body['status'] = status

        if current_location and current_location.get('lat') and current_location.get('lng'):
            body['current_location'] = {
                'lat': current_location['lat'],
                'lng': current_location['lng'],
            }
        elif latitude is not None and longitude is not None:
            body['current_location'] = {'lat': latitude, 'lng': longitude}

        data = self._request('POST', '/api/journey/mark-stop', 'Mark stop', json=body)
        logger.info(
            f"[ROUTE PLANNER] Stop marked: route={route_id} "
            f"stop={planned_stop_id or stop_order}"
        )
        return data

    def end_journey(self, user_id, route_id, latitude=None, longitude=None) -> dict:
        data = self._request('POST', '/api/journey/end', 'Journey end', json={
            'user_id': user_id,
            'route_id': route_id,
            'latitude': latitude,
            'longitude': longitude,
        })
        logger.info(
            f"[ROUTE PLANNER] Journey ended: route={route_id} "
            f"duration={data.get('total_duration_minutes')}min"
        )
        return data

    def journey_status(self, route_id) -> dict:
        return self._request('GET', f"/api/journey/status/{route_id}", 'Fetch journey status')

    def check_traffic(self, route_id, current_location=None, check_all_segments=True) -> dict:
        if not route_id:
            raise RoutePlannerError('route_id is required', status.HTTP_400_BAD_REQUEST)

        data = self._request('POST', '/api/journey/check-traffic', 'Traffic check', json={
            'route_id': route_id,
            'current_location': current_location,
            'check_all_segments': check_all_segments is not False,
        })
        return {
            'success': True,
            'traffic_checked': True,
            'heavy_traffic_detected': data.get('heavy_traffic_detected') or False,
            'reoptimized': data.get('reoptimized') or False,
            'max_traffic_multiplier': data.get('max_traffic_multiplier'),
            'traffic_segments': data.get('traffic_segments') or [],
            'reoptimization_result': data.get('reoptimization_result'),
            'updated_route_order': data.get('updated_route_order'),
            'reason': data.get('reason'),
        }

    def route_order(self, route_id) -> dict:
        if not route_id:
            raise RoutePlannerError('route_id is required', status.HTTP_400_BAD_REQUEST)
        data = self._request('GET', f"/api/journey/route-order/{route_id}", 'Fetch route order')
        return {
            'success': True,
            'route_id': route_id,
            'stops': data.get('stops') or [],
        }

    def complete_driver_session(self, route_id) -> dict:
        # The planner resolves the session from route_id; the path id is a placeholder
        data = self._request(
            'POST', '/api/driver-session/0/complete', 'Complete driver session',
            json={'route_id': route_id},
        )
        return {**data, 'success': True}

    # ===========================================
    # Driver map links
    # ===========================================

    def driver_next_stop_maps(self, date, session) -> dict:
        if not date or not session:
            raise RoutePlannerError('date and session are required', status.HTTP_400_BAD_REQUEST)
        return self._request(
            'GET', '/api/drivers/next-stop-maps', 'Fetch next stop maps',
            params={'date': date, 'session': session},
        )

    def driver_route_overview_maps(self, date, session) -> dict:
        if not date or not session:
            raise RoutePlannerError('date and session are required', status.HTTP_400_BAD_REQUEST)
        return self._request(
            'GET', '/api/drivers/route-overview-maps', 'Fetch route overview maps',
            params={'date': date, 'session': session},
        )
