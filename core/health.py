"""
MealRoute Health Check Endpoints
================================

Provides:
1. /health/ - Basic liveness check (for load balancers/Docker)
2. /health/ready/ - Readiness check (DB, cache, route planner status)
"""

import time
import logging
from django.http import JsonResponse
from django.db import connection, DatabaseError
from django.core.cache import cache
from django.views.decorators.http import require_GET
from django.views.decorators.csrf import csrf_exempt
from django.utils import timezone

logger = logging.getLogger(__name__)

ROUTE_PLANNER_HEALTH_CACHE_KEY = 'route_planner_health'


@csrf_exempt
@require_GET
def health_check(request):
    """
    Basic liveness probe.
    Returns 200 if the Django process is alive.
    """
    return JsonResponse({
        'status': 'ok',
        'service': 'mealroute',
        'timestamp': timezone.now().isoformat(),
    })


@csrf_exempt
@require_GET
def readiness_check(request):
    """
    Readiness probe.
    Returns 503 if the database or the cache is down.
    The route planner is reported from the last cached probe and
    only ever marks the service as degraded.
    """
    checks = {}
    all_healthy = True

    # 1. Database Check
    try:
        start = time.time()
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        checks['database'] = {
            'status': 'healthy',
            'response_time_ms': round((time.time() - start) * 1000, 2),
            'engine': connection.vendor,
        }
    except DatabaseError as e:
        checks['database'] = {'status': 'unhealthy', 'error': str(e)}
        all_healthy = False
        logger.error(f"Health check - Database unhealthy: {e}")

    # 2. Cache Check
    start = time.time()
    cache_key = '_healthcheck_ping'
    try:
        cache.set(cache_key, 'pong', 10)
        result = cache.get(cache_key)
    except Exception as e:  # backend-specific connection errors
        result = None
        logger.error(f"Health check - Cache unhealthy: {e}")
    if result == 'pong':
        checks['cache'] = {
            'status': 'healthy',
            'response_time_ms': round((time.time() - start) * 1000, 2),
        }
    else:
        checks['cache'] = {'status': 'unhealthy', 'error': 'Cache read/write mismatch'}
        all_healthy = False

    # 3. Route planner (last known state, refreshed by Celery beat)
    planner = cache.get(ROUTE_PLANNER_HEALTH_CACHE_KEY)
    if planner is None:
        checks['route_planner'] = {'status': 'unknown'}
    elif planner.get('success'):
        checks['route_planner'] = {'status': 'healthy', 'checked_at': planner.get('checked_at')}
    else:
        checks['route_planner'] = {
            'status': 'degraded',
            'error': planner.get('message') or planner.get('error'),
            'checked_at': planner.get('checked_at'),
        }

    status_code = 200 if all_healthy else 503

    return JsonResponse({
        'status': 'healthy' if all_healthy else 'unhealthy',
        'service': 'mealroute',
        'timestamp': timezone.now().isoformat(),
        'checks': checks,
    }, status=status_code)
