"""
LOGISTICS App - Celery Tasks

Route dispatch to executives and route planner monitoring.
"""

from celery import shared_task
from django.core.cache import cache
from django.conf import settings
from django.utils import timezone
import logging

from core.health import ROUTE_PLANNER_HEALTH_CACHE_KEY
from .services.route_planner import RoutePlannerClient
from .services.route_program import RouteProgramClient, RouteProgramError

logger = logging.getLogger(__name__)


@shared_task(name='logistics.tasks.dispatch_routes')
def dispatch_routes(company_id, executive_count, requested_by=None):
    """
    Push the latest planned routes to the executives (WhatsApp via the
    route program).
    """
    try:
        response = RouteProgramClient().send_routes(executive_count)
    except RouteProgramError as e:
        logger.error(
            f"[ROUTE DISPATCH] Sending routes failed for company {company_id}: {e.message}"
        )
        return {'success': False, 'error': e.message}

    logger.info(
        f"[ROUTE DISPATCH] Routes sent for company {company_id} "
        f"({executive_count} executives, requested by {requested_by})"
    )
    return {'success': True, 'response': response}


@shared_task(name='logistics.tasks.refresh_route_planner_health')
def refresh_route_planner_health():
    """
    Probe the route planner and cache the result.

    Runs every 5 minutes; /health/ready/ reports the cached value.
    """
    result = RoutePlannerClient().health()
    result['checked_at'] = timezone.now().isoformat()
    cache.set(
        ROUTE_PLANNER_HEALTH_CACHE_KEY,
        result,
        settings.ROUTE_PLANNER_HEALTH_CACHE_TTL,
    )
    if result['success']:
        logger.info(f"[ROUTE PLANNER TASK] Planner healthy ({result.get('status')})")
    else:
        logger.warning(f"[ROUTE PLANNER TASK] Planner unhealthy: {result.get('message')}")
    return result
