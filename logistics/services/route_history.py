"""
Route History Service for MealRoute

Every program execution is stored as a RouteRun so managers can review
the planned stops, filter them and approve or discard the run.

Lifecycle:
    DRAFT --approve--> APPROVED   (routes saved upstream first)
    DRAFT --discard--> DISCARDED
"""

import logging
from typing import List, Optional, Tuple

from django.db import transaction
from django.utils import timezone
from rest_framework import status

from core.exceptions import AppError
from orders.models import MealType
from ..models import RouteRun, RouteRunStatus
from .route_program import RouteProgramClient, RouteProgramError

logger = logging.getLogger(__name__)

ALL_MEALS = 'all'

ROW_FILTER_FIELDS = {
    'delivery_name': 'Delivery_Name',
    'executive': 'Executive',
    'location': 'Location',
}

EXPORT_URL_KEYS = ('s3_url', 's3_url_txt', 'filename', 'filename_txt')


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def extract_result(response: dict) -> dict:
    """Planned stops keyed by meal type, wherever the program put them."""
    data = _as_dict(response.get('data'))
    external = _as_dict(data.get('externalResponse'))
    for candidate in (external.get('result'), response.get('result')):
        if isinstance(candidate, dict):
            return candidate
    return {}


def extract_files(response: dict) -> List[dict]:
    data = _as_dict(response.get('data'))
    raw = response.get('files') or data.get('files') or []
    files = []
    for entry in raw:
        if isinstance(entry, str):
            files.append({'filename': entry.rstrip('/').rsplit('/', 1)[-1], 'url': entry})
        elif isinstance(entry, dict) and entry.get('url'):
            files.append({
                'filename': entry.get('filename') or entry['url'].rstrip('/').rsplit('/', 1)[-1],
                'url': entry['url'],
            })
    return files


def extract_request_id(response: dict) -> str:
    data = _as_dict(response.get('data'))
    for source in (response, data):
        value = source.get('requestId') or source.get('request_id')
        if value:
            return str(value)
    return ''


def _matches(row: dict, field: str, needle: str) -> bool:
    value = row.get(field)
    if value is None:
        return False
    return needle.lower() in str(value).lower()


class RouteHistoryService:
    """Recording, filtering and approval of route runs."""

    @classmethod
    def record_run(
        cls,
        company,
        user,
        executive_count: int,
        response: dict,
        delivery_date=None,
        delivery_session: Optional[str] = None,
    ) -> RouteRun:
        run = RouteRun.objects.create(
            company=company,
            created_by=user,
            executive_count=executive_count,
            delivery_date=delivery_date,
            delivery_session=delivery_session,
            request_id=extract_request_id(response),
            result=extract_result(response),
            files=extract_files(response),
        )
        logger.info(
            f"[ROUTE HISTORY] Recorded run {run.pk} for {company}: "
            f"{executive_count} executives, stops={run.meal_counts()}"
        )
        return run

    @classmethod
    def execute_program(cls, company, user, executive_count, client: Optional[RouteProgramClient] = None,
                        delivery_date=None, delivery_session=None) -> Tuple[RouteRun, dict]:
        """
        Run the route program for `executive_count` executives.

        Sending the count first is best effort; the script run itself
        must succeed.
        """
        try:
            executive_count = int(executive_count)
        except (TypeError, ValueError):
            executive_count = 0
        if executive_count < 1:
            raise AppError(
                "Executive count must be a number of at least 1",
                status.HTTP_400_BAD_REQUEST,
            )

        client = client or RouteProgramClient()
        try:
            client.send_executive_count(executive_count)
        except RouteProgramError as e:
            logger.warning(f"[ROUTE HISTORY] Could not send executive count, continuing: {e.message}")

        response = client.run_script(executive_count)
        run = cls.record_run(
            company, user, executive_count, response,
            delivery_date=delivery_date, delivery_session=delivery_session,
        )
        return run, response

    @classmethod
    def filter_rows(
        cls,
        run: RouteRun,
        meal_type: str = MealType.BREAKFAST,
        delivery_name: str = '',
        executive: str = '',
        location: str = '',
    ) -> Tuple[list, int]:
        """
        Rows of one meal (or all meals) matching every non-empty filter.

        Returns (rows, total) where total counts the selected meal's
        rows before filtering.
        """
        meal_type = (meal_type or MealType.BREAKFAST).strip().lower()
        if meal_type == ALL_MEALS:
            meals = list(MealType.values)
        elif meal_type in MealType.values:
            meals = [meal_type]
        else:
            raise AppError(
                "meal_type must be one of breakfast, lunch, dinner, all",
                status.HTTP_400_BAD_REQUEST,
            )

        rows = []
        for meal in meals:
            rows.extend(row for row in (run.result.get(meal) or []) if isinstance(row, dict))
        total = len(rows)

        filters = {
            ROW_FILTER_FIELDS['delivery_name']: delivery_name,
            ROW_FILTER_FIELDS['executive']: executive,
            ROW_FILTER_FIELDS['location']: location,
        }
        for field, needle in filters.items():
            needle = (needle or '').strip()
            if needle:
                rows = [row for row in rows if _matches(row, field, needle)]

        return rows, total

    @classmethod
    def approve(cls, run: RouteRun, user, client: Optional[RouteProgramClient] = None) -> RouteRun:
        """Save the run's routes upstream, then mark it APPROVED."""
        if run.status != RouteRunStatus.DRAFT:
            raise AppError(
                f"Only draft runs can be approved (run is {run.status})",
                status.HTTP_400_BAD_REQUEST,
            )

        if not run.request_id:
            raise AppError("Run has no request id to save", status.HTTP_400_BAD_REQUEST)

        client = client or RouteProgramClient()
        saved = client.save_routes(run.request_id)

        with transaction.atomic():
            run = RouteRun.objects.select_for_update().get(pk=run.pk)
            if run.status != RouteRunStatus.DRAFT:
                raise AppError("Run was changed concurrently", status.HTTP_409_CONFLICT)
            run.status = RouteRunStatus.APPROVED
            run.approved_at = timezone.now()
            run.approved_by = user
            run.export_urls = {key: saved[key] for key in EXPORT_URL_KEYS if saved.get(key)}
            run.save(update_fields=['status', 'approved_at', 'approved_by', 'export_urls'])

        logger.info(f"[ROUTE HISTORY] Run {run.pk} approved by {user.pk}")
        return run

    @classmethod
    def discard(cls, run: RouteRun) -> RouteRun:
        if run.status == RouteRunStatus.APPROVED:
            raise AppError("Approved runs cannot be discarded", status.HTTP_400_BAD_REQUEST)
        if run.status == RouteRunStatus.DISCARDED:
            raise AppError("Run is already discarded", status.HTTP_400_BAD_REQUEST)

        run.status = RouteRunStatus.DISCARDED
        run.discarded_at = timezone.now()
        run.save(update_fields=['status', 'discarded_at'])
        logger.info(f"[ROUTE HISTORY] Run {run.pk} discarded")
        return run

    @classmethod
    def clear_history(cls, company) -> int:
        """Discard every draft run of the company. Approved runs are kept."""
        count = RouteRun.objects.filter(company=company, status=RouteRunStatus.DRAFT).update(
            status=RouteRunStatus.DISCARDED,
            discarded_at=timezone.now(),
        )
        logger.info(f"[ROUTE HISTORY] Cleared {count} draft runs for {company}")
        return count
