"""
Logistics App Views - Executives, Route Planner proxy, Route Program & Route Runs
"""

import logging

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import AppError
from core.permissions import IsDeliveryExecutive, IsDeliveryManager, IsDeliveryStaff, IsRouteOperator
from core.tenancy import TenantScopedMixin
from orders.models import DeliveryItem
from .filters import RouteRunFilter
from .models import DeliveryExecutive, RouteRun, RouteRunStatus
from .serializers import (
    CheckTrafficSerializer, DeliveryExecutiveSerializer, DeliveryPhotoSerializer,
    DriverMapsQuerySerializer, EndJourneySerializer, ExecutiveCountSerializer,
    ExecutiveLocationSerializer, ExecutiveProfileSerializer, ExecutiveStatusBulkSerializer,
    FileContentSerializer, MarkStopSerializer, PlanRouteSerializer,
    PredictStartTimeSerializer, RouteRowsQuerySerializer, RouteRunDetailSerializer,
    RouteRunSerializer, StartJourneySerializer,
)
from .services.executives import ExecutiveService
from .services.route_history import RouteHistoryService
from .services.route_planner import RoutePlannerClient
from .services.route_program import RouteProgramClient
from .tasks import dispatch_routes

logger = logging.getLogger(__name__)


# ===========================================
# Delivery executives
# ===========================================

class ExecutiveViewSet(TenantScopedMixin, mixins.ListModelMixin, viewsets.GenericViewSet):
    """
    Delivery executives.

    - list / active / status: delivery staff of the company
    - me / location: the executive's own profile
    """

    serializer_class = DeliveryExecutiveSerializer
    pagination_class = None

    def get_permissions(self):
        if self.action in ('me', 'location'):
            return [IsDeliveryExecutive()]
        return [IsDeliveryStaff()]

    def get_queryset(self):
        return ExecutiveService.list_executives(
            self.get_company(), self.request.query_params.get('status')
        )

    def _own_profile(self, request) -> DeliveryExecutive:
        try:
            return request.user.executive_profile
        except DeliveryExecutive.DoesNotExist:
            raise AppError("Executive profile not found", status.HTTP_404_NOT_FOUND)

    @action(detail=False, methods=['get'])
    def active(self, request):
        executives = ExecutiveService.active_executives(self.get_company())
        return Response({
            'success': True,
            'count': executives.count(),
            'data': DeliveryExecutiveSerializer(executives, many=True).data,
        })

    @action(detail=False, methods=['post'], url_path='status')
    def bulk_status(self, request):
        """Toggle ACTIVE/INACTIVE for several executives at once."""
        serializer = ExecutiveStatusBulkSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        executives = ExecutiveService.update_statuses(
            self.get_company(), serializer.validated_data['updates']
        )
        return Response({
            'success': True,
            'message': f"{len(executives)} executive(s) updated",
            'data': DeliveryExecutiveSerializer(executives, many=True).data,
        })

    @action(detail=False, methods=['get', 'put'])
    def me(self, request):
        if request.method == 'GET':
            return Response(DeliveryExecutiveSerializer(self._own_profile(request)).data)

        serializer = ExecutiveProfileSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        executive, created = ExecutiveService.upsert_profile(request.user, serializer.validated_data)
        return Response(
            DeliveryExecutiveSerializer(executive).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @action(detail=False, methods=['post'], url_path='me/location')
    def location(self, request):
        serializer = ExecutiveLocationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = ExecutiveService.update_location(
            self._own_profile(request),
            data['latitude'],
            data['longitude'],
            label=data.get('location'),
            address_id=data.get('address_id'),
        )
        if isinstance(result, DeliveryExecutive):
            return Response({'success': True, 'data': DeliveryExecutiveSerializer(result).data})
        return Response({
            'success': True,
            'data': {
                'address_id': str(result.pk),
                'geo_location': result.geo_location,
                'google_maps_url': result.google_maps_url,
            },
        })


class DeliveryPhotoView(APIView):
    """
    POST /api/executives/delivery-items/<id>/photo/

    Proof-of-delivery upload; the item becomes DELIVERED on success.
    """

    permission_classes = [IsDeliveryExecutive]

    def post(self, request, pk):
        serializer = DeliveryPhotoSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        item = DeliveryItem.objects.filter(
            pk=pk, order__company_id=request.user.company_id
        ).select_related('address').first()
        if item is None:
            raise AppError("Delivery item not found", status.HTTP_404_NOT_FOUND)

        response = ExecutiveService.upload_delivery_photo(
            item,
            serializer.validated_data['image'],
            serializer.validated_data['session'],
            serializer.validated_data['date'].isoformat(),
        )
        return Response({
            'success': bool(response.get('success')),
            'status': item.status,
            'data': response,
        })


# ===========================================
# AI route planner proxy
# ===========================================

class RoutePlannerViewSet(viewsets.ViewSet):
    """
    Proxy to the AI route planner.

    Journey endpoints are open to delivery executives; everything else
    requires a delivery manager.
    """

    def get_permissions(self):
        if self.action and self.action.startswith('journey'):
            return [IsRouteOperator()]
        return [IsDeliveryManager()]

    @property
    def client(self) -> RoutePlannerClient:
        return RoutePlannerClient()

    def _validated(self, serializer_class, data):
        serializer = serializer_class(data=data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    @action(detail=False, methods=['get'])
    def health(self, request):
        return Response(self.client.health())

    @action(detail=False, methods=['get'], url_path='delivery-data/available-dates')
    def available_dates(self, request):
        try:
            limit = int(request.query_params.get('limit', 30))
        except ValueError:
            raise AppError("limit must be an integer", status.HTTP_400_BAD_REQUEST)
        return Response(self.client.available_dates(limit))

    @action(detail=False, methods=['get'], url_path='delivery-data')
    def delivery_data(self, request):
        return Response(self.client.delivery_data(
            date=request.query_params.get('date'),
            session=request.query_params.get('session'),
        ))

    @action(detail=False, methods=['post'], url_path='route/plan')
    def plan(self, request):
        data = self._validated(PlanRouteSerializer, request.data)
        return Response(self.client.plan_route(
            data['delivery_date'].isoformat(),
            data['delivery_session'],
            data['num_drivers'],
            dict(data['depot_location']),
        ))

    @action(detail=False, methods=['post'], url_path='route/predict-start-time')
    def predict_start_time(self, request):
        data = self._validated(PredictStartTimeSerializer, request.data)
        return Response(self.client.predict_start_time(
            route_id=data.get('route_id') or None,
            delivery_date=data['delivery_date'].isoformat() if data.get('delivery_date') else None,
            delivery_session=data.get('delivery_session'),
            depot_location=dict(data['depot_location']) if data.get('depot_location') else None,
        ))

    @action(detail=False, methods=['post'], url_path='route/reoptimize')
    def reoptimize(self, request):
        if not request.data.get('route_id'):
            raise AppError("route_id is required", status.HTTP_400_BAD_REQUEST)
        return Response(self.client.reoptimize(dict(request.data)))

    @action(detail=False, methods=['get'], url_path=r'route/tracking-status/(?P<route_id>[^/]+)')
    def tracking_status(self, request, route_id=None):
        return Response(self.client.tracking_status(route_id))

    @action(detail=False, methods=['get'], url_path='drivers/next-stop-maps')
    def next_stop_maps(self, request):
        data = self._validated(DriverMapsQuerySerializer, request.query_params)
        return Response(self.client.driver_next_stop_maps(data['date'].isoformat(), data['session']))

    @action(detail=False, methods=['get'], url_path='drivers/route-overview-maps')
    def route_overview_maps(self, request):
        data = self._validated(DriverMapsQuerySerializer, request.query_params)
        return Response(self.client.driver_route_overview_maps(data['date'].isoformat(), data['session']))

    # Journey endpoints (executives allowed)

    @action(detail=False, methods=['post'], url_path='journey/start')
    def journey_start(self, request):
        data = self._validated(StartJourneySerializer, request.data)
        return Response(self.client.start_journey(data['driver_id'], data.get('route_id') or None))

    @action(detail=False, methods=['post'], url_path='journey/mark-stop')
    def journey_mark_stop(self, request):
        data = self._validated(MarkStopSerializer, request.data)
        current_location = data.pop('current_location', None)
        return Response(self.client.mark_stop(
            current_location=dict(current_location) if current_location else None,
            **data,
        ))

    @action(detail=False, methods=['post'], url_path='journey/end')
    def journey_end(self, request):
        data = self._validated(EndJourneySerializer, request.data)
        return Response(self.client.end_journey(**data))

    @action(detail=False, methods=['get'], url_path=r'journey/status/(?P<route_id>[^/]+)')
    def journey_status(self, request, route_id=None):
        return Response(self.client.journey_status(route_id))

    @action(detail=False, methods=['post'], url_path='journey/check-traffic')
    def journey_check_traffic(self, request):
        data = self._validated(CheckTrafficSerializer, request.data)
        current_location = data.get('current_location')
        return Response(self.client.check_traffic(
            data['route_id'],
            current_location=dict(current_location) if current_location else None,
            check_all_segments=data['check_all_segments'],
        ))

    @action(detail=False, methods=['get'], url_path=r'journey/route-order/(?P<route_id>[^/]+)')
    def journey_route_order(self, request, route_id=None):
        return Response(self.client.route_order(route_id))

    @action(detail=False, methods=['post'], url_path='journey/complete-session')
    def journey_complete_session(self, request):
        route_id = request.data.get('route_id')
        if not route_id:
            raise AppError("route_id is required", status.HTTP_400_BAD_REQUEST)
        return Response(self.client.complete_driver_session(route_id))


# ===========================================
# Route program (program execution)
# ===========================================

class RouteProgramViewSet(TenantScopedMixin, viewsets.ViewSet):
    """Run the external route program and relay its outputs."""

    permission_classes = [IsDeliveryManager]

    @property
    def client(self) -> RouteProgramClient:
        return RouteProgramClient()

    def _executive_count(self, request):
        serializer = ExecutiveCountSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data

    @action(detail=False, methods=['post'], url_path='executive-count')
    def executive_count(self, request):
        data = self._executive_count(request)
        return Response({
            'success': True,
            'data': self.client.send_executive_count(data['executive_count']),
        })

    @action(detail=False, methods=['post'])
    def run(self, request):
        """Send the count, run the script and record a draft route run."""
        data = self._executive_count(request)
        run, response = RouteHistoryService.execute_program(
            self.get_company(),
            request.user,
            data['executive_count'],
            client=self.client,
            delivery_date=data.get('delivery_date'),
            delivery_session=data.get('delivery_session'),
        )
        return Response({
            'success': True,
            'run': RouteRunDetailSerializer(run).data,
            'data': response,
        }, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path='send-routes')
    def send_routes(self, request):
        data = self._executive_count(request)
        company = self.get_company()
        task = dispatch_routes.delay(str(company.pk), data['executive_count'], str(request.user.pk))
        logger.info(f"[ROUTE PROGRAM] Route dispatch queued for {company} (task {task.id})")
        return Response({
            'success': True,
            'message': f"Sending routes to {data['executive_count']} executive(s)",
            'task_id': task.id,
        }, status=status.HTTP_202_ACCEPTED)

    @action(detail=False, methods=['get'], url_path='session-data')
    def session_data(self, request):
        return Response({'success': True, 'data': self.client.session_data()})

    @action(detail=False, methods=['post'], url_path='route-planning')
    def route_planning(self, request):
        return Response({'success': True, 'data': self.client.route_planning()})

    @action(detail=False, methods=['post'], url_path='file-content')
    def file_content(self, request):
        serializer = FileContentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(self.client.fetch_file_content(
            serializer.validated_data['url'],
            serializer.validated_data.get('filename') or None,
        ))


# ===========================================
# Route runs (history)
# ===========================================

class RouteRunViewSet(TenantScopedMixin, viewsets.ReadOnlyModelViewSet):
    """
    Recorded route runs of the company, newest first.

    Discarded runs are hidden from the list unless ?status= is given.
    """

    permission_classes = [IsDeliveryManager]
    filterset_class = RouteRunFilter
    ordering_fields = ['created_at', 'delivery_date']

    def get_queryset(self):
        queryset = RouteRun.objects.filter(company=self.get_company()).select_related('created_by')
        if self.action == 'list' and not self.request.query_params.get('status'):
            queryset = queryset.exclude(status=RouteRunStatus.DISCARDED)
        return queryset

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return RouteRunDetailSerializer
        return RouteRunSerializer

    @action(detail=True, methods=['get'])
    def rows(self, request, pk=None):
        query = RouteRowsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        rows, total = RouteHistoryService.filter_rows(self.get_object(), **query.validated_data)
        return Response({
            'success': True,
            'meal_type': query.validated_data['meal_type'],
            'count': len(rows),
            'total': total,
            'rows': rows,
        })

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        run = RouteHistoryService.approve(self.get_object(), request.user)
        return Response({'success': True, 'data': RouteRunSerializer(run).data})

    @action(detail=True, methods=['post'])
    def discard(self, request, pk=None):
        run = RouteHistoryService.discard(self.get_object())
        return Response({'success': True, 'data': RouteRunSerializer(run).data})

    @action(detail=False, methods=['post'])
    def clear(self, request):
        count = RouteHistoryService.clear_history(self.get_company())
        return Response({'success': True, 'discarded': count})
