"""
Logistics App Serializers - Executives, Route Planner & Route Runs
"""

from rest_framework import serializers

from orders.models import MealType
from .models import DeliveryExecutive, ExecutiveStatus, RouteRun


# ===========================================
# Delivery executives
# ===========================================

class DeliveryExecutiveSerializer(serializers.ModelSerializer):
    """Serializer for DeliveryExecutive with its user's contact details."""

    full_name = serializers.CharField(source='user.full_name', read_only=True)
    email = serializers.CharField(source='user.email', read_only=True)
    phone_number = serializers.CharField(source='user.phone_number', read_only=True)

    class Meta:
        model = DeliveryExecutive
        fields = [
            'id', 'user', 'full_name', 'email', 'phone_number',
            'status', 'image', 'location_label', 'latitude', 'longitude',
            'location_updated_at', 'updated_at',
        ]
        read_only_fields = ['id', 'user', 'location_updated_at', 'updated_at']


class ExecutiveProfileSerializer(serializers.Serializer):
    image = serializers.ImageField(required=False, allow_null=True)
    location_label = serializers.CharField(required=False, allow_blank=True, max_length=255)
    latitude = serializers.FloatField(required=False, min_value=-90, max_value=90)
    longitude = serializers.FloatField(required=False, min_value=-180, max_value=180)
    status = serializers.ChoiceField(choices=ExecutiveStatus.choices, required=False)


class ExecutiveLocationSerializer(serializers.Serializer):
    """Executive position, or the position of an address with address_id."""

    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
    location = serializers.CharField(required=False, allow_blank=True, max_length=255)
    address_id = serializers.UUIDField(required=False, allow_null=True)


class ExecutiveStatusEntrySerializer(serializers.Serializer):
    executive_id = serializers.CharField()
    status = serializers.CharField()


class ExecutiveStatusBulkSerializer(serializers.Serializer):
    updates = ExecutiveStatusEntrySerializer(many=True)


class DeliveryPhotoSerializer(serializers.Serializer):
    image = serializers.ImageField()
    session = serializers.ChoiceField(choices=MealType.choices)
    date = serializers.DateField()


# ===========================================
# Route planner requests
# ===========================================

class LatLngSerializer(serializers.Serializer):
    lat = serializers.FloatField(min_value=-90, max_value=90)
    lng = serializers.FloatField(min_value=-180, max_value=180)


class PlanRouteSerializer(serializers.Serializer):
    delivery_date = serializers.DateField()
    delivery_session = serializers.ChoiceField(choices=MealType.choices)
    num_drivers = serializers.IntegerField(min_value=1)
    depot_location = LatLngSerializer()


class PredictStartTimeSerializer(serializers.Serializer):
    route_id = serializers.CharField(required=False, allow_blank=True)
    delivery_date = serializers.DateField(required=False)
    delivery_session = serializers.ChoiceField(choices=MealType.choices, required=False)
    depot_location = LatLngSerializer(required=False)

    def validate(self, attrs):
        if not attrs.get('route_id') and not (
            attrs.get('delivery_date') and attrs.get('delivery_session') and attrs.get('depot_location')
        ):
            raise serializers.ValidationError(
                "Provide route_id, or delivery_date with delivery_session and depot_location"
            )
        return attrs


class StartJourneySerializer(serializers.Serializer):
    driver_id = serializers.CharField()
    route_id = serializers.CharField(required=False, allow_blank=True)


class MarkStopSerializer(serializers.Serializer):
    route_id = serializers.CharField()
    delivery_id = serializers.CharField()
    planned_stop_id = serializers.CharField(required=False, allow_blank=True)
    stop_order = serializers.IntegerField(required=False, min_value=0)
    driver_id = serializers.CharField(required=False, allow_blank=True)
    user_id = serializers.CharField(required=False, allow_blank=True)
    completed_at = serializers.CharField(required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=['Delivered', 'CUSTOMER_UNAVAILABLE'], required=False)
    current_location = LatLngSerializer(required=False)
    latitude = serializers.FloatField(required=False, min_value=-90, max_value=90)
    longitude = serializers.FloatField(required=False, min_value=-180, max_value=180)


class EndJourneySerializer(serializers.Serializer):
    user_id = serializers.CharField()
    route_id = serializers.CharField()
    latitude = serializers.FloatField(required=False, min_value=-90, max_value=90)
    longitude = serializers.FloatField(required=False, min_value=-180, max_value=180)


class CheckTrafficSerializer(serializers.Serializer):
    route_id = serializers.CharField()
    current_location = LatLngSerializer(required=False)
    check_all_segments = serializers.BooleanField(required=False, default=True)


class DriverMapsQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    session = serializers.ChoiceField(choices=MealType.choices)


# ===========================================
# Route program & route runs
# ===========================================

class ExecutiveCountSerializer(serializers.Serializer):
    executive_count = serializers.IntegerField(min_value=1)
    delivery_date = serializers.DateField(required=False)
    delivery_session = serializers.ChoiceField(choices=MealType.choices, required=False)


class FileContentSerializer(serializers.Serializer):
    url = serializers.URLField()
    filename = serializers.CharField(required=False, allow_blank=True)


class RouteRunSerializer(serializers.ModelSerializer):
    """Route run summary (stops omitted)."""

    created_by_name = serializers.CharField(source='created_by.full_name', read_only=True, default=None)
    meal_counts = serializers.SerializerMethodField()

    class Meta:
        model = RouteRun
        fields = [
            'id', 'executive_count', 'delivery_date', 'delivery_session',
            'request_id', 'status', 'files', 'export_urls', 'meal_counts',
            'created_by_name', 'created_at', 'approved_at', 'discarded_at',
        ]
        read_only_fields = fields

    def get_meal_counts(self, obj):
        return obj.meal_counts()


class RouteRunDetailSerializer(RouteRunSerializer):
    class Meta(RouteRunSerializer.Meta):
        fields = RouteRunSerializer.Meta.fields + ['result']
        read_only_fields = fields


class RouteRowsQuerySerializer(serializers.Serializer):
    meal_type = serializers.ChoiceField(
        choices=[*MealType.values, 'all'], required=False, default=MealType.BREAKFAST
    )
    delivery_name = serializers.CharField(required=False, allow_blank=True, default='')
    executive = serializers.CharField(required=False, allow_blank=True, default='')
    location = serializers.CharField(required=False, allow_blank=True, default='')
