"""
Core App Serializers - Users, Companies & Addresses
"""

from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer
from django.contrib.auth import get_user_model

from .models import Address, Company

User = get_user_model()


class RoleTokenObtainPairSerializer(TokenObtainPairSerializer):
    """JWT pair whose access token carries the user's roles and company."""

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['roles'] = user.role_list
        token['company_id'] = str(user.company_id) if user.company_id else None
        return token


class CompanySerializer(serializers.ModelSerializer):
    """Public tenant descriptor."""

    path = serializers.ReadOnlyField()

    class Meta:
        model = Company
        fields = ['id', 'name', 'path']


class UserSerializer(serializers.ModelSerializer):
    """Serializer for User model (read operations)."""

    roles = serializers.ReadOnlyField(source='role_list')
    primary_role = serializers.ReadOnlyField()
    company = CompanySerializer(read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'email', 'phone_number', 'full_name',
            'roles', 'primary_role', 'company', 'is_active', 'date_joined'
        ]
        read_only_fields = fields


class AddressSerializer(serializers.ModelSerializer):
    """Serializer for Address model with derived map fields."""

    geo_location = serializers.ReadOnlyField()
    google_maps_url = serializers.ReadOnlyField()

    class Meta:
        model = Address
        fields = [
            'id', 'street', 'city', 'pincode', 'address_type',
            'latitude', 'longitude', 'geo_location', 'google_maps_url',
        ]
        read_only_fields = ['id', 'latitude', 'longitude']


class CoordinatesSerializer(serializers.Serializer):
    """Serializer for a latitude/longitude pair."""

    latitude = serializers.FloatField(min_value=-90, max_value=90)
    longitude = serializers.FloatField(min_value=-180, max_value=180)
