"""
CORE App - Tenants, Users & Addresses for MealRoute

Handles: Companies (tenants), multi-role Users, delivery Addresses
"""

import uuid
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.core.exceptions import ValidationError
from django.core.validators import RegexValidator
from django.db import models
from django.utils import timezone


class Company(models.Model):
    """
    A tenant sharing the application and database.

    The tenant's URL path segment is its lower-cased name
    (e.g. "JKHM" is served under /jkhm).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100, unique=True, verbose_name="Company name")
    is_active = models.BooleanField(default=True, verbose_name="Active")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Company"
        verbose_name_plural = "Companies"
        ordering = ['name']

    def __str__(self):
        return self.name

    @property
    def path(self) -> str:
        return self.name.lower()


class UserRole(models.TextChoices):
    """User role enumeration. A user may hold several roles."""
    ADMIN = 'ADMIN', 'Administrator'
    CUSTOMER = 'CUSTOMER', 'Customer'
    DELIVERY_MANAGER = 'DELIVERY_MANAGER', 'Delivery Manager'
    DELIVERY_EXECUTIVE = 'DELIVERY_EXECUTIVE', 'Delivery Executive'
    SELLER = 'SELLER', 'Seller'


def parse_roles(value) -> list:
    """Normalize a comma-separated string or iterable of roles to upper-case names."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(',')
    roles = []
    for role in value:
        role = str(role).strip().upper()
        if role and role not in roles:
            roles.append(role)
    return roles


class UserManager(BaseUserManager):
    """Custom user manager for email-based authentication."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email is required')

        roles = extra_fields.pop('roles', UserRole.CUSTOMER)
        extra_fields['roles'] = ','.join(parse_roles(roles))

        user = self.model(email=self.normalize_email(email), **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('roles', UserRole.ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as login identifier.

    Roles are stored comma-separated (e.g. "CUSTOMER,SELLER") and
    compared case-insensitively.
    """

    # Indian mobile number, optional +91 prefix
    phone_regex = RegexValidator(
        regex=r'^(\+91)?[6-9][0-9]{9}$',
        message="Format: 10-digit mobile number, optionally prefixed with +91"
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True, verbose_name="Email")
    phone_number = models.CharField(
        max_length=13,
        unique=True,
        null=True,
        blank=True,
        validators=[phone_regex],
        verbose_name="Phone number"
    )
    full_name = models.CharField(max_length=150, blank=True, verbose_name="Full name")
    roles = models.CharField(
        max_length=120,
        default=UserRole.CUSTOMER,
        blank=True,
        verbose_name="Roles",
        help_text="Comma-separated, e.g. CUSTOMER,SELLER"
    )
    company = models.ForeignKey(
        Company,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='users',
        verbose_name="Company"
    )

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    date_joined = models.DateTimeField(default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        ordering = ['-date_joined']

    def __str__(self):
        return self.full_name or self.email

    def clean(self):
        super().clean()
        unknown = [r for r in self.role_list if r not in UserRole.values]
        if unknown:
            raise ValidationError({'roles': f"Unknown role(s): {', '.join(unknown)}"})

    def save(self, *args, **kwargs):
        self.roles = ','.join(parse_roles(self.roles))
        super().save(*args, **kwargs)

    @property
    def role_list(self) -> list:
        return parse_roles(self.roles)

    @property
    def primary_role(self):
        roles = self.role_list
        return roles[0] if roles else None

    def has_role(self, role) -> bool:
        return str(role).strip().upper() in self.role_list

    def has_any_role(self, roles) -> bool:
        held = self.role_list
        return any(r in held for r in parse_roles(roles))

    @property
    def is_admin(self) -> bool:
        return self.is_superuser or self.has_role(UserRole.ADMIN)

    @property
    def is_delivery_staff(self) -> bool:
        return self.is_admin or self.has_any_role(
            [UserRole.DELIVERY_MANAGER, UserRole.SELLER]
        )


class AddressType(models.TextChoices):
    HOME = 'Home', 'Home'
    BILLING = 'Billing', 'Billing'
    SHIPPING = 'Shipping', 'Shipping'
    OTHER = 'Other', 'Other'


class Address(models.Model):
    """
    Customer delivery address.

    Coordinates are optional; delivery managers fill them in from the
    dashboard so the route planner can geocode the stop.
    """

    pincode_regex = RegexValidator(
        regex=r'^[1-9][0-9]{5}$',
        message="Pincode must be 6 digits and cannot start with 0"
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='addresses',
        verbose_name="User"
    )
    street = models.CharField(max_length=255, verbose_name="Street")
    city = models.CharField(max_length=100, verbose_name="City")
    pincode = models.CharField(max_length=6, validators=[pincode_regex], verbose_name="Pincode")
    address_type = models.CharField(
        max_length=10,
        choices=AddressType.choices,
        default=AddressType.HOME,
        verbose_name="Type"
    )
    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Address"
        verbose_name_plural = "Addresses"
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.street}, {self.city} - {self.pincode}"

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def geo_location(self) -> str:
        if not self.has_coordinates:
            return ''
        return f"{self.latitude},{self.longitude}"

    @property
    def google_maps_url(self) -> str:
        if not self.has_coordinates:
            return ''
        return f"https://maps.google.com/?q={self.latitude},{self.longitude}"

    def set_coordinates(self, latitude, longitude):
        """Validate and persist a coordinate pair."""
        latitude, longitude = float(latitude), float(longitude)
        if not -90 <= latitude <= 90:
            raise ValueError("Latitude must be between -90 and 90")
        if not -180 <= longitude <= 180:
            raise ValueError("Longitude must be between -180 and 180")

        self.latitude = latitude
        self.longitude = longitude
        self.save(update_fields=['latitude', 'longitude', 'updated_at'])
