"""
Django Admin configuration for CORE app.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User, Company, Address


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ('name', 'path', 'is_active', 'created_at')
    list_filter = ('is_active',)
    search_fields = ('name',)


class AddressInline(admin.TabularInline):
    model = Address
    extra = 0
    fields = ('street', 'city', 'pincode', 'address_type', 'latitude', 'longitude')


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Custom admin for User model with email-based auth."""

    list_display = (
        'email',
        'full_name',
        'phone_number',
        'roles',
        'company',
        'is_active',
        'date_joined'
    )
    list_filter = ('company', 'is_active', 'is_staff')
    search_fields = ('email', 'phone_number', 'full_name', 'roles')
    ordering = ('-date_joined',)
    inlines = [AddressInline]

    fieldsets = (
        (None, {
            'fields': ('email', 'password')
        }),
        ('Profile', {
            'fields': ('full_name', 'phone_number', 'roles', 'company')
        }),
        ('Permissions', {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
            'classes': ('collapse',)
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'full_name', 'roles', 'company', 'password1', 'password2'),
        }),
    )


@admin.register(Address)
class AddressAdmin(admin.ModelAdmin):
    list_display = ('street', 'city', 'pincode', 'address_type', 'user', 'geo_location')
    list_filter = ('address_type', 'city')
    search_fields = ('street', 'city', 'pincode', 'user__email', 'user__full_name')
    raw_id_fields = ('user',)
