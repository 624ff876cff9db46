"""
Django Admin configuration for LOGISTICS app.
"""

from django.contrib import admin
from .models import DeliveryExecutive, ExecutiveStatus, RouteRun


@admin.register(DeliveryExecutive)
class DeliveryExecutiveAdmin(admin.ModelAdmin):
    list_display = ('user', 'company', 'status', 'location_label', 'location_updated_at')
    list_filter = ('status', 'company')
    search_fields = ('user__full_name', 'user__email', 'user__phone_number', 'location_label')
    raw_id_fields = ('user',)
    actions = ['activate', 'deactivate']

    @admin.action(description='Mark selected executives as active')
    def activate(self, request, queryset):
        updated = queryset.update(status=ExecutiveStatus.ACTIVE)
        self.message_user(request, f"{updated} executive(s) activated.")

    @admin.action(description='Mark selected executives as inactive')
    def deactivate(self, request, queryset):
        updated = queryset.update(status=ExecutiveStatus.INACTIVE)
        self.message_user(request, f"{updated} executive(s) deactivated.")


@admin.register(RouteRun)
class RouteRunAdmin(admin.ModelAdmin):
    list_display = (
        'short_id', 'company', 'executive_count', 'delivery_date',
        'delivery_session', 'status', 'created_by', 'created_at',
    )
    list_filter = ('status', 'company', 'delivery_session')
    search_fields = ('id', 'request_id')
    date_hierarchy = 'created_at'
    readonly_fields = (
        'request_id', 'result', 'files', 'export_urls',
        'created_at', 'approved_at', 'approved_by', 'discarded_at',
    )
    raw_id_fields = ('created_by',)

    @admin.display(description='ID')
    def short_id(self, obj):
        return str(obj.id)[:8]
