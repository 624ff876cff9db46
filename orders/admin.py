"""
Django Admin configuration for ORDERS app.
"""

from django.contrib import admin
from .models import MenuItem, Order, DeliveryItem


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):
    list_display = ('name', 'company', 'price', 'is_active')
    list_filter = ('company', 'is_active')
    search_fields = ('name',)
    list_editable = ('price', 'is_active')


class DeliveryItemInline(admin.TabularInline):
    model = DeliveryItem
    extra = 0
    fields = ('delivery_date', 'delivery_time_slot', 'menu_item', 'quantity', 'address', 'status')
    raw_id_fields = ('address',)


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('short_id', 'user', 'company', 'order_date', 'total_price', 'status', 'created_at')
    list_filter = ('status', 'company', 'order_date')
    search_fields = ('id', 'user__email', 'user__full_name')
    date_hierarchy = 'order_date'
    raw_id_fields = ('user', 'delivery_address')
    inlines = [DeliveryItemInline]

    @admin.display(description='ID')
    def short_id(self, obj):
        return str(obj.id)[:8]


@admin.register(DeliveryItem)
class DeliveryItemAdmin(admin.ModelAdmin):
    list_display = ('menu_item', 'user', 'delivery_date', 'delivery_time_slot', 'quantity', 'status')
    list_filter = ('status', 'delivery_time_slot', 'delivery_date')
    search_fields = ('user__email', 'user__full_name', 'address__city')
    raw_id_fields = ('order', 'user', 'address')
    actions = ['mark_delivered', 'mark_cancelled']

    @admin.action(description='Mark selected items as delivered')
    def mark_delivered(self, request, queryset):
        updated = queryset.update(status='DELIVERED')
        self.message_user(request, f"{updated} item(s) marked as delivered.")

    @admin.action(description='Cancel selected items')
    def mark_cancelled(self, request, queryset):
        updated = queryset.exclude(status='DELIVERED').update(status='CANCELLED')
        self.message_user(request, f"{updated} item(s) cancelled.")
