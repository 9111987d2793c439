from django.contrib import admin

from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    raw_id_fields = ['product']


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['short_id', 'email', 'status', 'total', 'promo_name', 'created_at']
    list_filter = ['status', 'promo_name']
    search_fields = ['id', 'email', 'full_name', 'user__username', 'tracking_code']
    readonly_fields = ['id', 'session_id', 'subtotal', 'discount', 'shipping', 'total', 'created_at', 'updated_at']
    raw_id_fields = ['user']
    inlines = [OrderItemInline]
