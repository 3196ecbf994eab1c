from django.contrib import admin
from .models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_number', 'customer_name', 'tracking_number', 'delivery_status', 'call_center_status', 'updated_at']
    list_filter = ['call_center_status', 'delivery_status']
    search_fields = ['order_number', 'customer_name', 'customer_phone', 'tracking_number']
    readonly_fields = ['order_number', 'created_at', 'updated_at']
