from django.contrib import admin
from .models import PushSubscription


@admin.register(PushSubscription)
class PushSubscriptionAdmin(admin.ModelAdmin):
    list_display = ['user_id', 'endpoint', 'updated_at']
    search_fields = ['user_id', 'endpoint']
    readonly_fields = ['created_at', 'updated_at']
