"""
URL configuration for the storefront backend.
"""
from django.contrib import admin
from django.urls import path
from ninja import NinjaAPI
from ninja.errors import ValidationError

api = NinjaAPI(
    title="Storefront API",
    version="1.0.0",
    description="Carrier webhooks, order tracking and push notifications",
    docs_url="/docs",
)


@api.exception_handler(ValidationError)
def validation_error(request, exc):
    return api.create_response(
        request,
        {"error": "Invalid request data", "detail": exc.errors},
        status=400,
    )


from apps.shipping.api import router as webhooks_router
from apps.notifications.api import router as notifications_router

api.add_router("/webhooks/", webhooks_router)
api.add_router("/notifications/", notifications_router)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', api.urls),
]
