"""
ASGI config for the storefront backend.

Served by Uvicorn/Daphne in containers, or by AWS Lambda through Mangum
(see lambda_handlers.api_handler).
"""
import os

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

# Initialize Django at import time so Lambda pays the cost at container start.
from django.core.asgi import get_asgi_application

application = get_asgi_application()
