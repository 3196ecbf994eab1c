"""
Django settings for the storefront backend.

Every deployment-specific value comes from the environment (optionally
loaded from a .env file next to manage.py).
"""
import os
from pathlib import Path

from dotenv import load_dotenv

from .database import get_database_config

BASE_DIR = Path(__file__).resolve().parent.parent

load_dotenv(BASE_DIR / '.env')


def _env_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).lower() in ('1', 'true', 'yes')


SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'dev-insecure-secret-key-change-me')
DEBUG = _env_bool('DJANGO_DEBUG', True)
ALLOWED_HOSTS = [h for h in os.getenv('DJANGO_ALLOWED_HOSTS', '*').split(',') if h]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'ninja',
    'apps.core',
    'apps.orders.apps.OrdersConfig',
    'apps.notifications',
    'apps.shipping',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

ASGI_APPLICATION = 'config.asgi.application'

DATABASES = {
    'default': get_database_config(BASE_DIR),
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('DJANGO_TIME_ZONE', 'Africa/Algiers')
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# =============================================================================
# Logging
# =============================================================================

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'standard': {
            'format': '%(asctime)s %(levelname)s [%(name)s] %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'standard',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.getenv('DJANGO_LOG_LEVEL', 'WARNING').upper(),
            'propagate': False,
        },
    },
}

# =============================================================================
# Background tasks
# =============================================================================

TASK_BACKEND = os.getenv('TASK_BACKEND', 'local')
TASK_QUEUE_URL = os.getenv('TASK_QUEUE_URL')
AWS_REGION = os.getenv('AWS_REGION', 'eu-west-3')

CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', CELERY_BROKER_URL)
CELERY_TASK_SERIALIZER = 'json'
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TIMEZONE = TIME_ZONE

# =============================================================================
# Yalidine (shipping carrier)
# =============================================================================

YALIDINE_API_URL = os.getenv('YALIDINE_API_URL', 'https://api.yalidine.app/v1')
YALIDINE_API_ID = os.getenv('YALIDINE_API_ID')
YALIDINE_API_TOKEN = os.getenv('YALIDINE_API_TOKEN')
YALIDINE_WEBHOOK_SECRET = os.getenv('YALIDINE_WEBHOOK_SECRET')
# Off by default: invalid signatures are logged, not rejected.
YALIDINE_WEBHOOK_ENFORCE_SIGNATURE = _env_bool('YALIDINE_WEBHOOK_ENFORCE_SIGNATURE', False)

# =============================================================================
# Web push
# =============================================================================

VAPID_PUBLIC_KEY = os.getenv('VAPID_PUBLIC_KEY')
VAPID_PRIVATE_KEY = os.getenv('VAPID_PRIVATE_KEY')
VAPID_CLAIMS_EMAIL = os.getenv('VAPID_CLAIMS_EMAIL', 'admin@loudbrands.com')
