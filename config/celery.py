"""
Celery configuration for the storefront backend.
"""
import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('config')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

app.conf.beat_schedule = {
    'sync-yalidine-history': {
        'task': 'apps.shipping.tasks.sync_yalidine_history',
        'schedule': crontab(hour='3', minute='0'),
    },
}
