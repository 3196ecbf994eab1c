"""
Background task dispatch.

Callers go through the TaskService facade; the TASK_BACKEND setting picks
where the work actually runs:

    local   inline, in the calling process (development, tests)
    lambda  SQS message consumed by lambda_handlers.sqs_task_handler
    celery  Celery worker fed from Redis

Every task is addressed by name with a JSON-serializable payload of
keyword arguments, so the same handler signature serves all three.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List
from uuid import UUID

from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

TASK_BACKENDS = {
    'local': 'apps.core.backends.local_backend.LocalTaskService',
    'lambda': 'apps.core.backends.lambda_backend.LambdaTaskService',
    'celery': 'apps.core.backends.celery_backend.CeleryTaskService',
}


class TaskServiceInterface(ABC):

    @abstractmethod
    def send_task(
        self,
        task_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """Queue `task_name` with `payload` as its kwargs and return a task id."""


def _get_backend() -> TaskServiceInterface:
    name = getattr(settings, 'TASK_BACKEND', 'local')
    try:
        path = TASK_BACKENDS[name]
    except KeyError:
        raise ValueError(f"Unknown TASK_BACKEND: {name}")
    return import_string(path)()


class TaskService:
    """
    Facade for sending async tasks, one static method per task type.
    """

    @staticmethod
    def send_push_notification(subscription_ids: List[UUID], notification: Dict[str, Any]) -> str:
        """
        Queue delivery of one notification to a set of push subscriptions.

        Used by: Notifications app (test pushes, targeted alerts).
        """
        logger.info(f"Queueing send_push_notification for {len(subscription_ids)} subscription(s)")
        return _get_backend().send_task(
            task_name="send_push_notification",
            payload={
                "subscription_ids": [str(sid) for sid in subscription_ids],
                "notification": notification,
            }
        )

    @staticmethod
    def notify_new_order(order_id: UUID) -> str:
        """
        Queue the "New Order Received" alert to staff subscriptions.

        Used by: Orders app post_save signal.
        """
        logger.info(f"Queueing notify_new_order for order {order_id}")
        return _get_backend().send_task(
            task_name="notify_new_order",
            payload={"order_id": str(order_id)}
        )

    @staticmethod
    def sync_yalidine_history(max_pages: int = 50) -> str:
        """
        Queue a full delivery-status sync against the Yalidine parcel list.

        Used by: Nightly schedule (Celery beat / EventBridge).
        """
        logger.info(f"Queueing sync_yalidine_history (max_pages={max_pages})")
        return _get_backend().send_task(
            task_name="sync_yalidine_history",
            payload={"max_pages": max_pages}
        )
