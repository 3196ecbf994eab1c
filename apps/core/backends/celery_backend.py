"""
Celery Task Backend - Async execution via Celery + Redis.

Tasks are sent by name, so the web process does not need the task
modules imported.

Usage:
    Set TASK_BACKEND=celery in your .env file.
    Requires Redis and a Celery worker running.
"""

import uuid
import logging
from typing import Any, Dict

from celery import current_app

from apps.core.task_service import TaskServiceInterface

logger = logging.getLogger(__name__)


CELERY_TASKS = {
    "send_push_notification": "apps.notifications.tasks.send_push_notification",
    "notify_new_order": "apps.notifications.tasks.notify_new_order",
    "sync_yalidine_history": "apps.shipping.tasks.sync_yalidine_history",
}


class CeleryTaskService(TaskServiceInterface):
    """
    Execute tasks via Celery + Redis.

    The task payload is passed through unchanged as keyword arguments.
    """

    def send_task(
        self,
        task_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """Queue task via Celery."""
        task_path = CELERY_TASKS.get(task_name)
        if not task_path:
            raise ValueError(f"No Celery task mapped for: {task_name}")

        task_id = str(uuid.uuid4())
        logger.info(f"[CELERY] Queueing task {task_name} (id={task_id})")

        options = {"kwargs": payload, "task_id": task_id}
        if delay_seconds > 0:
            options["countdown"] = delay_seconds

        current_app.send_task(task_path, **options)
        return task_id
