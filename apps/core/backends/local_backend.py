"""
In-process task backend and the task handler registry.

LocalTaskService runs a handler before send_task returns. The SQS
consumer in lambda_handlers.py dispatches through the same registry,
so a task behaves the same whichever backend queued it.
"""

import uuid
import logging
from typing import Any, Callable, Dict

from apps.core.task_service import TaskServiceInterface

logger = logging.getLogger(__name__)

TASK_HANDLERS: Dict[str, Callable[..., Any]] = {}


class UnknownTask(LookupError):
    pass


def register_handler(task_name: str):
    """Decorator to register a task handler."""
    def decorator(func):
        TASK_HANDLERS[task_name] = func
        return func
    return decorator


def run_handler(task_name: str, payload: Dict[str, Any]) -> Any:
    """Run the registered handler with the payload as keyword arguments."""
    handler = TASK_HANDLERS.get(task_name)
    if handler is None:
        raise UnknownTask(task_name)
    return handler(**payload)


class LocalTaskService(TaskServiceInterface):
    """
    Execute tasks synchronously in the calling process.

    The caller waits for the handler and sees its exceptions, which is
    what tests and local development want. delay_seconds is ignored.
    """

    def send_task(
        self,
        task_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        task_id = str(uuid.uuid4())
        if delay_seconds:
            logger.debug(f"[LOCAL] Ignoring delay of {delay_seconds}s for {task_name}")

        try:
            result = run_handler(task_name, payload)
        except UnknownTask:
            logger.warning(f"[LOCAL] No handler registered for task: {task_name}")
            return task_id
        except Exception as e:
            logger.exception(f"[LOCAL] Task {task_name} (id={task_id}) failed: {e}")
            raise

        logger.info(f"[LOCAL] {task_name} (id={task_id}) -> {result}")
        return task_id


# =============================================================================
# Handlers
# =============================================================================

@register_handler("send_push_notification")
def handle_send_push_notification(subscription_ids: list, notification: dict):
    from apps.notifications import services
    return services.deliver(subscription_ids, notification)


@register_handler("notify_new_order")
def handle_notify_new_order(order_id: str):
    from apps.notifications import services
    return services.notify_new_order(uuid.UUID(order_id))


@register_handler("sync_yalidine_history")
def handle_sync_yalidine_history(max_pages: int = 50):
    from apps.shipping import services
    return services.sync_history(max_pages=max_pages)
