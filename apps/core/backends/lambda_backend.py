"""
SQS task backend, consumed by lambda_handlers.sqs_task_handler.

Settings:
    TASK_QUEUE_URL  queue to publish to; a URL ending in .fifo is
                    treated as a FIFO queue
    AWS_REGION      region for the boto3 client
"""

import json
import uuid
import logging
from typing import Any, Dict

from django.conf import settings

from apps.core.task_service import TaskServiceInterface

logger = logging.getLogger(__name__)

SQS_MAX_DELAY_SECONDS = 900


def _string_attribute(value: str) -> dict:
    return {'DataType': 'String', 'StringValue': value}


class LambdaTaskService(TaskServiceInterface):

    def __init__(self, queue_url: str = None, client=None):
        self.queue_url = queue_url or getattr(settings, 'TASK_QUEUE_URL', None)
        self._client = client

    @property
    def is_fifo(self) -> bool:
        return bool(self.queue_url) and self.queue_url.endswith('.fifo')

    @property
    def client(self):
        if self._client is None:
            import boto3
            self._client = boto3.client('sqs', region_name=settings.AWS_REGION)
        return self._client

    def build_message(self, task_id: str, task_name: str, payload: Dict[str, Any], delay_seconds: int) -> dict:
        message = {
            'QueueUrl': self.queue_url,
            'MessageBody': json.dumps({
                'task_id': task_id,
                'task_name': task_name,
                'payload': payload,
            }),
            'MessageAttributes': {
                'TaskName': _string_attribute(task_name),
                'TaskId': _string_attribute(task_id),
            },
        }
        if self.is_fifo:
            # FIFO queues reject per-message delays
            message['MessageGroupId'] = task_name
            message['MessageDeduplicationId'] = task_id
        elif delay_seconds > 0:
            message['DelaySeconds'] = min(delay_seconds, SQS_MAX_DELAY_SECONDS)
        return message

    def send_task(
        self,
        task_name: str,
        payload: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        if not self.queue_url:
            raise RuntimeError("TASK_QUEUE_URL is not set; cannot queue tasks on SQS.")

        task_id = str(uuid.uuid4())
        message = self.build_message(task_id, task_name, payload, delay_seconds)

        try:
            response = self.client.send_message(**message)
        except Exception as e:
            logger.exception(f"[SQS] Could not queue {task_name} (id={task_id}): {e}")
            raise

        logger.info(f"[SQS] Queued {task_name} (id={task_id}, message={response['MessageId']})")
        return task_id
