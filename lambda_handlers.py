"""
AWS Lambda entry points.

    sqs_task_handler         consumes messages queued by LambdaTaskService
    scheduled_yalidine_sync  EventBridge rule for the nightly carrier sync
    api_handler              HTTP through API Gateway, via Mangum
"""

import os
import sys
import json
import logging

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

import django
django.setup()

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def sqs_task_handler(event, context):
    """
    Run every task in an SQS batch.

    Failed messages are returned as batchItemFailures (the function's
    event source mapping must enable ReportBatchItemFailures) so SQS
    retries only those, then dead-letters them. Messages naming an
    unknown task are dropped.
    """
    from apps.core.backends.local_backend import UnknownTask, run_handler

    failures = []
    processed = skipped = 0

    for record in event.get('Records', []):
        message_id = record.get('messageId')
        try:
            message = json.loads(record['body'])
        except (KeyError, ValueError) as e:
            logger.error(f"Dropping malformed task message {message_id}: {e}")
            skipped += 1
            continue

        task_name = message.get('task_name') if isinstance(message, dict) else None
        if not isinstance(task_name, str):
            logger.error(f"Dropping task message {message_id} without a task_name")
            skipped += 1
            continue

        task_id = message.get('task_id', 'unknown')
        try:
            result = run_handler(task_name, message.get('payload') or {})
        except UnknownTask:
            logger.error(f"No handler for task: {task_name}")
            skipped += 1
            continue
        except Exception as e:
            logger.exception(f"Task {task_name} (id={task_id}) failed: {e}")
            failures.append({'itemIdentifier': message_id})
            continue

        logger.info(f"Task {task_name} (id={task_id}) done: {result}")
        processed += 1

    logger.info(f"SQS batch: {processed} processed, {skipped} skipped, {len(failures)} failed")
    return {'batchItemFailures': failures}


def scheduled_yalidine_sync(event, context):
    """Queue the nightly history sync so it runs under the SQS consumer's timeout."""
    from apps.core.task_service import TaskService

    max_pages = 50
    if isinstance(event, dict) and event.get('max_pages'):
        max_pages = int(event['max_pages'])

    task_id = TaskService.sync_yalidine_history(max_pages=max_pages)
    return {'statusCode': 200, 'body': json.dumps({'task_id': task_id})}


_asgi_handler = None


def api_handler(event, context):
    global _asgi_handler

    if _asgi_handler is None:
        from mangum import Mangum
        from config.asgi import application
        _asgi_handler = Mangum(application, lifespan="off")

    return _asgi_handler(event, context)
