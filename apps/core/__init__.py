"""
Core app - Shared abstractions and utilities.

Provides the platform-agnostic TaskService so background work (push
delivery, carrier history sync) can run:
- Inline (local development, tests)
- On AWS Lambda via SQS (production)
- On Celery + Redis (fallback)

Also hosts data-maintenance management commands.
"""
