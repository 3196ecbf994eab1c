from dataclasses import dataclass
from typing import List, Optional
from ninja import Schema
from pydantic import Field, field_validator


class ParcelStatusData(Schema):
    tracking: Optional[str] = None
    status: Optional[str] = None
    reason: Optional[str] = None

    @field_validator("tracking", "status", "reason", mode="before")
    @classmethod
    def numbers_as_text(cls, value):
        # Tracking numbers sometimes arrive as JSON numbers
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class WebhookEventIn(Schema):
    data: ParcelStatusData = Field(default_factory=ParcelStatusData)


class WebhookBatchIn(Schema):
    type: Optional[str] = None
    events: Optional[List[WebhookEventIn]] = None


@dataclass
class BatchResult:
    """Per-batch counters, logged once the batch is processed."""
    received: int = 0
    updated: int = 0
    not_found: int = 0
    skipped: int = 0
    failed: int = 0


@dataclass
class HistorySyncReport:
    fetched: int = 0
    updated: int = 0
    unchanged: int = 0
    not_found: int = 0
    errors: int = 0
