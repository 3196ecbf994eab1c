from dataclasses import dataclass
from typing import Optional
from ninja import Schema
from pydantic import Field


class SubscriptionKeysIn(Schema):
    p256dh: str = Field(..., min_length=1, max_length=255)
    auth: str = Field(..., min_length=1, max_length=255)


class SubscriptionIn(Schema):
    endpoint: str = Field(..., min_length=1)
    keys: SubscriptionKeysIn


class SubscribeIn(Schema):
    user_id: str = Field(..., alias="userId", min_length=1, max_length=64)
    subscription: SubscriptionIn


class SamplePushIn(Schema):
    user_id: str = Field(..., alias="userId", min_length=1, max_length=64)
    title: str = "Test notification"
    body: str = "Push notifications are working."


class MessageOut(Schema):
    message: str


class SamplePushOut(Schema):
    message: str
    queued: int


class VapidKeyOut(Schema):
    publicKey: Optional[str] = None


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one delivery round."""
    sent: int = 0
    expired: int = 0
    failed: int = 0
    skipped: bool = False
