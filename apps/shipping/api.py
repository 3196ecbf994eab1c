"""
Yalidine webhook endpoint.

GET  performs the subscription handshake (echo crc_token).
POST delivers a batch of parcel events.

Deliveries are acknowledged with 200 once the envelope parses, whatever
happened to individual events, so Yalidine does not retry a batch that
partially failed. Only envelope-level failures answer 500.
"""
import json
import logging

from django.conf import settings
from django.http import HttpRequest, HttpResponse
from ninja import Router
from pydantic import ValidationError

from .dtos import WebhookBatchIn
from .services import process_webhook_batch
from .signatures import SIGNATURE_HEADER, is_valid_signature

logger = logging.getLogger(__name__)

router = Router(tags=["Webhooks"])


def _text(body: str, status: int = 200) -> HttpResponse:
    return HttpResponse(body, status=status, content_type="text/plain")


def _handle_handshake(request: HttpRequest) -> HttpResponse:
    subscribe = request.GET.get("subscribe")
    crc_token = request.GET.get("crc_token")
    if subscribe and crc_token:
        logger.info("Yalidine webhook CRC validation successful")
        return _text(crc_token)
    return _text("Missing crc_token or subscribe parameter", status=400)


def _handle_delivery(request: HttpRequest) -> HttpResponse:
    body = request.body
    secret = settings.YALIDINE_WEBHOOK_SECRET

    if not secret:
        logger.debug("YALIDINE_WEBHOOK_SECRET not set, skipping signature check")
    elif not is_valid_signature(body, request.headers.get(SIGNATURE_HEADER), secret):
        if settings.YALIDINE_WEBHOOK_ENFORCE_SIGNATURE:
            logger.warning("Rejecting Yalidine webhook with invalid signature")
            return _text("Invalid Signature", status=401)
        # Accepted anyway unless enforcement is switched on
        logger.warning("Invalid Yalidine webhook signature")

    try:
        batch = WebhookBatchIn.model_validate(json.loads(body))
        result = process_webhook_batch(batch)
    except (ValueError, ValidationError) as e:
        logger.error(f"Unreadable Yalidine webhook payload: {e}")
        return _text("Internal Server Error", status=500)
    except Exception as e:
        logger.exception(f"Error processing Yalidine webhook: {e}")
        return _text("Internal Server Error", status=500)

    logger.info(f"Yalidine webhook processed: {result}")
    return _text("OK")


@router.api_operation(["GET", "POST"], "/yalidine", auth=None)
def yalidine_webhook(request: HttpRequest):
    """Yalidine webhook (handshake and event delivery). Other methods get 405."""
    if request.method == "GET":
        return _handle_handshake(request)
    return _handle_delivery(request)
