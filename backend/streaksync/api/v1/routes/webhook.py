"""
Strava webhook routes.

Mounted at the application root (`/webhook`), the callback URL
registered with the Strava push subscription.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Query, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from streaksync.api.deps import get_webhook_processor
from streaksync.features.strava.schemas import WebhookEvent
from streaksync.features.strava.webhook import WebhookEventProcessor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/webhook")
async def verify_webhook(
    mode: Optional[str] = Query(default=None, alias="hub.mode"),
    verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
    processor: WebhookEventProcessor = Depends(get_webhook_processor),
):
    """Subscription handshake: echo the challenge if the token matches."""
    accepted = processor.verify_subscription(mode, verify_token, challenge)
    if accepted is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return {"hub.challenge": accepted}


@router.post("/webhook", response_class=PlainTextResponse)
async def receive_webhook(
    background_tasks: BackgroundTasks,
    payload: dict[str, Any] = Body(...),
    processor: WebhookEventProcessor = Depends(get_webhook_processor),
):
    """
    Acknowledge an event immediately and process it afterwards.

    Malformed events are acknowledged too, so Strava does not retry them.
    """
    try:
        event = WebhookEvent.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Ignoring malformed webhook payload: {e}")
        return "EVENT_RECEIVED"

    background_tasks.add_task(processor.process_event, event)
    return "EVENT_RECEIVED"
