"""Inbound trigger webhook routes."""
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from flowrunner.observability import get_logger
from flowrunner.service import get_service

logger = get_logger(__name__)
router = APIRouter()


@router.post("/api/webhooks/{adapter}/{workflow_id}", response_class=PlainTextResponse)
async def receive_webhook(adapter: str, workflow_id: str, request: Request) -> str:
    """
    Hand an inbound event to its workflow.

    Always answers 200 "OK" so the sender does not retry; the run itself
    happens in the background.
    """
    raw = await request.body()
    body: Any
    try:
        body = await request.json()
    except ValueError:
        body = raw.decode("utf-8", errors="replace")

    ack = get_service().handle_event(adapter, workflow_id, body)
    logger.info(
        "Webhook received",
        extra={"workflow_id": workflow_id, "adapter": adapter, "accepted": ack["accepted"]},
    )
    return "OK"
