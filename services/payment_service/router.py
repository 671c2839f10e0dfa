"""
Gateway callback: Stripe posts payment_intent.succeeded here so orders get
confirmed even when the shopper closes the tab before the client confirms.

The event body is only used to learn the authorization id. Confirmation
re-fetches the authorization and checks its owner exactly as the
client-driven path does, so a forged event cannot confirm anything.
"""
import structlog
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service.service import OrderService
from shared.config import settings
from shared.config.database import get_db
from shared.errors import NotFound

from .gateway import get_payment_gateway, parse_webhook_event
from .schemas import WebhookAck

logger = structlog.get_logger(__name__)

router = APIRouter()
public_router = APIRouter()  # For any public endpoints (e.g. health check)

HANDLED_EVENTS = {"payment_intent.succeeded"}


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "payment", "status": "running"}


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    gateway=Depends(get_payment_gateway),
):
    event = parse_webhook_event(
        await request.body(), request.headers.get("Stripe-Signature"), settings.STRIPE_WEBHOOK_SECRET
    )

    event_type = event.get("type")
    if not isinstance(event_type, str) or event_type not in HANDLED_EVENTS:
        return WebhookAck()

    data = event.get("data")
    intent = data.get("object") if isinstance(data, dict) else None
    if not isinstance(intent, dict):
        intent = {}
    metadata = intent.get("metadata")
    authorization_id = intent.get("id")
    owner_id = metadata.get("user_id") if isinstance(metadata, dict) else None
    if not authorization_id or not owner_id:
        logger.warning("webhook_missing_fields", event_id=event.get("id"), event_type=event_type)
        return WebhookAck()

    try:
        result = await OrderService.confirm_checkout(db, gateway, owner_id, authorization_id)
    except NotFound:
        # Already confirmed by the client, or the orders were deleted
        logger.info("webhook_nothing_to_confirm", authorization_id=authorization_id)
        return WebhookAck()

    return WebhookAck(updated_count=result.updated_count)
