"""
Stripe PaymentIntents client.

Wraps the stripe-python SDK. Its calls are blocking, so they run in a
worker thread like the Cloudinary ones. Every Stripe error is translated
into the shared error taxonomy here, so no SDK exception leaves this
module.
"""
import asyncio
import json

import stripe
import structlog

from shared.config import settings
from shared.errors import InvalidInput, NotFound, Unauthorized, UpstreamFailure

from .schemas import CANCELED, SUCCEEDED, PaymentAuthorization

logger = structlog.get_logger(__name__)

WEBHOOK_TOLERANCE_SECONDS = 300


class StripeGateway:
    def __init__(self, secret_key: str = settings.STRIPE_SECRET_KEY):
        self.secret_key = secret_key

    async def _call(self, operation: str, fn, *args, **kwargs):
        if not self.secret_key:
            raise UpstreamFailure(operation, "not_configured", "STRIPE_SECRET_KEY is not set")
        try:
            return await asyncio.to_thread(fn, *args, api_key=self.secret_key, **kwargs)
        except stripe.InvalidRequestError as e:
            if e.code == "resource_missing" or e.http_status == 404:
                raise NotFound("Payment authorization not found") from e
            raise UpstreamFailure(operation, e.code or type(e).__name__, str(e)) from e
        except stripe.StripeError as e:
            raise UpstreamFailure(operation, e.code or type(e).__name__, str(e)) from e

    async def create_authorization(
        self, amount: int, metadata: dict, currency: str = settings.STRIPE_CURRENCY
    ) -> PaymentAuthorization:
        """Create a PaymentIntent for `amount` in the smallest currency unit."""
        intent = await self._call(
            "create_authorization",
            stripe.PaymentIntent.create,
            amount=amount,
            currency=currency,
            automatic_payment_methods={"enabled": True},
            metadata={key: str(value) for key, value in metadata.items()},
        )
        authorization = PaymentAuthorization.from_stripe(intent)
        logger.info("payment_authorization_created", authorization_id=authorization.id, amount=amount)
        return authorization

    async def retrieve_authorization(self, authorization_id: str) -> PaymentAuthorization:
        intent = await self._call("retrieve_authorization", stripe.PaymentIntent.retrieve, authorization_id)
        return PaymentAuthorization.from_stripe(intent)

    async def cancel_authorization(self, authorization_id: str) -> bool:
        """Best-effort release of an authorization nobody will pay for."""
        try:
            await self._call("cancel_authorization", stripe.PaymentIntent.cancel, authorization_id)
        except (UpstreamFailure, NotFound) as e:
            logger.warning("payment_authorization_cancel_failed", authorization_id=authorization_id, error=str(e))
            return False
        return True


async def retire_authorization(gateway, authorization_id: str) -> None:
    """
    Make sure an earlier authorization can no longer be paid.

    Cancels it; when Stripe refuses, looks at where it ended up. A paid
    authorization raises InvalidInput so the caller confirms it instead,
    and one still in flight raises UpstreamFailure. Unknown and already
    cancelled authorizations are fine.
    """
    if await gateway.cancel_authorization(authorization_id):
        return
    try:
        current = await gateway.retrieve_authorization(authorization_id)
    except NotFound:
        return
    if current.status == SUCCEEDED:
        raise InvalidInput("A previous payment for these orders succeeded; confirm it instead")
    if current.status != CANCELED:
        raise UpstreamFailure(
            "cancel_authorization", current.status, f"Authorization {authorization_id} could not be cancelled"
        )


def parse_webhook_event(payload: bytes, signature_header: str | None, secret: str) -> dict:
    """Verify the Stripe-Signature header and return the event body."""
    if not signature_header or not secret:
        raise Unauthorized("Invalid webhook signature")
    try:
        text = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(text, signature_header, secret, WEBHOOK_TOLERANCE_SECONDS)
    except (UnicodeDecodeError, stripe.SignatureVerificationError) as e:
        raise Unauthorized("Invalid webhook signature") from e

    try:
        event = json.loads(text)
    except ValueError as e:
        raise InvalidInput("Malformed webhook payload") from e
    if not isinstance(event, dict):
        raise InvalidInput("Malformed webhook payload")
    return event


_gateway = StripeGateway()


def get_payment_gateway() -> StripeGateway:
    return _gateway
