"""
Order lifecycle coordinator.

Ties the Order Store to the payment gateway and the asset store. Orders
leave draft only after the gateway itself reports the authorization as
succeeded and owned by the caller; a client's word that "payment
succeeded" is never enough.
"""
from decimal import Decimal
from typing import List, Optional, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.payment_service.gateway import retire_authorization
from shared.errors import Forbidden, InvalidInput, NotFound, UpstreamFailure
from shared.observability import (
    stickers_asset_delete_failures_total,
    stickers_checkout_confirmed_total,
    stickers_checkout_initiated_total,
    stickers_status_transitions_total,
)
from shared.security import Principal

from .catalog import get_size, line_total, to_minor_units
from .models import Order, OrderStatus
from .repository import OrderRepository, persistence_guard
from .schemas import (
    CheckoutConfirmResponse,
    CheckoutResponse,
    OrderCreate,
    OrderDeleteResponse,
    OrderUpdate,
)

logger = structlog.get_logger(__name__)

# Status a verified checkout moves its orders to
CONFIRMED_STATUS = OrderStatus.PROCESSING

ORDER_NOT_FOUND = "Order not found"


class NothingToConfirm(NotFound):
    """The authorization checked out, but no draft orders were left to move."""

    def __init__(self):
        super().__init__("No draft orders found for this payment")
        self.updated_count = 0

    @property
    def extra(self) -> dict:
        return {"updated_count": self.updated_count}


def _validate_image_url(image_url: Optional[str]) -> str:
    if not image_url or not image_url.startswith(("https://", "http://")):
        raise InvalidInput("A valid image URL is required")
    return image_url


def _price_line(size_id: Optional[int], quantity: Optional[int]) -> dict:
    """Resolve the catalogue size and recompute the line total server-side."""
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise InvalidInput("Quantity must be at least 1")
    size = get_size(size_id)
    if size is None:
        raise InvalidInput(f"Unknown size: {size_id}")
    return {
        "size_id": size.id,
        "size_label": size.label,
        "unit_price": size.unit_price,
        "quantity": quantity,
        "total": line_total(size.unit_price, quantity),
    }


class OrderService:

    @staticmethod
    async def create_draft(db: AsyncSession, owner_id: str, data: OrderCreate) -> Order:
        order = Order(
            user_id=owner_id,
            image_url=_validate_image_url(data.image_url),
            status=OrderStatus.DRAFT.value,
            payment_confirmed=False,
            **_price_line(data.size_id, data.quantity),
        )
        async with persistence_guard(db, "create_draft"):
            order = await OrderRepository.create_order(db, order)

        logger.info("order_draft_created", order_id=order.id, user_id=owner_id, total=str(order.total))
        return order

    @staticmethod
    async def list_orders(
        db: AsyncSession, principal: Principal, status: Optional[OrderStatus] = None
    ) -> Sequence[Order]:
        """The caller's own orders, or every order for an operator."""
        owner_filter = None if principal.is_operator else principal.user_id
        async with persistence_guard(db, "list_orders"):
            return await OrderRepository.list_orders(db, user_id=owner_filter, status=status)

    @staticmethod
    async def update_draft(
        db: AsyncSession, gateway, owner_id: str, order_id: str, changes: OrderUpdate
    ) -> Order:
        fields = changes.model_dump(exclude_unset=True)
        if not fields:
            raise InvalidInput("No changes supplied")

        async with persistence_guard(db, "update_draft"):
            order = await OrderRepository.get_order(db, order_id)
        if order is None or order.user_id != owner_id:
            raise NotFound(ORDER_NOT_FOUND)
        if order.status != OrderStatus.DRAFT.value:
            raise InvalidInput("Only draft orders can be edited")

        values = _price_line(fields.get("size_id", order.size_id), fields.get("quantity", order.quantity))
        if "image_url" in fields:
            values["image_url"] = _validate_image_url(fields["image_url"])

        # The old authorization was for the old total; it must not stay payable
        linked_id = order.payment_intent_id
        if linked_id:
            await retire_authorization(gateway, linked_id)
        values["payment_intent_id"] = None

        async with persistence_guard(db, "update_draft"):
            updated = await OrderRepository.update_draft(db, order_id, owner_id, linked_id, values)
            if updated == 0:
                raise InvalidInput("Order changed concurrently; reload and retry")
            order = await OrderRepository.get_order(db, order_id)

        logger.info("order_draft_updated", order_id=order_id, user_id=owner_id, fields=sorted(fields))
        return order

    @staticmethod
    async def initiate_checkout(db: AsyncSession, gateway, owner_id: str, order_ids: List[str]) -> CheckoutResponse:
        if not order_ids:
            raise InvalidInput("No orders to check out")
        if len(set(order_ids)) != len(order_ids):
            raise InvalidInput("Duplicate order ids in checkout batch")

        async with persistence_guard(db, "initiate_checkout"):
            orders = {o.id: o for o in await OrderRepository.get_orders(db, order_ids)}

        for order_id in order_ids:
            order = orders.get(order_id)
            if order is None or order.user_id != owner_id:
                stickers_checkout_initiated_total.labels(outcome="rejected").inc()
                raise NotFound(ORDER_NOT_FOUND)
            if order.status != OrderStatus.DRAFT.value:
                stickers_checkout_initiated_total.labels(outcome="rejected").inc()
                raise InvalidInput(f"Order {order_id} has already been checked out")

        amount = to_minor_units(sum((o.total for o in orders.values()), Decimal("0")))
        if amount <= 0:
            stickers_checkout_initiated_total.labels(outcome="rejected").inc()
            raise InvalidInput("Checkout amount must be greater than zero")

        # Earlier attempts on these drafts are cancelled before a new one exists
        previous_ids = {o.payment_intent_id for o in orders.values() if o.payment_intent_id}
        for previous_id in sorted(previous_ids):
            try:
                await retire_authorization(gateway, previous_id)
            except (InvalidInput, UpstreamFailure):
                stickers_checkout_initiated_total.labels(outcome="rejected").inc()
                raise

        try:
            authorization = await gateway.create_authorization(
                amount, metadata={"user_id": owner_id, "order_count": len(order_ids)}
            )
        except UpstreamFailure:
            stickers_checkout_initiated_total.labels(outcome="upstream_error").inc()
            raise
        if not authorization.client_secret:
            stickers_checkout_initiated_total.labels(outcome="upstream_error").inc()
            raise UpstreamFailure("create_authorization", "no_client_secret", "Authorization has no client secret")

        try:
            async with persistence_guard(db, "initiate_checkout"):
                linked = await OrderRepository.attach_authorization(
                    db, order_ids, owner_id, authorization.id, replaces=previous_ids
                )
        except Exception:
            await gateway.cancel_authorization(authorization.id)
            raise

        if linked != len(order_ids):
            # Something in the batch changed between the check and the write
            stickers_checkout_initiated_total.labels(outcome="conflict").inc()
            await gateway.cancel_authorization(authorization.id)
            logger.warning(
                "checkout_batch_changed",
                user_id=owner_id,
                authorization_id=authorization.id,
                requested=len(order_ids),
                linked=linked,
            )
            raise NotFound("One or more orders are no longer available for checkout")

        stickers_checkout_initiated_total.labels(outcome="created").inc()
        logger.info(
            "checkout_initiated",
            user_id=owner_id,
            authorization_id=authorization.id,
            order_ids=order_ids,
            amount=amount,
        )
        return CheckoutResponse(
            authorization_id=authorization.id,
            client_secret=authorization.client_secret,
            amount=amount,
            currency=authorization.currency,
        )

    @staticmethod
    async def confirm_checkout(db: AsyncSession, gateway, owner_id: str, authorization_id: str) -> CheckoutConfirmResponse:
        if not authorization_id:
            raise InvalidInput("authorization_id is required")

        # Always ask the gateway; never trust the caller's claim of success
        authorization = await gateway.retrieve_authorization(authorization_id)

        if authorization.owner_id != owner_id:
            stickers_checkout_confirmed_total.labels(outcome="owner_mismatch").inc()
            logger.warning(
                "checkout_owner_mismatch",
                user_id=owner_id,
                authorization_id=authorization_id,
            )
            raise NotFound("Payment authorization not found")

        if not authorization.succeeded:
            stickers_checkout_confirmed_total.labels(outcome="not_succeeded").inc()
            logger.info(
                "checkout_not_succeeded",
                user_id=owner_id,
                authorization_id=authorization_id,
                gateway_status=authorization.status,
            )
            raise InvalidInput("Payment not successful")

        async with persistence_guard(db, "confirm_checkout"):
            updated = await OrderRepository.confirm_authorization(db, owner_id, authorization_id, CONFIRMED_STATUS)

        if updated == 0:
            stickers_checkout_confirmed_total.labels(outcome="nothing_to_update").inc()
            logger.info("checkout_nothing_to_confirm", user_id=owner_id, authorization_id=authorization_id)
            raise NothingToConfirm()

        stickers_checkout_confirmed_total.labels(outcome="confirmed").inc()
        stickers_status_transitions_total.labels(status=CONFIRMED_STATUS.value).inc(updated)
        logger.info(
            "checkout_confirmed",
            user_id=owner_id,
            authorization_id=authorization_id,
            updated_count=updated,
        )
        return CheckoutConfirmResponse(updated_count=updated)

    @staticmethod
    async def update_status(db: AsyncSession, principal: Principal, order_id: str, new_status: OrderStatus) -> Order:
        """Operator-only fulfilment transition; payment is not re-verified here."""
        if not principal.is_operator:
            raise Forbidden()

        async with persistence_guard(db, "update_status"):
            order = await OrderRepository.get_order(db, order_id)
            if order is None:
                raise NotFound(ORDER_NOT_FOUND)

            current = OrderStatus(order.status)
            if current is OrderStatus.DRAFT and not order.payment_confirmed:
                raise InvalidInput("Draft orders can only leave draft through a verified checkout")
            if new_status.rank <= current.rank:
                raise InvalidInput(f"Cannot move an order from {current.value} to {new_status.value}")

            updated = await OrderRepository.advance_status(db, order_id, current, new_status)
            if updated == 0:
                raise InvalidInput("Order status changed concurrently; reload and retry")
            order = await OrderRepository.get_order(db, order_id)

        stickers_status_transitions_total.labels(status=new_status.value).inc()
        logger.info(
            "order_status_updated",
            order_id=order_id,
            operator_id=principal.user_id,
            from_status=current.value,
            to_status=new_status.value,
        )
        return order

    @staticmethod
    async def delete_draft(db: AsyncSession, assets, owner_id: str, order_id: str) -> OrderDeleteResponse:
        async with persistence_guard(db, "delete_draft"):
            order = await OrderRepository.get_order(db, order_id)
        if order is None or order.user_id != owner_id:
            raise NotFound(ORDER_NOT_FOUND)

        # Asset cleanup is best-effort; the order goes away regardless
        asset_deleted = False
        if order.image_url:
            try:
                asset_deleted = await assets.delete(order.image_url)
            except Exception as e:
                logger.warning("asset_delete_error", order_id=order_id, error=str(e))
                asset_deleted = False
        if not asset_deleted:
            stickers_asset_delete_failures_total.inc()
            logger.warning("order_asset_not_deleted", order_id=order_id, image_url=order.image_url)

        async with persistence_guard(db, "delete_draft"):
            deleted = await OrderRepository.delete_order(db, order_id, owner_id)
        if deleted == 0:
            raise NotFound(ORDER_NOT_FOUND)

        logger.info("order_deleted", order_id=order_id, user_id=owner_id, asset_deleted=asset_deleted)
        return OrderDeleteResponse(asset_deleted=asset_deleted)
