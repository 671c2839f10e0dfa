"""
Order Store access.

Every state change is a conditional UPDATE/DELETE whose WHERE clause
repeats the owner and status the caller expects, and the affected row
count tells the service whether the transition happened. Bulk statements
skip session synchronisation, so reads use populate_existing to see them.
"""
from contextlib import asynccontextmanager
from typing import Iterable, Optional, Sequence

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import PersistenceFailure
from .models import Order, OrderStatus, utcnow


@asynccontextmanager
async def persistence_guard(db: AsyncSession, operation: str):
    """Roll back and raise PersistenceFailure on any database error."""
    try:
        yield
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceFailure(operation, str(e)) from e


class OrderRepository:

    @staticmethod
    async def create_order(db: AsyncSession, order: Order) -> Order:
        db.add(order)
        await db.commit()
        await db.refresh(order)
        return order

    @staticmethod
    async def get_order(db: AsyncSession, order_id: str) -> Optional[Order]:
        result = await db.execute(
            select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def get_orders(db: AsyncSession, order_ids: Iterable[str]) -> Sequence[Order]:
        result = await db.execute(
            select(Order).where(Order.id.in_(list(order_ids))).execution_options(populate_existing=True)
        )
        return result.scalars().all()

    @staticmethod
    async def list_orders(
        db: AsyncSession, user_id: Optional[str] = None, status: Optional[OrderStatus] = None
    ) -> Sequence[Order]:
        stmt = select(Order).order_by(Order.created_at.desc())
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        if status is not None:
            stmt = stmt.where(Order.status == status.value)
        result = await db.execute(stmt.execution_options(populate_existing=True))
        return result.scalars().all()

    @staticmethod
    async def update_draft(
        db: AsyncSession, order_id: str, user_id: str, linked_id: Optional[str], values: dict
    ) -> int:
        """Apply owner edits while the order is still the owner's draft, linked to `linked_id`."""
        linkage = Order.payment_intent_id.is_(None) if linked_id is None else Order.payment_intent_id == linked_id
        result = await db.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.user_id == user_id,
                Order.status == OrderStatus.DRAFT.value,
                linkage,
            )
            .values(**values, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount

    @staticmethod
    async def attach_authorization(
        db: AsyncSession,
        order_ids: Sequence[str],
        user_id: str,
        authorization_id: str,
        replaces: Iterable[str] = (),
    ) -> int:
        """
        Link a batch of drafts to one authorization, all or nothing.

        Rolls back unless every requested order still matched (owner, draft
        status, and unlinked or linked to one of `replaces`), so a concurrent
        change cannot leave half a batch linked.
        """
        linkage = Order.payment_intent_id.is_(None)
        replaced = list(replaces)
        if replaced:
            linkage = or_(linkage, Order.payment_intent_id.in_(replaced))
        result = await db.execute(
            update(Order)
            .where(
                Order.id.in_(list(order_ids)),
                Order.user_id == user_id,
                Order.status == OrderStatus.DRAFT.value,
                linkage,
            )
            .values(payment_intent_id=authorization_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(order_ids):
            await db.rollback()
        else:
            await db.commit()
        return result.rowcount

    @staticmethod
    async def confirm_authorization(
        db: AsyncSession, user_id: str, authorization_id: str, new_status: OrderStatus
    ) -> int:
        """Move every draft of this owner carrying the authorization in one statement."""
        result = await db.execute(
            update(Order)
            .where(
                Order.user_id == user_id,
                Order.payment_intent_id == authorization_id,
                Order.status == OrderStatus.DRAFT.value,
            )
            .values(status=new_status.value, payment_confirmed=True, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount

    @staticmethod
    async def advance_status(
        db: AsyncSession, order_id: str, expected: OrderStatus, new_status: OrderStatus
    ) -> int:
        conditions = [Order.id == order_id, Order.status == expected.value]
        if expected is OrderStatus.DRAFT:
            # Only a draft whose payment was already verified may move on
            conditions.append(Order.payment_confirmed.is_(True))
        result = await db.execute(
            update(Order)
            .where(*conditions)
            .values(status=new_status.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount

    @staticmethod
    async def delete_order(db: AsyncSession, order_id: str, user_id: str) -> int:
        result = await db.execute(
            delete(Order)
            .where(Order.id == order_id, Order.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount
