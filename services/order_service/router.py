from typing import List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from services.asset_service.storage import get_asset_store
from services.payment_service.gateway import get_payment_gateway
from shared.config import settings
from shared.config.database import get_db
from shared.security import Principal, get_current_principal, get_current_user, limiter, require_operator

from .catalog import STICKER_SIZES
from .models import OrderStatus
from .schemas import (
    CheckoutConfirm,
    CheckoutConfirmResponse,
    CheckoutRequest,
    CheckoutResponse,
    OrderCreate,
    OrderDeleteResponse,
    OrderResponse,
    OrderUpdate,
    SizeResponse,
    StatusUpdate,
)
from .service import OrderService

router = APIRouter()
public_router = APIRouter()  # For any public endpoints (e.g. health check)


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "order", "status": "running"}


@public_router.get("/sizes", response_model=List[SizeResponse])
async def list_sizes():
    return list(STICKER_SIZES.values())


@router.post("/", response_model=OrderResponse, status_code=201)
async def create_order(
    payload: OrderCreate,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.create_draft(db, user_id, payload)


@router.get("/", response_model=List[OrderResponse])
async def list_orders(
    status: Optional[OrderStatus] = None,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.list_orders(db, principal, status)


@router.post("/checkout", response_model=CheckoutResponse)
@limiter.limit(settings.CHECKOUT_RATE_LIMIT)
async def initiate_checkout(
    request: Request,                          # REQUIRED: slowapi needs this to key the limit
    payload: CheckoutRequest,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway=Depends(get_payment_gateway),
):
    return await OrderService.initiate_checkout(db, gateway, user_id, payload.order_ids)


@router.post("/checkout/confirm", response_model=CheckoutConfirmResponse)
@limiter.limit(settings.CHECKOUT_RATE_LIMIT)
async def confirm_checkout(
    request: Request,
    payload: CheckoutConfirm,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway=Depends(get_payment_gateway),
):
    return await OrderService.confirm_checkout(db, gateway, user_id, payload.authorization_id)


@router.patch("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: str,
    payload: OrderUpdate,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    gateway=Depends(get_payment_gateway),
):
    return await OrderService.update_draft(db, gateway, user_id, order_id, payload)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    payload: StatusUpdate,
    operator: Principal = Depends(require_operator),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService.update_status(db, operator, order_id, payload.status)


@router.delete("/{order_id}", response_model=OrderDeleteResponse)
async def delete_order(
    order_id: str,
    user_id: str = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    assets=Depends(get_asset_store),
):
    return await OrderService.delete_draft(db, assets, user_id, order_id)
