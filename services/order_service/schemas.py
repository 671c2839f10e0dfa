from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from .models import OrderStatus


class OrderCreate(BaseModel):
    image_url: str
    size_id: int
    quantity: int


class OrderUpdate(BaseModel):
    image_url: Optional[str] = None
    size_id: Optional[int] = None
    quantity: Optional[int] = None


class StatusUpdate(BaseModel):
    status: OrderStatus


class OrderResponse(BaseModel):
    id: str
    user_id: str
    image_url: str
    size_id: int
    size_label: str
    unit_price: float
    quantity: int
    total: float
    payment_intent_id: Optional[str]
    payment_confirmed: bool
    status: OrderStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SizeResponse(BaseModel):
    id: int
    label: str
    unit_price: float

    class Config:
        from_attributes = True


class OrderDeleteResponse(BaseModel):
    message: str = "Order deleted successfully"
    asset_deleted: bool


class CheckoutRequest(BaseModel):
    order_ids: List[str]


class CheckoutResponse(BaseModel):
    authorization_id: str
    client_secret: str
    amount: int  # smallest currency unit
    currency: str


class CheckoutConfirm(BaseModel):
    authorization_id: str


class CheckoutConfirmResponse(BaseModel):
    updated_count: int
