import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String

from shared.config.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, enum.Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        # Declaration order is lifecycle order
        return list(OrderStatus).index(self)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(255), nullable=False, index=True)  # owner, never updated

    image_url = Column(String(1024), nullable=False)
    size_id = Column(Integer, nullable=False)
    size_label = Column(String(32), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    total = Column(Numeric(10, 2), nullable=False)  # unit_price * quantity, set by the service

    payment_intent_id = Column(String(255), nullable=True, index=True)
    payment_confirmed = Column(Boolean, default=False, nullable=False)
    status = Column(String(16), default=OrderStatus.DRAFT.value, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
