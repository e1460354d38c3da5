import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, Numeric, Text
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.domain.states import OrderStatus


class OrderModel(Base):
    """
    Frozen snapshot of a cart. Only `status` changes after creation, plus the
    set-once gateway ids; both go through OrderRepo conditional updates.
    """

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    owner_id = Column(Integer, nullable=False, index=True)

    status = Column(String(32), nullable=False, index=True, default=OrderStatus.AWAITING_PAYMENT.value)
    total_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    shipping_address = Column(Text, nullable=True)

    gateway_intent_id = Column(String(64), nullable=True, unique=True)
    gateway_payment_reference = Column(String(64), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    lines = relationship(
        "OrderLineModel",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLineModel.position",
    )
    reservations = relationship("StockReservationModel", back_populates="order")
    payment_attempts = relationship(
        "PaymentAttemptModel",
        back_populates="order",
        order_by="PaymentAttemptModel.created_at",
    )
