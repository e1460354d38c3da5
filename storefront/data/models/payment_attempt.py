import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, ForeignKey, Boolean
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.domain.states import PaymentOutcome


class PaymentAttemptModel(Base):
    __tablename__ = "payment_attempts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)

    gateway_intent_id = Column(String(64), nullable=False)
    gateway_payment_reference = Column(String(64), nullable=True)
    verified_signature_valid = Column(Boolean, nullable=False, default=False)
    outcome = Column(String(16), nullable=False, default=PaymentOutcome.PENDING.value)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=True)

    order = relationship("OrderModel", back_populates="payment_attempts")
