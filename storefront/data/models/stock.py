import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from storefront.data.database import Base
from storefront.domain.states import ReservationState


class StockCounterModel(Base):
    """
    Per-product counters. Only StockRepo changes them, and only through
    conditional UPDATE statements.
    """

    __tablename__ = "stock_counters"
    __table_args__ = (
        CheckConstraint("held >= 0", name="ck_stock_held_non_negative"),
        CheckConstraint("committed >= 0", name="ck_stock_committed_non_negative"),
        CheckConstraint("held + committed <= total_stock", name="ck_stock_not_oversold"),
    )

    product_id = Column(Integer, primary_key=True, autoincrement=False)
    total_stock = Column(Integer, nullable=False)
    held = Column(Integer, nullable=False, default=0)
    committed = Column(Integer, nullable=False, default=0)

    @property
    def available(self) -> int:
        return self.total_stock - self.held - self.committed


class StockReservationModel(Base):
    """Reservations are never deleted, only moved held -> committed/released."""

    __tablename__ = "stock_reservations"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_reservation_quantity_positive"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id = Column(Integer, nullable=False, index=True)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    state = Column(String(16), nullable=False, default=ReservationState.HELD.value)

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), nullable=True)

    order = relationship("OrderModel", back_populates="reservations")
