from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, CheckConstraint
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class OrderLineModel(Base):
    __tablename__ = "order_lines"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_line_quantity_positive"),
    )

    id = Column(Integer, primary_key=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)

    product_id = Column(Integer, nullable=False)
    product_name = Column(String(255), nullable=True)
    quantity = Column(Integer, nullable=False)
    # copied from the price snapshot at checkout, never recomputed
    unit_price = Column(Numeric(12, 2), nullable=False)

    order = relationship("OrderModel", back_populates="lines")

    @property
    def subtotal(self):
        return self.unit_price * self.quantity
