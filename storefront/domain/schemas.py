# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List
from decimal import Decimal
from datetime import datetime

from storefront.domain.states import OrderStatus, Trigger


class ItemIn(BaseModel):
    """Adding a product to the cart."""

    product_id: int = Field(..., gt=0, description="Product id (> 0)")
    quantity: int = Field(..., gt=0, description="Quantity (> 0)")


class QuantityIn(BaseModel):
    """Changing the quantity of a cart line."""

    quantity: int = Field(..., gt=0, description="New quantity (> 0)")


class CartItemOut(BaseModel):
    product_id: int
    quantity: int


class CartOut(BaseModel):
    owner_id: int
    items: List[CartItemOut]
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class CheckoutIn(BaseModel):
    shipping_address: str = Field(..., min_length=1, max_length=500, description="Delivery address")


class CheckoutOut(BaseModel):
    order_id: str
    gateway_intent_id: str
    amount: Decimal
    currency: str
    expires_at: datetime


class VerifyIn(BaseModel):
    """Payload handed back by the gateway after the shopper pays."""

    order_id: str
    gateway_intent_id: str = Field(..., min_length=1)
    gateway_payment_reference: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class OrderSummaryOut(BaseModel):
    id: str
    owner_id: int
    status: OrderStatus
    total_amount: Decimal
    currency: str
    created_at: datetime
    expires_at: datetime


class OrderLineOut(BaseModel):
    product_id: int
    product_name: str | None = None
    quantity: int
    unit_price: Decimal
    subtotal: Decimal


class OrderOut(OrderSummaryOut):
    shipping_address: str | None = None
    gateway_intent_id: str | None = None
    gateway_payment_reference: str | None = None
    lines: List[OrderLineOut]
    payment_outcome: str | None = None


class VerifyOut(BaseModel):
    result: str
    order: OrderOut


class OrderListOut(BaseModel):
    orders: List[OrderSummaryOut]
    page: int
    limit: int
    total: int


class OrderStatsOut(BaseModel):
    orders_by_status: dict[str, int]
    total_orders: int
    revenue: Decimal


class TransitionIn(BaseModel):
    trigger: Trigger


class StockIn(BaseModel):
    total_stock: int = Field(..., ge=0)


class StockOut(BaseModel):
    product_id: int
    total_stock: int
    held: int
    committed: int
    available: int
