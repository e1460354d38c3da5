#import all models so SQLAlchemy registers them in Base.metadata

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.data.models.order import OrderModel
from storefront.data.models.order_line import OrderLineModel
from storefront.data.models.stock import StockCounterModel, StockReservationModel
from storefront.data.models.payment_attempt import PaymentAttemptModel

__all__ = [
    "CartModel",
    "CartItemModel",
    "OrderModel",
    "OrderLineModel",
    "StockCounterModel",
    "StockReservationModel",
    "PaymentAttemptModel",
]
