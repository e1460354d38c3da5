# storefront/services/materializer.py
from datetime import timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.order import OrderModel
from storefront.data.models.order_line import OrderLineModel
from storefront.domain.errors import ConcurrencyConflict, EmptyCart, ProductUnavailable
from storefront.domain.states import OrderStatus
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.product_client import PriceQuote
from storefront.services.stock_ledger import StockLedger
from storefront.utils.clock import utcnow
from storefront.utils.money import money
from storefront.utils.settings import CURRENCY, PAYMENT_WINDOW_SECONDS
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class OrderMaterializer:
    """
    Freezes a cart into an order and reserves its stock in one transaction.

    1. rejects an empty cart and products missing from the price snapshot
    2. claims the cart by its version, so it turns into at most one order
    3. reserves lines in ascending product id (fixed lock order, no deadlocks)
    4. copies unit prices, fixes the total, removes the cart
    Any failure rolls back every reservation made so far.
    """

    def __init__(
        self,
        db: Session,
        payment_window_seconds: int = PAYMENT_WINDOW_SECONDS,
        currency: str = CURRENCY,
    ):
        self.db = db
        self.orders = OrderRepo(db)
        self.carts = CartRepo(db)
        self.ledger = StockLedger(db)
        self.payment_window = timedelta(seconds=payment_window_seconds)
        self.currency = currency

    def materialize(
        self,
        cart: CartModel | None,
        price_snapshot: dict[int, PriceQuote],
        shipping_address: str | None = None,
    ) -> OrderModel:
        items = sorted(cart.items, key=lambda i: i.product_id) if cart else []
        if not items:
            raise EmptyCart()

        for item in items:
            quote = price_snapshot.get(item.product_id)
            if quote is None or not quote.active:
                raise ProductUnavailable(item.product_id)

        now = utcnow()
        try:
            self._claim_cart(cart)

            order = self.orders.create_order(
                OrderModel(
                    owner_id=cart.owner_id,
                    status=OrderStatus.AWAITING_PAYMENT.value,
                    total_amount=Decimal("0.00"),
                    currency=self.currency,
                    shipping_address=shipping_address,
                    created_at=now,
                    expires_at=now + self.payment_window,
                )
            )

            total = Decimal("0.00")
            for position, item in enumerate(items):
                quote = price_snapshot[item.product_id]
                self.ledger.ensure_counter(item.product_id, quote.stock)
                self.ledger.reserve(order.id, item.product_id, item.quantity)

                unit_price = money(quote.price)
                order.lines.append(
                    OrderLineModel(
                        position=position,
                        product_id=item.product_id,
                        product_name=quote.name,
                        quantity=item.quantity,
                        unit_price=unit_price,
                    )
                )
                total += unit_price * item.quantity

            order.total_amount = money(total)
            self.carts.delete_cart(cart)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            f"Order {order.id} materialized for owner {order.owner_id}: "
            f"{len(items)} lines, total {order.total_amount} {order.currency}"
        )
        return order

    def _claim_cart(self, cart: CartModel) -> None:
        # UPDATE carts SET version = v + 1 WHERE id = :id AND version = v
        # a second checkout of the same cart (or of a cart changed meanwhile) matches 0 rows
        rowcount = self.carts.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={"version": cart.version + 1},
        )
        if rowcount == 0:
            logger.warning(f"Cart {cart.id} of owner {cart.owner_id} already checked out or modified")
            raise ConcurrencyConflict(f"cart of owner {cart.owner_id}")
