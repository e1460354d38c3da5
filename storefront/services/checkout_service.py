# storefront/services/checkout_service.py
from typing import Any, Dict

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.errors import EmptyCart, OrderAccessDenied, OrderNotFound
from storefront.domain.states import Trigger
from storefront.repos.order_repo import OrderRepo
from storefront.services.cart_service import CartService
from storefront.services.gateway_client import GatewayClient
from storefront.services.lock_service import LockService
from storefront.services.materializer import OrderMaterializer
from storefront.services.payment_adapter import PaymentGatewayAdapter, Verification
from storefront.services.product_client import ProductClient
from storefront.services.state_machine import OrderStateMachine
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CheckoutService:
    """
    Use cases behind the checkout endpoints:
    cart -> materializer -> gateway intent, then verify -> state machine.
    """

    def __init__(
        self,
        db: Session,
        product_client: ProductClient,
        gateway_client: GatewayClient,
        lock_service: LockService,
        state_machine: OrderStateMachine | None = None,
    ):
        self.db = db
        self.orders = OrderRepo(db)
        self.product_client = product_client
        self.carts = CartService(db, product_client)
        self.materializer = OrderMaterializer(db)
        self.state_machine = state_machine or OrderStateMachine(db, lock_service)
        self.adapter = PaymentGatewayAdapter(db, gateway_client, self.state_machine)

    def checkout(self, owner_id: int, shipping_address: str | None = None) -> Dict[str, Any]:
        cart = self.carts.load_cart(owner_id)
        if not cart or not cart.items:
            raise EmptyCart()

        snapshot = self.product_client.price_snapshot(item.product_id for item in cart.items)
        order = self.materializer.materialize(cart, snapshot, shipping_address)

        # a gateway failure leaves the order awaiting payment, POST /checkout/{id}/intent retries
        intent_id = self.adapter.create_intent(order.id)
        return self._checkout_summary(order, intent_id)

    def retry_intent(self, owner_id: int, order_id: str) -> Dict[str, Any]:
        order = self._owned_order(owner_id, order_id)
        intent_id = self.adapter.create_intent(order.id)
        return self._checkout_summary(self.orders.reload(order), intent_id)

    def verify_payment(
        self,
        owner_id: int,
        order_id: str,
        gateway_intent_id: str,
        gateway_payment_reference: str,
        signature: str,
    ) -> Verification:
        self._owned_order(owner_id, order_id)
        return self.adapter.verify(order_id, gateway_intent_id, gateway_payment_reference, signature)

    def cancel(self, owner_id: int, order_id: str) -> OrderModel:
        self._owned_order(owner_id, order_id)
        logger.info(f"Owner {owner_id} cancels order {order_id}")
        return self.state_machine.transition(order_id, Trigger.CANCEL)

    def _owned_order(self, owner_id: int, order_id: str) -> OrderModel:
        order = self.orders.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        if order.owner_id != owner_id:
            raise OrderAccessDenied(order_id)
        return order

    @staticmethod
    def _checkout_summary(order: OrderModel, intent_id: str) -> Dict[str, Any]:
        return {
            "order_id": order.id,
            "gateway_intent_id": intent_id,
            "amount": order.total_amount,
            "currency": order.currency,
            "expires_at": order.expires_at,
        }
