# storefront/services/order_service.py
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.errors import OrderAccessDenied, OrderNotFound
from storefront.domain.states import COMMITTED_STATUSES, OrderStatus, PaymentOutcome
from storefront.repos.order_repo import OrderRepo
from storefront.repos.payment_repo import PaymentRepo
from storefront.utils.clock import as_utc
from storefront.utils.money import money


class OrderService:
    """
    Read side of orders (queries only). Status changes go through
    OrderStateMachine.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepo(db)
        self.payments = PaymentRepo(db)

    def get_order(self, order_id: str, user_id: int, is_admin: bool = False) -> Dict[str, Any]:
        """
        Use Case: order projection with lines and the latest payment outcome.
        """
        order = self.repo.get_order(order_id)

        if not order:
            raise OrderNotFound(order_id)

        if not is_admin and order.owner_id != user_id:
            raise OrderAccessDenied(order_id)

        self.repo.reload(order)
        return self.project(order)

    def list_orders(
        self,
        user_id: int | None,
        status: OrderStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        orders, total = self.repo.list_orders(owner_id=user_id, status=status, page=page, limit=limit)
        return {
            "orders": [self.summary(o) for o in orders],
            "page": page,
            "limit": limit,
            "total": total,
        }

    def stats(self) -> Dict[str, Any]:
        by_status = self.repo.count_by_status()
        return {
            "orders_by_status": {s.value: by_status.get(s.value, 0) for s in OrderStatus},
            "total_orders": sum(by_status.values()),
            "revenue": money(self.repo.revenue(COMMITTED_STATUSES) or Decimal("0")),
        }

    def project(self, order: OrderModel) -> Dict[str, Any]:
        attempts = self.payments.list_attempts(order.id)
        authorized = [a for a in attempts if a.outcome == PaymentOutcome.AUTHORIZED.value]
        latest = authorized[-1] if authorized else (attempts[-1] if attempts else None)

        return {
            **self.summary(order),
            "shipping_address": order.shipping_address,
            "gateway_intent_id": order.gateway_intent_id,
            "gateway_payment_reference": order.gateway_payment_reference,
            "lines": [
                {
                    "product_id": line.product_id,
                    "product_name": line.product_name,
                    "quantity": line.quantity,
                    "unit_price": line.unit_price,
                    "subtotal": line.subtotal,
                }
                for line in order.lines
            ],
            "payment_outcome": latest.outcome if latest else None,
        }

    @staticmethod
    def summary(order: OrderModel) -> Dict[str, Any]:
        return {
            "id": order.id,
            "owner_id": order.owner_id,
            "status": order.status,
            "total_amount": order.total_amount,
            "currency": order.currency,
            "created_at": as_utc(order.created_at),
            "expires_at": as_utc(order.expires_at),
        }
