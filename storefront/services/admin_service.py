# storefront/services/admin_service.py
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.errors import IllegalTransition, OrderNotFound
from storefront.domain.states import ADMIN_TRIGGERS, TRIGGER_TARGETS, OrderStatus, Trigger
from storefront.repos.order_repo import OrderRepo
from storefront.services.state_machine import OrderStateMachine
from storefront.services.stock_ledger import StockLedger
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class AdminService:
    def __init__(self, db: Session, state_machine: OrderStateMachine):
        self.db = db
        self.orders = OrderRepo(db)
        self.ledger = StockLedger(db)
        self.state_machine = state_machine

    def transition(self, order_id: str, trigger: Trigger) -> OrderModel:
        if trigger not in ADMIN_TRIGGERS:
            # payment and expiry only come from the gateway and the reaper
            order = self.orders.get_order(order_id)
            if not order:
                raise OrderNotFound(order_id)
            raise IllegalTransition(OrderStatus(order.status), TRIGGER_TARGETS[trigger])

        logger.info(f"Admin trigger {trigger.value} on order {order_id}")
        return self.state_machine.transition(order_id, trigger)

    def restock(self, product_id: int, total_stock: int) -> dict:
        try:
            self.ledger.restock(product_id, total_stock)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        counter = self.ledger.counters(product_id)
        return {
            "product_id": product_id,
            "total_stock": counter.total_stock,
            "held": counter.held,
            "committed": counter.committed,
            "available": counter.available,
        }
