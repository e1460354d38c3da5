# storefront/services/state_machine.py
from datetime import datetime

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.errors import ConcurrencyConflict, IllegalTransition, OrderNotFound
from storefront.domain.states import (
    OrderStatus,
    SideEffect,
    Trigger,
    TRANSITIONS,
    TRIGGER_TARGETS,
)
from storefront.repos.order_repo import OrderRepo
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.stock_ledger import StockLedger
from storefront.utils.clock import as_utc, utcnow
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class OrderStateMachine:
    """
    The only writer of Order.status.

    transition() takes the per-order lock and owns the transaction.
    apply() is the unlocked core for callers that already hold the lock and
    want the status change inside their own unit of work (payment verification).
    Reservation side effects and the status update always share one transaction.
    """

    def __init__(
        self,
        db: Session,
        lock_service: LockService,
        notification_service: NotificationService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.ledger = StockLedger(db)
        self.lock_service = lock_service
        self.notification_service = notification_service or NotificationService()

    def transition(self, order_id: str, trigger: Trigger, now: datetime | None = None) -> OrderModel:
        with self.lock_service.order_lock(order_id):
            order = self.repo.get_order(order_id)
            if not order:
                raise OrderNotFound(order_id)
            self.repo.reload(order)

            previous = OrderStatus(order.status)
            try:
                self.apply(order, trigger, now)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.notify(order, previous)
        return order

    def apply(self, order: OrderModel, trigger: Trigger, now: datetime | None = None) -> OrderModel:
        current = OrderStatus(order.status)
        target = TRIGGER_TARGETS[trigger]

        effect = TRANSITIONS.get((current, target))
        if effect is None:
            raise IllegalTransition(current, target)

        if trigger == Trigger.EXPIRE and as_utc(order.expires_at) > (now or utcnow()):
            # payment window still open
            raise IllegalTransition(current, target)

        if effect == SideEffect.COMMIT:
            units = self.ledger.commit_order(order.id)
            logger.info(f"Order {order.id}: committed {units} reserved units")
        elif effect == SideEffect.RELEASE:
            units = self.ledger.release_order(order.id)
            logger.info(f"Order {order.id}: released {units} reserved units")

        if self.repo.compare_and_set_status(order.id, current, target) == 0:
            raise ConcurrencyConflict(f"order {order.id}")

        self.repo.reload(order)
        logger.info(f"Order {order.id}: {current.value} -> {target.value} ({trigger.value})")
        return order

    def notify(self, order: OrderModel, previous: OrderStatus) -> None:
        try:
            self.notification_service.send_status_notification(
                order.owner_id, order.id, previous.value, order.status
            )
        except Exception as e:
            # the transition is already committed
            logger.warning(f"Failed to enqueue notification for order {order.id}: {e}")
