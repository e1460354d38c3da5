# storefront/services/reaper.py
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from storefront.domain.errors import CheckoutError
from storefront.domain.states import COMMITTED_STATUSES, OrderStatus, ReservationState, Trigger
from storefront.repos.order_repo import OrderRepo
from storefront.repos.stock_repo import StockRepo
from storefront.services.state_machine import OrderStateMachine
from storefront.services.stock_ledger import StockLedger
from storefront.utils.clock import utcnow
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class SweepReport:
    expired: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


@dataclass
class RepairReport:
    committed: list[str] = field(default_factory=list)
    released: list[str] = field(default_factory=list)


class ReconciliationReaper:
    """
    sweep(): expires unpaid orders past expires_at through the state machine,
    so it takes the same per-order lock as a late payment verification.
    repair(): re-derives reservation state from order status after a crash,
    idempotent and safe to run unconditionally at startup.
    """

    def __init__(self, db: Session, state_machine: OrderStateMachine):
        self.db = db
        self.orders = OrderRepo(db)
        self.stock = StockRepo(db)
        self.ledger = StockLedger(db)
        self.state_machine = state_machine

    def sweep(self, now: datetime | None = None) -> SweepReport:
        now = now or utcnow()
        report = SweepReport()

        order_ids = self.orders.list_expired_unpaid(now)
        self.db.commit()
        logger.info(f"Found {len(order_ids)} unpaid orders past their payment window")

        for order_id in order_ids:
            try:
                self.state_machine.transition(order_id, Trigger.EXPIRE, now=now)
                report.expired.append(order_id)
            except CheckoutError as e:
                # a payment or cancel got there first
                logger.info(f"Order {order_id} not expired: {e}")
                report.skipped.append(order_id)
            except Exception:
                logger.exception(f"Expiring order {order_id} failed, continuing with the rest")
                self.db.rollback()
                report.failed.append(order_id)

        logger.info(
            f"Reaper expired {len(report.expired)} orders, skipped {len(report.skipped)}, "
            f"failed {len(report.failed)}"
        )
        return report

    def repair(self) -> RepairReport:
        report = RepairReport()

        try:
            paid_ids = self.orders.list_ids_by_status(COMMITTED_STATUSES)
            for order_id in self.stock.order_ids_with_state(paid_ids, ReservationState.HELD):
                self.ledger.commit_order(order_id)
                report.committed.append(order_id)

            dead_ids = self.orders.list_ids_by_status({OrderStatus.EXPIRED, OrderStatus.CANCELLED})
            refunded_ids = self.orders.list_ids_by_status({OrderStatus.REFUNDED})
            stale = set(self.stock.order_ids_with_state(dead_ids, ReservationState.HELD))
            stale |= set(self.stock.order_ids_with_state(refunded_ids, ReservationState.HELD))
            stale |= set(self.stock.order_ids_with_state(refunded_ids, ReservationState.COMMITTED))
            for order_id in sorted(stale):
                self.ledger.release_order(order_id)
                report.released.append(order_id)

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if report.committed or report.released:
            logger.warning(
                f"Reservation repair: committed {len(report.committed)} orders, "
                f"released {len(report.released)} orders"
            )
        else:
            logger.info("Reservation repair: nothing to do")
        return report
