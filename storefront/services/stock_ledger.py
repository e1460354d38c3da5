# storefront/services/stock_ledger.py
from sqlalchemy.orm import Session

from storefront.data.models.stock import StockReservationModel
from storefront.domain.errors import InsufficientStock, ProductUnavailable, StockBelowReserved
from storefront.domain.states import ReservationState
from storefront.repos.stock_repo import StockRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class StockLedger:
    """
    Stock Reservation Ledger.

    Counters per product: total_stock, held (in-flight orders) and committed
    (paid orders). held + committed never exceeds total_stock; the database
    check constraint and the conditional updates in StockRepo both hold it.

    The ledger never commits the session, it always works inside the caller's
    unit of work so reservations move together with the order status.
    """

    def __init__(self, db: Session):
        self.repo = StockRepo(db)

    def ensure_counter(self, product_id: int, total_stock: int) -> None:
        if self.repo.get_counter(product_id) is not None:
            return
        if self.repo.insert_counter(product_id, total_stock):
            logger.info(f"Registered stock counter for product {product_id} ({total_stock} units)")

    def restock(self, product_id: int, total_stock: int) -> None:
        counter = self.repo.get_counter(product_id)
        if counter is None:
            self.repo.insert_counter(product_id, total_stock)
            return

        if self.repo.set_total_stock(product_id, total_stock) == 0:
            counter = self.repo.get_counter(product_id)
            raise StockBelowReserved(product_id, total_stock, counter.held + counter.committed)

        logger.info(f"Product {product_id} stock set to {total_stock}")

    def available(self, product_id: int) -> int:
        counter = self.repo.get_counter(product_id)
        if counter is None:
            return 0
        return counter.available

    def counters(self, product_id: int):
        return self.repo.get_counter(product_id)

    def reserve(self, order_id: str, product_id: int, quantity: int) -> StockReservationModel:
        if self.repo.get_counter(product_id) is None:
            raise ProductUnavailable(product_id)

        if self.repo.try_hold(product_id, quantity) == 0:
            raise InsufficientStock(product_id, quantity, self.available(product_id))

        return self.repo.add_reservation(
            StockReservationModel(
                product_id=product_id,
                order_id=order_id,
                quantity=quantity,
                state=ReservationState.HELD.value,
            )
        )

    def commit_order(self, order_id: str) -> int:
        """held -> committed for every held reservation of the order."""
        moved = 0
        for r in self.repo.get_reservations(order_id, ReservationState.HELD):
            if self.repo.compare_and_set_state(r.id, ReservationState.HELD, ReservationState.COMMITTED) == 0:
                continue
            if self.repo.move_held_to_committed(r.product_id, r.quantity) == 0:
                raise RuntimeError(f"Stock counter for product {r.product_id} lost held units of order {order_id}")
            moved += r.quantity
        return moved

    def release_order(self, order_id: str) -> int:
        """held/committed -> released, giving the units back to available stock."""
        released = 0
        for r in self.repo.get_reservations(order_id):
            state = ReservationState(r.state)
            if state == ReservationState.RELEASED:
                continue
            if self.repo.compare_and_set_state(r.id, state, ReservationState.RELEASED) == 0:
                continue

            if state == ReservationState.HELD:
                rows = self.repo.drop_held(r.product_id, r.quantity)
            else:
                rows = self.repo.drop_committed(r.product_id, r.quantity)
            if rows == 0:
                raise RuntimeError(f"Stock counter for product {r.product_id} lost {state.value} units of order {order_id}")
            released += r.quantity
        return released

    def reservations(self, order_id: str, state: ReservationState | None = None):
        return self.repo.get_reservations(order_id, state)
