# storefront/repos/stock_repo.py
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.stock import StockCounterModel, StockReservationModel
from storefront.domain.states import ReservationState


class StockRepo:
    """
    Every counter change is a single conditional UPDATE, so the database row
    lock is the per-product serialization point. Callers never read-then-write.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_counter(self, product_id: int) -> StockCounterModel | None:
        return self.db.execute(
            select(StockCounterModel)
            .where(StockCounterModel.product_id == product_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def insert_counter(self, product_id: int, total_stock: int) -> bool:
        try:
            with self.db.begin_nested():
                self.db.add(StockCounterModel(product_id=product_id, total_stock=total_stock, held=0, committed=0))
        except IntegrityError:
            # registered concurrently by another checkout
            return False
        return True

    def set_total_stock(self, product_id: int, total_stock: int) -> int:
        res = self.db.execute(
            update(StockCounterModel)
            .where(
                StockCounterModel.product_id == product_id,
                StockCounterModel.held + StockCounterModel.committed <= total_stock,
            )
            .values(total_stock=total_stock)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def try_hold(self, product_id: int, quantity: int) -> int:
        # compare-and-swap on available stock
        res = self.db.execute(
            update(StockCounterModel)
            .where(
                StockCounterModel.product_id == product_id,
                StockCounterModel.total_stock - StockCounterModel.held - StockCounterModel.committed >= quantity,
            )
            .values(held=StockCounterModel.held + quantity)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def move_held_to_committed(self, product_id: int, quantity: int) -> int:
        res = self.db.execute(
            update(StockCounterModel)
            .where(StockCounterModel.product_id == product_id, StockCounterModel.held >= quantity)
            .values(
                held=StockCounterModel.held - quantity,
                committed=StockCounterModel.committed + quantity,
            )
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def drop_held(self, product_id: int, quantity: int) -> int:
        res = self.db.execute(
            update(StockCounterModel)
            .where(StockCounterModel.product_id == product_id, StockCounterModel.held >= quantity)
            .values(held=StockCounterModel.held - quantity)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def drop_committed(self, product_id: int, quantity: int) -> int:
        res = self.db.execute(
            update(StockCounterModel)
            .where(StockCounterModel.product_id == product_id, StockCounterModel.committed >= quantity)
            .values(committed=StockCounterModel.committed - quantity)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    # reservations

    def add_reservation(self, reservation: StockReservationModel) -> StockReservationModel:
        self.db.add(reservation)
        self.db.flush()
        return reservation

    def get_reservations(self, order_id: str, state: ReservationState | None = None) -> list[StockReservationModel]:
        query = select(StockReservationModel).where(StockReservationModel.order_id == order_id)
        if state is not None:
            query = query.where(StockReservationModel.state == state.value)
        return list(
            self.db.execute(
                query.order_by(StockReservationModel.product_id)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def order_ids_with_state(self, order_ids: list[str], state: ReservationState) -> list[str]:
        if not order_ids:
            return []
        return list(
            self.db.execute(
                select(StockReservationModel.order_id)
                .where(
                    StockReservationModel.order_id.in_(order_ids),
                    StockReservationModel.state == state.value,
                )
                .distinct()
            ).scalars()
        )

    def compare_and_set_state(self, reservation_id: str, old: ReservationState, new: ReservationState) -> int:
        res = self.db.execute(
            update(StockReservationModel)
            .where(StockReservationModel.id == reservation_id, StockReservationModel.state == old.value)
            .values(state=new.value, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return res.rowcount
