# storefront/repos/order_repo.py
from datetime import datetime

from sqlalchemy import select, update, func
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel
from storefront.domain.states import OrderStatus


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def create_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .options(selectinload(OrderModel.lines))
            .where(OrderModel.id == order_id)
        ).scalar_one_or_none()

    def reload(self, order: OrderModel) -> OrderModel:
        self.db.refresh(order)
        return order

    def compare_and_set_status(self, order_id: str, old: OrderStatus, new: OrderStatus) -> int:
        """Only writer of orders.status; 0 rows means someone else moved the order first."""
        res = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status == old.value)
            .values(status=new.value)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def set_intent_once(self, order_id: str, intent_id: str) -> int:
        res = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.gateway_intent_id.is_(None))
            .values(gateway_intent_id=intent_id)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def set_payment_reference_once(self, order_id: str, payment_reference: str) -> int:
        res = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.gateway_payment_reference.is_(None))
            .values(gateway_payment_reference=payment_reference)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def list_expired_unpaid(self, now: datetime, limit: int = 500) -> list[str]:
        return list(
            self.db.execute(
                select(OrderModel.id)
                .where(
                    OrderModel.status == OrderStatus.AWAITING_PAYMENT.value,
                    OrderModel.expires_at <= now,
                )
                .order_by(OrderModel.expires_at)
                .limit(limit)
            ).scalars()
        )

    def list_orders(
        self,
        owner_id: int | None = None,
        status: OrderStatus | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[OrderModel], int]:
        query = select(OrderModel)
        count_query = select(func.count()).select_from(OrderModel)

        if owner_id is not None:
            query = query.where(OrderModel.owner_id == owner_id)
            count_query = count_query.where(OrderModel.owner_id == owner_id)
        if status is not None:
            query = query.where(OrderModel.status == status.value)
            count_query = count_query.where(OrderModel.status == status.value)

        orders = self.db.execute(
            query.order_by(OrderModel.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()
        total = self.db.execute(count_query).scalar_one()
        return list(orders), total

    def count_by_status(self) -> dict[str, int]:
        rows = self.db.execute(
            select(OrderModel.status, func.count()).group_by(OrderModel.status)
        ).all()
        return {status: count for status, count in rows}

    def revenue(self, statuses) -> object:
        return self.db.execute(
            select(func.coalesce(func.sum(OrderModel.total_amount), 0))
            .where(OrderModel.status.in_([s.value for s in statuses]))
        ).scalar_one()

    def list_ids_by_status(self, statuses) -> list[str]:
        return list(
            self.db.execute(
                select(OrderModel.id).where(OrderModel.status.in_([s.value for s in statuses]))
            ).scalars()
        )
