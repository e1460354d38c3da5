# storefront/api/routers/admin.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_state_machine, http_error, require_admin
from storefront.data.database import get_db
from storefront.domain.errors import CheckoutError
from storefront.domain.schemas import (
    OrderListOut,
    OrderOut,
    OrderStatsOut,
    StockIn,
    StockOut,
    TransitionIn,
)
from storefront.domain.states import OrderStatus
from storefront.services.admin_service import AdminService
from storefront.services.order_service import OrderService
from storefront.services.state_machine import OrderStateMachine

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def get_service(
    db: Session = Depends(get_db),
    state_machine: OrderStateMachine = Depends(get_state_machine),
) -> AdminService:
    return AdminService(db, state_machine)


@router.get("/orders", response_model=OrderListOut)
def list_all_orders(
    status: OrderStatus | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return OrderService(db).list_orders(None, status=status, page=page, limit=limit)


@router.get("/orders/stats", response_model=OrderStatsOut)
def order_stats(db: Session = Depends(get_db)):
    return OrderService(db).stats()


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_any_order(order_id: str, db: Session = Depends(get_db)):
    try:
        return OrderService(db).get_order(order_id, user_id=0, is_admin=True)
    except CheckoutError as e:
        raise http_error(e)


@router.post("/orders/{order_id}/transition", response_model=OrderOut)
def transition_order(
    order_id: str,
    payload: TransitionIn,
    svc: AdminService = Depends(get_service),
    db: Session = Depends(get_db),
):
    try:
        order = svc.transition(order_id, payload.trigger)
    except CheckoutError as e:
        raise http_error(e)
    return OrderService(db).project(order)


@router.put("/stock/{product_id}", response_model=StockOut)
def restock(
    product_id: int,
    payload: StockIn,
    svc: AdminService = Depends(get_service),
):
    try:
        return svc.restock(product_id, payload.total_stock)
    except CheckoutError as e:
        raise http_error(e)
