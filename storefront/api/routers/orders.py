# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import (
    get_gateway_client,
    get_lock_service,
    get_product_client,
    get_state_machine,
    http_error,
)
from storefront.data.database import get_db
from storefront.domain.errors import CheckoutError
from storefront.domain.schemas import OrderListOut, OrderOut
from storefront.domain.states import OrderStatus
from storefront.services.checkout_service import CheckoutService
from storefront.services.gateway_client import GatewayClient
from storefront.services.lock_service import LockService
from storefront.services.order_service import OrderService
from storefront.services.product_client import ProductClient
from storefront.services.state_machine import OrderStateMachine

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session = Depends(get_db)) -> OrderService:
    return OrderService(db)


@router.get("", response_model=OrderListOut)
def list_orders(
    user_id: int = Query(...),
    status: OrderStatus | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    svc: OrderService = Depends(get_service),
):
    return svc.list_orders(user_id, status=status, page=page, limit=limit)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: str,
    user_id: int = Query(...),
    svc: OrderService = Depends(get_service),
):
    """
    Order with its lines and the latest payment attempt outcome.
    """
    try:
        return svc.get_order(order_id, user_id)
    except CheckoutError as e:
        raise http_error(e)


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(
    order_id: str,
    user_id: int = Query(...),
    db: Session = Depends(get_db),
    product_client: ProductClient = Depends(get_product_client),
    gateway_client: GatewayClient = Depends(get_gateway_client),
    lock_service: LockService = Depends(get_lock_service),
    state_machine: OrderStateMachine = Depends(get_state_machine),
):
    checkout = CheckoutService(db, product_client, gateway_client, lock_service, state_machine)
    try:
        order = checkout.cancel(user_id, order_id)
    except CheckoutError as e:
        raise http_error(e)
    return OrderService(db).project(order)
