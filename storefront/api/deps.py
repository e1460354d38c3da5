# storefront/api/deps.py
from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.errors import CheckoutError
from storefront.services.gateway_client import GatewayClient
from storefront.services.lock_service import LockService
from storefront.services.product_client import ProductClient
from storefront.services.state_machine import OrderStateMachine


def get_product_client() -> ProductClient:
    return ProductClient()


def get_gateway_client() -> GatewayClient:
    return GatewayClient()


def get_lock_service() -> LockService:
    return LockService()


def get_state_machine(
    db: Session = Depends(get_db),
    lock_service: LockService = Depends(get_lock_service),
) -> OrderStateMachine:
    return OrderStateMachine(db, lock_service)


def require_admin(x_user_role: str | None = Header(default=None)) -> None:
    # role is asserted by the upstream auth layer
    if x_user_role != "admin":
        raise HTTPException(status_code=403, detail={"code": "FORBIDDEN", "message": "Admin only"})


def http_error(e: CheckoutError) -> HTTPException:
    detail = {"code": e.code, "message": str(e)}
    order_id = getattr(e, "order_id", None)
    if order_id:
        detail["order_id"] = order_id
    return HTTPException(status_code=e.http_status, detail=detail)
