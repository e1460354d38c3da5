# storefront/api/routers/checkout.py
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
from storefront.domain.errors import AlreadyFinalized, CheckoutError, SignatureInvalid
from storefront.domain.schemas import CheckoutIn, CheckoutOut, VerifyIn, VerifyOut
from storefront.services.checkout_service import CheckoutService
from storefront.services.gateway_client import GatewayClient
from storefront.services.lock_service import LockService
from storefront.services.order_service import OrderService
from storefront.services.payment_adapter import VerificationResult
from storefront.services.product_client import ProductClient
from storefront.services.state_machine import OrderStateMachine

router = APIRouter(prefix="/checkout", tags=["checkout"])


def get_service(
    db: Session = Depends(get_db),
    product_client: ProductClient = Depends(get_product_client),
    gateway_client: GatewayClient = Depends(get_gateway_client),
    lock_service: LockService = Depends(get_lock_service),
    state_machine: OrderStateMachine = Depends(get_state_machine),
) -> CheckoutService:
    return CheckoutService(
        db=db,
        product_client=product_client,
        gateway_client=gateway_client,
        lock_service=lock_service,
        state_machine=state_machine,
    )


@router.post("", response_model=CheckoutOut, status_code=201)
def checkout(
    payload: CheckoutIn,
    user_id: int = Query(...),
    svc: CheckoutService = Depends(get_service),
):
    """
    Freezes the cart into an order, reserves stock and opens a gateway intent.
    """
    try:
        return svc.checkout(user_id, payload.shipping_address)
    except CheckoutError as e:
        raise http_error(e)


@router.post("/{order_id}/intent", response_model=CheckoutOut)
def retry_intent(
    order_id: str,
    user_id: int = Query(...),
    svc: CheckoutService = Depends(get_service),
):
    try:
        return svc.retry_intent(user_id, order_id)
    except CheckoutError as e:
        raise http_error(e)


@router.post("/verify", response_model=VerifyOut)
def verify(
    payload: VerifyIn,
    user_id: int = Query(...),
    svc: CheckoutService = Depends(get_service),
    db: Session = Depends(get_db),
):
    """
    Checks the gateway signature and marks the order paid.
    A repeated callback for the stored payment answers 200 with already_finalized.
    """
    try:
        verification = svc.verify_payment(
            user_id,
            payload.order_id,
            payload.gateway_intent_id,
            payload.gateway_payment_reference,
            payload.signature,
        )
    except CheckoutError as e:
        raise http_error(e)

    if verification.result == VerificationResult.SIGNATURE_INVALID:
        raise http_error(SignatureInvalid())

    if verification.result == VerificationResult.ALREADY_FINALIZED and not verification.duplicate:
        order = verification.order
        raise http_error(AlreadyFinalized(order.id, order.status))

    return {
        "result": verification.result.value,
        "order": OrderService(db).project(verification.order),
    }
