#storefront/api/routers/carts.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.api.deps import get_product_client, http_error
from storefront.data.database import get_db
from storefront.domain.errors import CheckoutError
from storefront.domain.schemas import CartOut, ItemIn, QuantityIn
from storefront.services.cart_service import CartService
from storefront.services.product_client import ProductClient

router = APIRouter(prefix="/carts", tags=["carts"])


def get_service(
    db: Session = Depends(get_db),
    product_client: ProductClient = Depends(get_product_client),
) -> CartService:
    return CartService(db=db, product_client=product_client)


@router.get("/me", response_model=CartOut)
def get_cart(
    user_id: int = Query(...),
    svc: CartService = Depends(get_service),
):
    return svc.get_cart(user_id)


@router.post("/me/items", response_model=CartOut)
def add_item(
    payload: ItemIn,
    user_id: int = Query(...),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.add_item(user_id, payload.product_id, payload.quantity)
    except CheckoutError as e:
        raise http_error(e)


@router.put("/me/items/{product_id}", response_model=CartOut)
def update_item(
    product_id: int,
    payload: QuantityIn,
    user_id: int = Query(...),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.update_item(user_id, product_id, payload.quantity)
    except CheckoutError as e:
        raise http_error(e)


@router.delete("/me/items/{product_id}", response_model=CartOut)
def remove_item(
    product_id: int,
    user_id: int = Query(...),
    svc: CartService = Depends(get_service),
):
    try:
        return svc.remove_item(user_id, product_id)
    except CheckoutError as e:
        raise http_error(e)


@router.delete("/me", response_model=CartOut)
def clear_cart(
    user_id: int = Query(...),
    svc: CartService = Depends(get_service),
):
    return svc.clear(user_id)
