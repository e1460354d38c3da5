# storefront/repos/cart_repo.py
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart_by_owner(self, owner_id: int) -> CartModel | None:
        return self.db.execute(
            select(CartModel).where(CartModel.owner_id == owner_id)
        ).scalar_one_or_none()

    def create_cart(self, cart: CartModel) -> CartModel:
        try:
            with self.db.begin_nested():
                self.db.add(cart)
        except IntegrityError:
            # owner_id is unique, another request created the cart first
            return self.get_cart_by_owner(cart.owner_id)
        return cart

    def get_cart_items(self, cart_id: int) -> list[CartItemModel]:
        return list(
            self.db.execute(
                select(CartItemModel)
                .where(CartItemModel.cart_id == cart_id)
                .order_by(CartItemModel.product_id)
            ).scalars()
        )

    def get_cart_item(self, cart_id: int, product_id: int) -> CartItemModel | None:
        return self.db.execute(
            select(CartItemModel).where(
                CartItemModel.cart_id == cart_id,
                CartItemModel.product_id == product_id,
            )
        ).scalar_one_or_none()

    def add_cart_item(self, item: CartItemModel) -> CartItemModel:
        self.db.add(item)
        self.db.flush()
        return item

    def delete_cart_item(self, item: CartItemModel) -> None:
        self.db.delete(item)
        self.db.flush()

    def delete_cart(self, cart: CartModel) -> None:
        # items go with the cart (delete-orphan cascade)
        self.db.delete(cart)
        self.db.flush()

    def update_cart_version(self, cart_id: int, old_version: int, new_data: dict) -> int:
        # UPDATE carts SET version = 2 WHERE id = 1 AND version = 1
        res = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return res.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
