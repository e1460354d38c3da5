from datetime import datetime, timezone
from typing import Dict, Any
from sqlalchemy.orm import Session
from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.errors import CartItemNotFound, ConcurrencyConflict, InsufficientStock, InvalidQuantity
from storefront.repos.cart_repo import CartRepo
from storefront.services.product_client import ProductClient
from storefront.services.stock_ledger import StockLedger
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

class CartService:
    """
    Cart Store, simple CQRS use cases:
    commands (add, update, remove, clear) modify the cart
    query (get) is read only
    """

    def __init__(
        self,
        db: Session,
        product_client: ProductClient,
    ):
        self.repo = CartRepo(db)
        self.ledger = StockLedger(db)
        self.product_client = product_client

    #query
    def get_cart(self, owner_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_owner(owner_id)

        if not cart:
            return {"owner_id": owner_id, "items": [], "updated_at": None}

        items = self.repo.get_cart_items(cart.id)
        return {
            "owner_id": cart.owner_id,
            "items": [
                {"product_id": i.product_id, "quantity": i.quantity}
                for i in items
            ],
            "updated_at": cart.updated_at,
        }

    #commands
    def add_item(self, owner_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        if quantity < 1:
            raise InvalidQuantity(quantity)

        #catalog validation, raises ProductUnavailable
        quote = self.product_client.fetch_product(product_id)

        try:
            cart = self._get_or_create_cart(owner_id)
            existing_item = self.repo.get_cart_item(cart.id, product_id)
            new_quantity = quantity + (existing_item.quantity if existing_item else 0)

            self._check_stock(product_id, new_quantity, quote.stock)

            if existing_item:
                logger.info(
                    f"Product {product_id} already in cart of owner {owner_id}, "
                    f"quantity {existing_item.quantity} -> {new_quantity}"
                )
                existing_item.quantity = new_quantity
            else:
                logger.info(f"Adding product {product_id} to cart of owner {owner_id}")
                self.repo.add_cart_item(
                    CartItemModel(cart_id=cart.id, product_id=product_id, quantity=quantity)
                )

            self._bump_version(cart)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        return self.get_cart(owner_id)

    def update_item(self, owner_id: int, product_id: int, quantity: int) -> Dict[str, Any]:
        if quantity < 1:
            raise InvalidQuantity(quantity)

        cart = self.repo.get_cart_by_owner(owner_id)
        item = self.repo.get_cart_item(cart.id, product_id) if cart else None
        if not item:
            raise CartItemNotFound(product_id)

        quote = self.product_client.fetch_product(product_id)

        try:
            self._check_stock(product_id, quantity, quote.stock)
            item.quantity = quantity
            self._bump_version(cart)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        return self.get_cart(owner_id)

    def remove_item(self, owner_id: int, product_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_owner(owner_id)
        if not cart:
            return self.get_cart(owner_id)

        logger.info(f"Removing product {product_id} from cart of owner {owner_id}")
        try:
            item = self.repo.get_cart_item(cart.id, product_id)
            if item:
                self.repo.delete_cart_item(item)
            self._bump_version(cart)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        return self.get_cart(owner_id)

    def clear(self, owner_id: int) -> Dict[str, Any]:
        cart = self.repo.get_cart_by_owner(owner_id)
        if cart:
            self.repo.delete_cart(cart)
            self.repo.commit()
            logger.info(f"Cart of owner {owner_id} cleared")
        return self.get_cart(owner_id)

    def load_cart(self, owner_id: int) -> CartModel | None:
        return self.repo.get_cart_by_owner(owner_id)

    def _get_or_create_cart(self, owner_id: int) -> CartModel:
        cart = self.repo.get_cart_by_owner(owner_id)
        if cart:
            return cart
        logger.info(f"Creating cart for owner {owner_id}")
        return self.repo.create_cart(CartModel(owner_id=owner_id, version=1))

    def _check_stock(self, product_id: int, quantity: int, catalog_stock: int) -> None:
        # advisory only, the binding check happens when the order is materialized
        counter = self.ledger.counters(product_id)
        available = counter.available if counter else catalog_stock
        if quantity > available:
            raise InsufficientStock(product_id, quantity, available)

    def _bump_version(self, cart: CartModel) -> None:
        # UPDATE carts SET version = v + 1 WHERE id = :id AND version = v
        rowcount = self.repo.update_cart_version(
            cart_id=cart.id,
            old_version=cart.version,
            new_data={
                "version": cart.version + 1,
                "updated_at": datetime.now(timezone.utc),
            },
        )
        if rowcount == 0:
            raise ConcurrencyConflict(f"cart of owner {cart.owner_id}")
        self.repo.db.refresh(cart)
