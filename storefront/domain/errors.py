# storefront/domain/errors.py
"""Checkout errors with stable codes the API layer can branch on."""


class CheckoutError(Exception):
    """Base exception for all checkout errors."""

    code = "CHECKOUT_ERROR"
    http_status = 400
    retryable = False


# --- validation ---------------------------------------------------------

class EmptyCart(CheckoutError):
    code = "EMPTY_CART"

    def __init__(self):
        super().__init__("Cart is empty")


class InvalidQuantity(CheckoutError):
    code = "INVALID_QUANTITY"

    def __init__(self, quantity: int):
        self.quantity = quantity
        super().__init__(f"Quantity must be at least 1, got {quantity}")


class ProductUnavailable(CheckoutError):
    code = "PRODUCT_UNAVAILABLE"
    http_status = 404

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} is not available")


class CartItemNotFound(CheckoutError):
    code = "CART_ITEM_NOT_FOUND"
    http_status = 404

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product {product_id} is not in the cart")


class OrderNotFound(CheckoutError):
    code = "ORDER_NOT_FOUND"
    http_status = 404

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")


class OrderAccessDenied(CheckoutError):
    code = "FORBIDDEN"
    http_status = 403

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"No access to order {order_id}")


# --- contention ---------------------------------------------------------

class InsufficientStock(CheckoutError):
    code = "INSUFFICIENT_STOCK"
    http_status = 409

    def __init__(self, product_id: int, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}"
        )


class IllegalTransition(CheckoutError):
    code = "ILLEGAL_TRANSITION"
    http_status = 409

    def __init__(self, from_status, to_status):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Illegal transition {_value(from_status)} -> {_value(to_status)}")


class AlreadyFinalized(CheckoutError):
    code = "ALREADY_FINALIZED"
    http_status = 409

    def __init__(self, order_id: str, status):
        self.order_id = order_id
        self.status = status
        super().__init__(f"Order {order_id} is already {_value(status)}")


class OrderExpired(CheckoutError):
    code = "ORDER_EXPIRED"
    http_status = 409

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Payment window for order {order_id} has closed")


class OrderBusy(CheckoutError):
    code = "ORDER_BUSY"
    http_status = 409
    retryable = True

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} is being modified by another operation")


class ConcurrencyConflict(CheckoutError):
    code = "CONCURRENCY_CONFLICT"
    http_status = 409
    retryable = True

    def __init__(self, what: str):
        super().__init__(f"Concurrent modification of {what}")


class StockBelowReserved(CheckoutError):
    code = "STOCK_BELOW_RESERVED"
    http_status = 409

    def __init__(self, product_id: int, total_stock: int, reserved: int):
        self.product_id = product_id
        super().__init__(
            f"Cannot set stock of product {product_id} to {total_stock}, "
            f"{reserved} units are reserved or sold"
        )


# --- integrity ----------------------------------------------------------

class PaymentMismatch(CheckoutError):
    code = "PAYMENT_MISMATCH"

    def __init__(self, order_id: str, intent_id: str):
        self.order_id = order_id
        self.intent_id = intent_id
        super().__init__("Payment does not match any stored order")


class SignatureInvalid(CheckoutError):
    code = "SIGNATURE_INVALID"

    def __init__(self):
        # details go to the log only
        super().__init__("Payment verification failed")


# --- external dependencies ----------------------------------------------

class GatewayUnavailable(CheckoutError):
    code = "GATEWAY_UNAVAILABLE"
    http_status = 503
    retryable = True

    def __init__(self, reason: str, order_id: str | None = None):
        self.order_id = order_id
        super().__init__(f"Payment gateway unavailable: {reason}")


class CatalogUnavailable(CheckoutError):
    code = "CATALOG_UNAVAILABLE"
    http_status = 503
    retryable = True

    def __init__(self, reason: str):
        super().__init__(f"Product catalog unavailable: {reason}")


def _value(status) -> str:
    return getattr(status, "value", status)
