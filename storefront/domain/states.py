# storefront/domain/states.py
from enum import Enum


class OrderStatus(str, Enum):
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"
    APPROVED = "approved"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class Trigger(str, Enum):
    PAYMENT_AUTHORIZED = "payment_authorized"
    EXPIRE = "expire"
    CANCEL = "cancel"
    APPROVE = "approve"
    START_PROCESSING = "start_processing"
    SHIP = "ship"
    DELIVER = "deliver"
    REFUND = "refund"


class SideEffect(str, Enum):
    NONE = "none"
    COMMIT = "commit"    # held -> committed
    RELEASE = "release"  # held/committed -> released


class ReservationState(str, Enum):
    HELD = "held"
    COMMITTED = "committed"
    RELEASED = "released"


class PaymentOutcome(str, Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    FAILED = "failed"


TRIGGER_TARGETS = {
    Trigger.PAYMENT_AUTHORIZED: OrderStatus.PAID,
    Trigger.EXPIRE: OrderStatus.EXPIRED,
    Trigger.CANCEL: OrderStatus.CANCELLED,
    Trigger.APPROVE: OrderStatus.APPROVED,
    Trigger.START_PROCESSING: OrderStatus.PROCESSING,
    Trigger.SHIP: OrderStatus.SHIPPED,
    Trigger.DELIVER: OrderStatus.DELIVERED,
    Trigger.REFUND: OrderStatus.REFUNDED,
}

# (from, to) -> side effect; any pair missing here is an illegal transition
TRANSITIONS = {
    (OrderStatus.AWAITING_PAYMENT, OrderStatus.PAID): SideEffect.COMMIT,
    (OrderStatus.AWAITING_PAYMENT, OrderStatus.EXPIRED): SideEffect.RELEASE,
    (OrderStatus.AWAITING_PAYMENT, OrderStatus.CANCELLED): SideEffect.RELEASE,
    (OrderStatus.PAID, OrderStatus.APPROVED): SideEffect.NONE,
    (OrderStatus.APPROVED, OrderStatus.PROCESSING): SideEffect.NONE,
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED): SideEffect.NONE,
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED): SideEffect.NONE,
    (OrderStatus.PAID, OrderStatus.REFUNDED): SideEffect.RELEASE,
    (OrderStatus.APPROVED, OrderStatus.REFUNDED): SideEffect.RELEASE,
    (OrderStatus.PROCESSING, OrderStatus.REFUNDED): SideEffect.RELEASE,
}

# statuses after which a payment can no longer be accepted
FINALIZED_STATUSES = frozenset(OrderStatus) - {OrderStatus.AWAITING_PAYMENT}

TERMINAL_STATUSES = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.EXPIRED,
    OrderStatus.CANCELLED,
    OrderStatus.REFUNDED,
})

# stock for these orders is sold; reservations must be committed
COMMITTED_STATUSES = frozenset({
    OrderStatus.PAID,
    OrderStatus.APPROVED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
})

# triggers an admin may fire through the API
ADMIN_TRIGGERS = frozenset({
    Trigger.APPROVE,
    Trigger.START_PROCESSING,
    Trigger.SHIP,
    Trigger.DELIVER,
    Trigger.REFUND,
    Trigger.CANCEL,
})
