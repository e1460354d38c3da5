# storefront/services/payment_adapter.py
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.payment_attempt import PaymentAttemptModel
from storefront.domain.errors import (
    AlreadyFinalized,
    GatewayUnavailable,
    OrderExpired,
    OrderNotFound,
    PaymentMismatch,
)
from storefront.domain.states import OrderStatus, PaymentOutcome, Trigger
from storefront.repos.order_repo import OrderRepo
from storefront.repos.payment_repo import PaymentRepo
from storefront.services.gateway_client import GatewayClient, signature_matches
from storefront.services.state_machine import OrderStateMachine
from storefront.utils.clock import as_utc, utcnow
from storefront.utils.money import to_minor_units
from storefront.utils.settings import GATEWAY_KEY_SECRET
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class VerificationResult(str, Enum):
    AUTHORIZED = "authorized"
    SIGNATURE_INVALID = "signature_invalid"
    ALREADY_FINALIZED = "already_finalized"


@dataclass
class Verification:
    result: VerificationResult
    order: OrderModel
    # ALREADY_FINALIZED caused by a repeated callback for the stored payment
    duplicate: bool = False


class PaymentGatewayAdapter:
    """
    Two entry points against the gateway:
    - create_intent: registers order.total_amount with the gateway (idempotent)
    - verify: checks the HMAC of a completed payment and moves the order to paid
    Both run under the per-order lock held by the state machine's LockService.
    """

    def __init__(
        self,
        db: Session,
        gateway_client: GatewayClient,
        state_machine: OrderStateMachine,
        secret: str | None = None,
    ):
        self.db = db
        self.orders = OrderRepo(db)
        self.payments = PaymentRepo(db)
        self.gateway = gateway_client
        self.state_machine = state_machine
        self.lock_service = state_machine.lock_service
        self.secret = secret or GATEWAY_KEY_SECRET

    def create_intent(self, order_id: str, now: datetime | None = None) -> str:
        now = now or utcnow()

        with self.lock_service.order_lock(order_id):
            order = self._load(order_id)

            if order.status != OrderStatus.AWAITING_PAYMENT.value:
                raise AlreadyFinalized(order.id, OrderStatus(order.status))
            if as_utc(order.expires_at) <= now:
                raise OrderExpired(order.id)

            if order.gateway_intent_id:
                logger.info(f"Order {order.id}: reusing intent {order.gateway_intent_id}")
                return order.gateway_intent_id

            try:
                intent_id = self.gateway.create_order(
                    amount_minor=to_minor_units(order.total_amount),
                    currency=order.currency,
                    receipt=f"order_{order.id}",
                )
            except GatewayUnavailable as e:
                # order and reservations stay, the client retries intent creation
                logger.error(f"Order {order.id}: intent creation failed: {e}")
                e.order_id = order.id
                raise

            try:
                if self.orders.set_intent_once(order.id, intent_id) == 0:
                    self.orders.reload(order)
                    self.db.commit()
                    return order.gateway_intent_id

                self.payments.add_attempt(
                    PaymentAttemptModel(
                        order_id=order.id,
                        gateway_intent_id=intent_id,
                        outcome=PaymentOutcome.PENDING.value,
                    )
                )
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(f"Order {order.id}: created intent {intent_id} for {order.total_amount} {order.currency}")
        return intent_id

    def verify(
        self,
        order_id: str,
        gateway_intent_id: str,
        gateway_payment_reference: str,
        client_signature: str,
    ) -> Verification:
        with self.lock_service.order_lock(order_id):
            order = self.orders.get_order(order_id)
            if order is not None:
                self.orders.reload(order)

            if order is None or order.gateway_intent_id != gateway_intent_id:
                logger.warning(
                    f"[SECURITY] verify for unknown order/intent pair: "
                    f"order={order_id} intent={gateway_intent_id}"
                )
                raise PaymentMismatch(order_id, gateway_intent_id)

            if not signature_matches(gateway_intent_id, gateway_payment_reference, client_signature, self.secret):
                logger.warning(
                    f"[SECURITY] signature mismatch: order={order.id} intent={gateway_intent_id} "
                    f"payment={gateway_payment_reference}"
                )
                self._record_failed_attempt(order.id, gateway_intent_id, gateway_payment_reference)
                return Verification(VerificationResult.SIGNATURE_INVALID, order)

            if order.status != OrderStatus.AWAITING_PAYMENT.value:
                duplicate = order.gateway_payment_reference == gateway_payment_reference
                logger.info(
                    f"Order {order.id} already {order.status}, "
                    f"{'duplicate callback' if duplicate else 'payment'} {gateway_payment_reference} ignored"
                )
                return Verification(VerificationResult.ALREADY_FINALIZED, order, duplicate=duplicate)

            previous = OrderStatus(order.status)
            try:
                self._record_authorized_attempt(order.id, gateway_intent_id, gateway_payment_reference)
                self.orders.set_payment_reference_once(order.id, gateway_payment_reference)
                self.state_machine.apply(order, Trigger.PAYMENT_AUTHORIZED)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.state_machine.notify(order, previous)
        logger.info(f"Order {order.id}: payment {gateway_payment_reference} authorized")
        return Verification(VerificationResult.AUTHORIZED, order)

    def _load(self, order_id: str) -> OrderModel:
        order = self.orders.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        return self.orders.reload(order)

    def _record_failed_attempt(self, order_id: str, intent_id: str, payment_reference: str) -> None:
        try:
            self.payments.add_attempt(
                PaymentAttemptModel(
                    order_id=order_id,
                    gateway_intent_id=intent_id,
                    gateway_payment_reference=payment_reference,
                    verified_signature_valid=False,
                    outcome=PaymentOutcome.FAILED.value,
                )
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def _record_authorized_attempt(self, order_id: str, intent_id: str, payment_reference: str) -> None:
        if self.payments.count_authorized(order_id) > 0:
            raise AlreadyFinalized(order_id, OrderStatus.PAID)

        pending = self.payments.get_pending_attempt(order_id, intent_id)
        if pending and self.payments.mark_authorized(pending.id, payment_reference) == 1:
            return

        self.payments.add_attempt(
            PaymentAttemptModel(
                order_id=order_id,
                gateway_intent_id=intent_id,
                gateway_payment_reference=payment_reference,
                verified_signature_valid=True,
                outcome=PaymentOutcome.AUTHORIZED.value,
            )
        )
