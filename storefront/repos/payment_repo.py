# storefront/repos/payment_repo.py
from datetime import datetime, timezone

from sqlalchemy import select, update, func
from sqlalchemy.orm import Session

from storefront.data.models.payment_attempt import PaymentAttemptModel
from storefront.domain.states import PaymentOutcome


class PaymentRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_attempt(self, attempt: PaymentAttemptModel) -> PaymentAttemptModel:
        self.db.add(attempt)
        self.db.flush()
        return attempt

    def get_pending_attempt(self, order_id: str, intent_id: str) -> PaymentAttemptModel | None:
        return self.db.execute(
            select(PaymentAttemptModel)
            .where(
                PaymentAttemptModel.order_id == order_id,
                PaymentAttemptModel.gateway_intent_id == intent_id,
                PaymentAttemptModel.outcome == PaymentOutcome.PENDING.value,
            )
            .order_by(PaymentAttemptModel.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()

    def list_attempts(self, order_id: str) -> list[PaymentAttemptModel]:
        return list(
            self.db.execute(
                select(PaymentAttemptModel)
                .where(PaymentAttemptModel.order_id == order_id)
                .order_by(PaymentAttemptModel.created_at)
            ).scalars()
        )

    def count_authorized(self, order_id: str) -> int:
        return self.db.execute(
            select(func.count())
            .select_from(PaymentAttemptModel)
            .where(
                PaymentAttemptModel.order_id == order_id,
                PaymentAttemptModel.outcome == PaymentOutcome.AUTHORIZED.value,
            )
        ).scalar_one()

    def mark_authorized(self, attempt_id: str, payment_reference: str) -> int:
        res = self.db.execute(
            update(PaymentAttemptModel)
            .where(
                PaymentAttemptModel.id == attempt_id,
                PaymentAttemptModel.outcome == PaymentOutcome.PENDING.value,
            )
            .values(
                gateway_payment_reference=payment_reference,
                verified_signature_valid=True,
                outcome=PaymentOutcome.AUTHORIZED.value,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        return res.rowcount
