# storefront/tasks/reaper.py
from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.services.lock_service import LockService
from storefront.services.reaper import ReconciliationReaper
from storefront.services.state_machine import OrderStateMachine
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def build_reaper(db, lock_service: LockService | None = None) -> ReconciliationReaper:
    state_machine = OrderStateMachine(db, lock_service or LockService())
    return ReconciliationReaper(db, state_machine)


@celery_app.task(name="storefront.tasks.reaper.expire_orders_task")
def expire_orders_task():
    logger.info("Expire orders task started")

    db = SessionLocal()
    try:
        report = build_reaper(db).sweep()
        return {"expired": report.expired, "skipped": report.skipped, "failed": report.failed}
    finally:
        db.close()


@celery_app.task(name="storefront.tasks.reaper.repair_reservations_task")
def repair_reservations_task():
    logger.info("Reservation repair task started")

    db = SessionLocal()
    try:
        report = build_reaper(db).repair()
        return {"committed": report.committed, "released": report.released}
    finally:
        db.close()
