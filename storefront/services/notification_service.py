# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Enqueues notifications through Celery.
    Delivery itself (email, push) belongs to the notification service.
    """

    @staticmethod
    def send_status_notification(owner_id: int, order_id: str, old_status: str, new_status: str):
        send_status_notification_task.delay(owner_id, order_id, old_status, new_status)


@celery_app.task(name="storefront.services.notification_service.send_status_notification_task")
def send_status_notification_task(owner_id: int, order_id: str, old_status: str, new_status: str):
    """
    Paid orders are announced to the admins for approval,
    every other change goes to the shopper.
    """
    if new_status == "paid":
        logger.info(f"[NOTIFICATION] admins: order {order_id} was paid and requires approval")

    logger.info(f"[NOTIFICATION] User {owner_id}: order {order_id} {old_status} -> {new_status}")

    return {"owner_id": owner_id, "order_id": order_id, "status": new_status}
