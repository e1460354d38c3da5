# storefront/celery_worker.py
from celery import Celery

from storefront.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, REAPER_INTERVAL_SECONDS

celery_app = Celery(
    "storefront",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# explicit task imports so the worker registers them
celery_app.conf.imports = (
    "storefront.tasks.reaper",
    "storefront.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "expire-unpaid-orders": {
        "task": "storefront.tasks.reaper.expire_orders_task",
        "schedule": REAPER_INTERVAL_SECONDS,
    },
    "repair-reservations": {
        "task": "storefront.tasks.reaper.repair_reservations_task",
        "schedule": REAPER_INTERVAL_SECONDS * 10,
    },
}

celery_app.conf.timezone = "UTC"
