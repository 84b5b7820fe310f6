from celery import Celery
from celery.schedules import crontab
from app.config import settings
import logging


celery_app = Celery(
    "xclusive_tasks",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.workers.subscription_tasks", "app.workers.payout_tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    result_expires=3600,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "app.workers.subscription_tasks.*": {"queue": "scheduler"},
        "app.workers.payout_tasks.*": {"queue": "scheduler"},
    },
    worker_max_tasks_per_child=100,
    broker_transport_options={"visibility_timeout": 3600},
    beat_schedule={
        "apply-due-tier-changes": {
            "task": "app.workers.subscription_tasks.apply_due_tier_changes",
            "schedule": float(settings.scheduler_interval_seconds),
        },
        "renew-due-subscriptions": {
            "task": "app.workers.subscription_tasks.renew_due_subscriptions",
            "schedule": float(settings.scheduler_interval_seconds),
        },
        "expire-lapsed-subscriptions": {
            "task": "app.workers.subscription_tasks.expire_lapsed_subscriptions",
            "schedule": float(settings.scheduler_interval_seconds),
        },
        "publish-scheduled-posts": {
            "task": "app.workers.subscription_tasks.publish_scheduled_posts",
            "schedule": float(settings.scheduler_interval_seconds),
        },
        "process-monthly-payouts": {
            "task": "app.workers.payout_tasks.process_monthly_payouts",
            "schedule": crontab(minute=0, hour=settings.payout_hour, day_of_month=settings.payout_day_of_month),
        },
    },
)
celery_app.conf.broker_connection_retry_on_startup = True

# Logging setup
logging.basicConfig(level=logging.INFO, format=settings.log_format)
logger = logging.getLogger(__name__)

# celery -A app.celery_app worker -B -Q scheduler --loglevel=info
