import asyncio
import logging

from app.celery_app import celery_app
from app.database import SessionLocal, engine
from app.services.post_service import PostService
from app.services.subscription_service import SubscriptionService
from app.utils.time_utils import utcnow

logger = logging.getLogger(__name__)


async def _run_pass(name: str, job) -> int:
    """Run one scheduler pass in its own session and event loop."""
    try:
        async with SessionLocal() as db:
            try:
                count = await job(db, utcnow())
            except Exception:
                await db.rollback()
                raise
        logger.info(f"{name}: {count} record(s) processed")
        return count
    finally:
        # Pooled connections are bound to the loop that asyncio.run is about to close
        await engine.dispose()


def _run(name: str, job) -> dict:
    try:
        count = asyncio.run(_run_pass(name, job))
        return {"status": "success", "task": name, "processed": count}
    except Exception as exc:
        logger.error(f"{name} failed: {exc}", exc_info=True)
        return {"status": "error", "task": name, "error": str(exc)}


@celery_app.task(name="app.workers.subscription_tasks.apply_due_tier_changes")
def apply_due_tier_changes():
    """Apply pending downgrades whose scheduled date has passed."""
    return _run("apply_due_tier_changes", SubscriptionService.apply_due_changes)


@celery_app.task(name="app.workers.subscription_tasks.expire_lapsed_subscriptions")
def expire_lapsed_subscriptions():
    return _run("expire_lapsed_subscriptions", SubscriptionService.expire_lapsed)


@celery_app.task(name="app.workers.subscription_tasks.publish_scheduled_posts")
def publish_scheduled_posts():
    return _run("publish_scheduled_posts", PostService.publish_scheduled)


@celery_app.task(name="app.workers.subscription_tasks.renew_due_subscriptions")
def renew_due_subscriptions():
    """Roll free tiers into their next period; paid tiers wait for the renewal payment."""
    return _run("renew_due_subscriptions", SubscriptionService.renew_due)
