from app.celery_app import celery_app
from app.services.payout_service import PayoutService
from app.workers.subscription_tasks import _run


@celery_app.task(name="app.workers.payout_tasks.process_monthly_payouts")
def process_monthly_payouts():
    """Pay every creator for the previous calendar month."""
    return _run("process_monthly_payouts", PayoutService.process_monthly_payouts)
