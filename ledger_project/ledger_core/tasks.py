import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def process_recurring_profiles(today=None):
    # import services lazily to avoid circular imports at module import time
    from datetime import date

    from .services.recurring import process_due_profiles

    run_date = date.fromisoformat(today) if today else None
    return process_due_profiles(today=run_date)


@shared_task
def auto_reconcile_company(company_id, threshold=None):
    from .models import Company
    from .services.reconciliation import auto_reconcile_transactions

    company = Company.objects.get(pk=company_id)
    result = auto_reconcile_transactions(company, threshold=threshold)
    return {
        "matched": len(result.matched),
        "suggested": len(result.suggested),
        "unmatched": len(result.unmatched),
    }


@shared_task
def repost_missing_journals_task(company_id):
    from .models import Company
    from .services.documents import repost_missing_journals

    company = Company.objects.get(pk=company_id)
    summary = repost_missing_journals(company)
    if summary["failed"]:
        logger.warning(
            "Company %s still has %s documents without journals",
            company_id, summary["failed"],
        )
    return summary
