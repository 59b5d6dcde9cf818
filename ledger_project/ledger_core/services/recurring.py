import logging
from datetime import timedelta

from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..models import RecurringProfile
from .audit_helper import log_action
from .documents import create_invoice

logger = logging.getLogger(__name__)

INTERVAL_STEPS = {
    "weekly": relativedelta(weeks=1),
    "monthly": relativedelta(months=1),
    "quarterly": relativedelta(months=3),
    "yearly": relativedelta(years=1),
}


def advance_date(day, interval, anchor=None):
    """
    Next run date after `day`.

    With an `anchor` (the profile's start date) the result stays on the
    anchor's schedule, so Jan 31 runs become Feb 28 then Mar 31.
    """
    try:
        step = INTERVAL_STEPS[interval]
    except KeyError:
        raise ValidationError(f"Unknown interval: {interval}") from None
    if anchor is None:
        return day + step
    n = 1
    while anchor + step * n <= day:
        n += 1
    return anchor + step * n


def create_recurring_profile(company, *, client, interval, start_date, line_items,
                             due_days=7, notes="", user=None):
    profile = RecurringProfile.objects.create(
        company=company,
        client=client,
        interval=interval,
        start_date=start_date,
        next_run_date=start_date,
        line_items=line_items,
        due_days=due_days,
        notes=notes,
    )
    log_action(action="create", instance=profile, user=user,
               changes={"interval": interval, "start_date": str(start_date)})
    return profile


def pause_profile(profile, user=None):
    profile.is_active = False
    profile.save(update_fields=["is_active"])
    log_action(action="pause", instance=profile, user=user)
    return profile


def resume_profile(profile, user=None):
    profile.is_active = True
    profile.save(update_fields=["is_active"])
    log_action(action="resume", instance=profile, user=user)
    return profile


def _run_profile(profile_id, today, max_catchup):
    """
    Fire one profile until it is no longer due, one invoice per interval.

    Runs under a row lock so two workers cannot issue the same period.
    Returns the ids of the invoices created.
    """
    created = []
    with transaction.atomic():
        profile = (
            RecurringProfile.objects.select_for_update()
            .select_related("client", "company")
            .get(pk=profile_id)
        )
        while (
            profile.is_active
            and profile.next_run_date <= today
            and len(created) < max_catchup
        ):
            run_date = profile.next_run_date
            outcome = create_invoice(
                profile.company,
                client=profile.client,
                issue_date=run_date,
                due_date=run_date + timedelta(days=profile.due_days),
                items=profile.line_items,
                notes=f"Generated from recurring profile {profile.pk}",
                recurring_profile=profile,
            )
            created.append(outcome.document.pk)
            profile.next_run_date = advance_date(
                run_date, profile.interval, anchor=profile.start_date
            )
            profile.last_run_at = timezone.now()
            profile.save(update_fields=["next_run_date", "last_run_at"])
    return created


def process_due_profiles(today=None, company=None):
    """
    Issue invoices for every active profile whose next_run_date has come.

    Missed intervals are caught up one invoice each (capped by
    LEDGER_RECURRING_MAX_CATCHUP per call). A failing profile is logged
    and counted; the others still run.
    """
    today = today or timezone.localdate()
    max_catchup = getattr(settings, "LEDGER_RECURRING_MAX_CATCHUP", 12)

    due = RecurringProfile.objects.filter(is_active=True, next_run_date__lte=today)
    if company is not None:
        due = due.filter(company=company)

    results = {"processed": 0, "errors": 0, "invoices_created": []}
    for profile_id in due.order_by("next_run_date", "pk").values_list("pk", flat=True):
        try:
            created = _run_profile(profile_id, today, max_catchup)
        except Exception:
            # bad stored data must not stop the other profiles
            logger.exception("Recurring profile %s failed", profile_id)
            results["errors"] += 1
            continue
        if created:
            results["processed"] += 1
            results["invoices_created"].extend(created)

    logger.info(
        "Recurring run for %s: processed=%s errors=%s invoices=%s",
        today, results["processed"], results["errors"], len(results["invoices_created"]),
    )
    return results
