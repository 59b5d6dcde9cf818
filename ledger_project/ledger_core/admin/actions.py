from django.contrib import admin, messages
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils.translation import gettext_lazy as _

from ledger_core.models import JournalEntry
from ledger_core.services.documents import issue_invoice
from ledger_core.services.posting import reverse_journal
from ledger_core.services.recurring import pause_profile, resume_profile

# ---------- Admin actions ----------


@admin.action(description=_("Post selected journal entries (make immutable)"))
# Bulk-post draft journal entries from Django admin list view
def post_journal_entries(
    modeladmin,  # `ModelAdmin` class for JournalEntry
    request,  # HTTP request object
    queryset,  # record what admin selected from list view
):
    """
    Post each selected draft JournalEntry in its own transaction so one
    unbalanced entry does not stop the batch.
    """
    candidates = queryset.filter(status="draft")
    total = candidates.count()
    success = 0

    for je in candidates:
        try:
            with transaction.atomic():
                # re-load & lock the row to avoid race conditions
                je_locked = JournalEntry.objects.select_for_update().get(pk=je.pk)
                je_locked.post(user=request.user)
            success += 1
        except ValidationError as exc:
            modeladmin.message_user(
                request,
                _("Could not post JournalEntry %(pk)s: %(err)s") % {"pk": je.pk, "err": exc},
                level=messages.ERROR,
            )

    # Final summary message
    modeladmin.message_user(
        request,
        _("Posted %(success)d of %(total)d journal entries.") % {
            "success": success,
            "total": total,
        },
        level=messages.SUCCESS if success == total else messages.WARNING,
    )


@admin.action(description=_("Reverse selected posted journal entries"))
def reverse_journal_entries(modeladmin, request, queryset):
    for je in queryset.filter(status="posted"):
        try:
            reversal = reverse_journal(je, user=request.user)
            modeladmin.message_user(request, f"Journal {je.pk} reversed by {reversal.pk}")
        except ValidationError as e:
            modeladmin.message_user(
                request, f"{je}: {e}", level=messages.ERROR)


""" Issue drafts through the service so they get posted to the ledger """


@admin.action(description="Issue selected draft invoices")
def issue_invoices(modeladmin, request, queryset):
    for inv in queryset.filter(status="draft"):
        try:
            outcome = issue_invoice(inv, user=request.user)
        except ValidationError as e:
            modeladmin.message_user(
                request, f"{inv}: {e}", level=messages.ERROR)
            continue
        if outcome.degraded:
            modeladmin.message_user(
                request,
                f"{inv} issued but its journal failed: {outcome.error}",
                level=messages.WARNING,
            )


@admin.action(description="Pause selected recurring profiles")
def pause_profiles(modeladmin, request, queryset):
    for profile in queryset.filter(is_active=True):
        pause_profile(profile, user=request.user)


@admin.action(description="Resume selected recurring profiles")
def resume_profiles(modeladmin, request, queryset):
    for profile in queryset.filter(is_active=False):
        try:
            resume_profile(profile, user=request.user)
        except ValidationError as e:
            modeladmin.message_user(
                request, f"{profile}: {e}", level=messages.ERROR)
