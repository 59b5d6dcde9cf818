from decimal import Decimal

from django.contrib import admin
from django.core.exceptions import PermissionDenied
from django.db.models import Prefetch
from django.utils.html import format_html

from ledger_core.models import JournalEntry, JournalLine

from .actions import post_journal_entries, reverse_journal_entries
from .inlines import JournalLineInline
from .mixins import TenantAdminMixin

# fields frozen once a journal is posted
POSTED_JOURNAL_FIELDS = [
    "company", "date", "source", "source_id", "reference", "memo",
    "status", "reverses", "posting_fingerprint",
]


# Register `JournalEntry` model
@admin.register(JournalEntry)
class JournalEntryAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "company",
        "date",
        "source",
        "source_id",
        "reference",
        "status",
        "posted_at",
        "created_by",
        "balanced",
    )
    list_filter = ("company", "status", "source", "date")
    search_fields = ("reference", "memo", "id")
    readonly_fields = (
        "posted_at",
        "created_by",
        "posting_fingerprint",
    )  # users can see but not edit these
    inlines = [JournalLineInline]
    actions = [post_journal_entries, reverse_journal_entries]

    # Fetch everything in one SQL join
    def get_queryset(self, request):
        """For each JournalEntry, prefetch its lines and their accounts."""
        qs = super().get_queryset(request)
        journalline_qs = JournalLine.objects.select_related("account")
        return qs.select_related("company", "created_by").prefetch_related(
            Prefetch("lines", queryset=journalline_qs, to_attr="prefetched_lines")
        )

    """ Computed column for balance check """
    def balanced(self, obj):
        d, c = obj.compute_totals()
        return format_html(
            "<b>{}</b> / <small>{}</small>",
            d or Decimal("0.00"),
            c or Decimal("0.00")
        )

    balanced.short_description = "Debits / Credits"

    """ Make entries immutable once posted """
    def get_readonly_fields(self, request, obj=None):
        r = list(self.readonly_fields)
        if obj and obj.status == "posted":
            r += POSTED_JOURNAL_FIELDS
        return r

    """ Prevent deletion after posting """
    def has_delete_permission(self, request, obj=None):
        if obj and obj.status == "posted":
            return False
        return super().has_delete_permission(request, obj)

    """ Posted journals are corrected by reversal, never edited """
    def has_change_permission(self, request, obj=None):
        if obj and obj.status == "posted":
            return False
        return super().has_change_permission(request, obj)


# Register `JournalLine` model
@admin.register(JournalLine)
class JournalLineAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "company",
        "journal",
        "account",
        "debit",
        "credit",
        "is_posted",
    )
    list_filter = ("company", "account")
    search_fields = ("description",)
    readonly_fields = ("is_posted",)

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "journal", "account")

    # if this JournalLine belongs to a posted JE, make all model fields readonly
    def get_readonly_fields(self, request, obj=None):
        if obj and obj.journal.status == "posted":
            return [f.name for f in self.model._meta.concrete_fields]
        return super().get_readonly_fields(request, obj)

    # lines are created only via the JournalEntry inline
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        if obj and obj.journal.status == "posted":
            return False
        return super().has_change_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        if obj and obj.journal.status == "posted":
            return False
        return super().has_delete_permission(request, obj)

    # prevent saving/POST requests for posted journal lines (GET still shows the row)
    def change_view(self, request, object_id, form_url='', extra_context=None):
        obj = self.get_object(request, object_id)
        if obj and obj.journal.status == "posted" and request.method == "POST":
            raise PermissionDenied("Cannot edit a JournalLine belonging to a posted JournalEntry.")
        return super().change_view(request, object_id, form_url, extra_context=extra_context)
