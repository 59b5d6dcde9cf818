from django.contrib import admin

from ledger_core.models import InvoiceItem, JournalLine

from .forms import InvoiceItemForm, JournalLineInlineForm
from .mixins import TenantAdminMixin

# ---------- Helpful inline admin classes ----------


class JournalLineInline(
    TenantAdminMixin,
    admin.TabularInline
    # shows related objects in table format (rows under parent form)
):
    """Show JournalLine rows on JournalEntry page"""

    model = JournalLine
    form = JournalLineInlineForm
    extra = 0  # don't show "empty" rows by default
    fields = ("account", "description", "debit", "credit", "is_posted")
    readonly_fields = ("is_posted",)
    show_change_link = True
    ordering = ("id",)  # lines appear in creation order

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("account")

    def get_readonly_fields(self, request, obj=None):
        # Once journal is `posted`, all its lines become completely locked
        if obj and obj.status == "posted":
            return list(self.fields)
        return self.readonly_fields

    # If parent JE is posted, don't allow adding new lines
    def has_add_permission(self, request, obj=None):
        if obj and getattr(obj, "status", None) == "posted":
            return False
        return super().has_add_permission(request, obj)

    # If parent JE is posted, disallow deleting lines
    def has_delete_permission(self, request, obj=None):
        if obj and getattr(obj, "status", None) == "posted":
            return False
        return super().has_delete_permission(request, obj)


class InvoiceItemInline(TenantAdminMixin, admin.TabularInline):
    """Shows invoice items under an Invoice page"""

    model = InvoiceItem
    form = InvoiceItemForm
    extra = 0
    fields = ("description", "quantity", "unit_price", "tax_rate", "line_total", "tax_amount")
    # computed on save
    readonly_fields = ("line_total", "tax_amount")

    def has_add_permission(self, request, obj=None):
        # issued invoices are already on the ledger
        if obj and obj.status != "draft":
            return False
        return super().has_add_permission(request, obj)

    def has_change_permission(self, request, obj=None):
        if obj and obj.status != "draft":
            return False
        return super().has_change_permission(request, obj)

    def has_delete_permission(self, request, obj=None):
        if obj and obj.status != "draft":
            return False
        return super().has_delete_permission(request, obj)
