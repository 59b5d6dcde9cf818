from django.contrib import admin

from ledger_core.models import Client, Expense, Invoice, InvoiceItem

from .actions import issue_invoices
from .inlines import InvoiceItemInline
from .mixins import TenantAdminMixin


# Register `Invoice` model
@admin.register(Invoice)
class InvoiceAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "company",
        "invoice_number",
        "client",
        "issue_date",
        "due_date",
        "status",
        "total",
        "amount_paid",
    )
    list_filter = ("company", "status", "issue_date")
    actions = [issue_invoices]
    search_fields = ("invoice_number", "client__name")
    readonly_fields = ("subtotal", "tax_amount", "total", "amount_paid", "recurring_profile")
    inlines = [InvoiceItemInline]

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "client").prefetch_related("items")

    # keep header totals in step with the items edited inline
    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        invoice = form.instance
        if invoice.status == "draft":
            invoice.recalc_totals()
            invoice.save(update_fields=["subtotal", "tax_amount", "total"])

    """ Issued invoices are on the ledger: only drafts stay editable """
    def get_readonly_fields(self, request, obj=None):
        if obj and obj.status != "draft":
            return [f.name for f in self.model._meta.fields]
        return super().get_readonly_fields(request, obj)

    def has_delete_permission(self, request, obj=None):
        if obj and obj.status != "draft":
            return False  # removes "Delete" option for issued invoices
        return super().has_delete_permission(request, obj)


# Register `InvoiceItem` model
@admin.register(InvoiceItem)
class InvoiceItemAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id", "company", "invoice", "description", "quantity", "unit_price", "line_total")
    list_filter = ("company",)
    search_fields = ("description",)

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "invoice")

    # items are edited on their invoice
    def has_add_permission(self, request):
        return False


# Register `Client` model
@admin.register(Client)
class ClientAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id",
        "company",
        "name",
        "contact_email",
        "payment_terms_days",
    )
    search_fields = ("name", "contact_email")
    list_filter = ("company",)

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company")


# Register `Expense` model
@admin.register(Expense)
class ExpenseAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id", "company", "date", "vendor", "category", "amount", "tax_amount", "total", "is_paid")
    list_filter = ("company", "is_paid", "date")
    search_fields = ("vendor", "category", "description")
    readonly_fields = ("total",)

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "account")
