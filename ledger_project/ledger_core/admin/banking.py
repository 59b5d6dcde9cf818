from django.contrib import admin

from ledger_core.models import BankAccount, BankTransaction

from .mixins import TenantAdminMixin


# Register `BankAccount` model
@admin.register(BankAccount)
class BankAccountAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id", "company", "name", "account_number_masked", "currency_code",
        "ledger_account", "last_reconciled_at")
    list_filter = ("company",)

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "ledger_account")


# Register `BankTransaction` model
@admin.register(BankTransaction)
class BankTransactionAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id", "company", "bank_account", "date", "amount", "description",
        "is_reconciled", "matched_invoice", "matched_expense", "match_score")
    list_filter = ("company", "bank_account", "is_reconciled", "date")
    search_fields = ("description", "reference")
    # reconciliation fields are written by the matcher only
    readonly_fields = (
        "is_reconciled", "matched_invoice", "matched_expense", "match_score", "reconciled_at")

    # Fetch everything in one SQL join
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related(
            "company", "bank_account", "matched_invoice", "matched_expense")
