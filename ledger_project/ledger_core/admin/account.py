from django.contrib import admin

from ledger_core.models import Account

from .mixins import TenantAdminMixin


# Register `Account` model
@admin.register(Account)
class AccountAdmin(TenantAdminMixin, admin.ModelAdmin):
    # show key accounting fields
    list_display = (
        "id",
        "company",
        "code",
        "name",
        "ac_type",
        "normal_balance",
        "parent",
        "is_control_account",
        "is_active",
    )
    list_filter = ("company", "ac_type", "is_active")
    search_fields = ("code", "name")
    # accounts grouped by company, then sorted by code
    ordering = ("company", "code")
    readonly_fields = ("normal_balance",)  # derived from ac_type on save
    fieldsets = (
        (
            None,
            {
                "fields": (
                    "company",
                    "code",
                    "name",
                    "ac_type",
                    "normal_balance",
                    "parent",
                    "description",
                    "is_control_account",
                    "is_active",
                )
            },
        ),
    )

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "parent")

    # accounts that carry postings are never deleted
    def has_delete_permission(self, request, obj=None):
        if obj and obj.journal_lines.exists():
            return False
        return super().has_delete_permission(request, obj)
