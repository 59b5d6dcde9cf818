from django.contrib import admin

from ledger_core.models import RecurringProfile

from .actions import pause_profiles, resume_profiles
from .mixins import TenantAdminMixin


# Register `RecurringProfile` model
@admin.register(RecurringProfile)
class RecurringProfileAdmin(TenantAdminMixin, admin.ModelAdmin):
    list_display = (
        "id", "company", "client", "interval", "start_date", "next_run_date",
        "is_active", "last_run_at")
    list_filter = ("company", "interval", "is_active")
    search_fields = ("client__name", "notes")
    # the scheduler owns the run dates
    readonly_fields = ("next_run_date", "last_run_at")
    actions = [pause_profiles, resume_profiles]

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related("company", "client")
