from django.conf import settings  # To access global project settings
from django.db import models
from ..managers import TenantManager
from .entitymembership import Company


# ---------- Audit / Event log ----------
class AuditLog(models.Model):
    # Nullable because some actions are system-wide
    company = models.ForeignKey(
        Company,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    # Nullable when the action was automated (scheduler, Celery task)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    action = models.CharField(
        max_length=50
    )  # e.g. create, post, posting_failed, reconcile
    object_type = models.CharField(
        max_length=100
    )  # (e.g., "Invoice", "Expense", "JournalEntry")
    object_id = models.CharField(max_length=100)
    # Free-form details, in JSON format
    changes = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "action"], name="audit_company_action_idx"),
            models.Index(fields=["company", "created_at"], name="audit_company_created_idx"),
        ]

    def __str__(self):
        return f"[{self.created_at:%Y-%m-%d %H:%M}] {self.user} {self.action} {self.object_type}({self.object_id})"

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)
