from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .client import Client
from .entitymembership import Company

INTERVAL_CHOICES = [
    ("weekly", "Weekly"),
    ("monthly", "Monthly"),
    ("quarterly", "Quarterly"),
    ("yearly", "Yearly"),
]


# ---------- Recurring billing ----------
class RecurringProfile(models.Model):
    """
    Template for an invoice that is issued on a schedule.
    next_run_date only ever moves forward, one interval per issued invoice.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    client = models.ForeignKey(
        Client, on_delete=models.PROTECT, related_name="recurring_profiles"
    )
    interval = models.CharField(max_length=10, choices=INTERVAL_CHOICES, default="monthly")
    start_date = models.DateField()
    next_run_date = models.DateField()
    # [{"description": "...", "quantity": "1", "unit_price": "100.00", "tax_rate": "15"}]
    line_items = models.JSONField(default=list)
    is_active = models.BooleanField(default=True)
    # new invoices are due this many days after issue
    due_days = models.PositiveIntegerField(default=7)
    last_run_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "is_active", "next_run_date"], name="recurring_company_due_idx"),
        ]

    def __str__(self):
        return f"{self.client} every {self.interval} (next {self.next_run_date})"

    def clean(self):
        if self.client_id and self.client.company_id != self.company_id:
            raise ValidationError("Client must belong to the same company.")

        if self.next_run_date and self.start_date and self.next_run_date < self.start_date:
            raise ValidationError("next_run_date cannot be before start_date")

        if not isinstance(self.line_items, list) or not self.line_items:
            raise ValidationError("A recurring profile needs at least one line item")
        for item in self.line_items:
            if not isinstance(item, dict) or "unit_price" not in item:
                raise ValidationError(
                    "Each line item needs at least a unit_price"
                )
            for key in ("unit_price", "quantity", "tax_rate"):
                if key not in item:
                    continue
                try:
                    value = Decimal(str(item[key]))
                except InvalidOperation:
                    raise ValidationError(
                        f"Line item {key} must be a number, got {item[key]!r}"
                    ) from None
                if not value.is_finite() or value < 0:
                    raise ValidationError(f"Line item {key} must be a non-negative number")

        # The schedule never moves backwards
        if self.pk:
            orig = RecurringProfile.objects.filter(pk=self.pk).first()
            if orig and self.next_run_date < orig.next_run_date:
                raise ValidationError(
                    "next_run_date cannot move backwards "
                    f"({orig.next_run_date} → {self.next_run_date})"
                )

    def save(self, *args, **kwargs):
        if not self.next_run_date:
            self.next_run_date = self.start_date
        self.full_clean()
        return super().save(*args, **kwargs)
