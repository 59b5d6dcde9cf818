from decimal import Decimal
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .account import Account
from .entitymembership import Company


# ---------- Expense ----------
class Expense(models.Model):  # A purchase / bill the company incurred
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    vendor = models.CharField(max_length=200)
    category = models.CharField(max_length=100, blank=True, default="")

    # Expense account to debit (falls back to 5200 Operating Expenses)
    account = models.ForeignKey(
        Account,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="expenses",
    )
    date = models.DateField()
    # amount (net) + tax_amount = total
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    tax_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    total = models.DecimalField(max_digits=18, decimal_places=2, default=Decimal("0.00"))
    # Paid on the spot → credit Cash, otherwise → credit Accounts Payable
    is_paid = models.BooleanField(default=True)
    description = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "date"], name="exp_company_date_idx"),
            models.Index(fields=["company", "vendor"], name="exp_company_vendor_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gte=0) & models.Q(tax_amount__gte=0),
                name="exp_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"{self.vendor} {self.date} {self.total}"

    def clean(self):
        if self.account_id:
            if self.account.company_id != self.company_id:
                raise ValidationError("Expense account must belong to the same company.")
            if self.account.ac_type != "expense":
                raise ValidationError("Expense account must be an expense-type account.")

    def save(self, *args, **kwargs):
        self.total = (self.amount or Decimal("0.00")) + (self.tax_amount or Decimal("0.00"))
        self.full_clean()
        return super().save(*args, **kwargs)
