from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .account import Account
from .entitymembership import Company
from .expense import Expense
from .invoice import Invoice


# ---------- Banking ----------


class BankAccount(models.Model):  # Represents bank account company maintains
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    name = models.CharField(
        max_length=200
    )  # e.g. "Cheque Account", "Savings Account"
    # Partial account number for display/security
    account_number_masked = models.CharField(
        max_length=50, null=True, blank=True)
    currency_code = models.CharField(max_length=10, default="ZAR")
    # GL account this bank account posts to (defaults to 1110 Cash and Bank)
    ledger_account = models.ForeignKey(
        Account,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="bank_accounts",
    )
    last_reconciled_at = models.DateTimeField(null=True, blank=True)

    objects = TenantManager()

    class Meta:
        # A company cannot have two accounts with the same name
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_bankaccount_name"
            ),
        ]

    def __str__(self):
        if self.account_number_masked:
            return f"{self.name} ({self.account_number_masked})"
        return self.name

    def clean(self):
        if self.ledger_account_id and self.ledger_account.company_id != self.company_id:
            raise ValidationError("Ledger account must belong to the same company.")

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)


class BankTransaction(
    models.Model
):  # Represents single inflow/outflow from a bank feed
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    bank_account = models.ForeignKey(
        BankAccount,
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="transactions",
    )
    date = models.DateField()  # when it cleared
    # amount: positive = inflow (deposit), negative = outflow (payment)
    amount = models.DecimalField(max_digits=18, decimal_places=2)
    description = models.TextField(blank=True, default="")
    reference = models.CharField(max_length=200, blank=True, default="")
    category = models.CharField(max_length=100, blank=True, default="")

    # Reconciliation state
    is_reconciled = models.BooleanField(default=False)
    matched_invoice = models.ForeignKey(
        Invoice,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="bank_transactions",
    )
    matched_expense = models.ForeignKey(
        Expense,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="bank_transactions",
    )
    match_score = models.DecimalField(
        max_digits=5, decimal_places=4, null=True, blank=True
    )
    reconciled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "is_reconciled"], name="bt_company_reconciled_idx"),
            models.Index(fields=["company", "date"], name="bt_company_date_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(amount=0), name="bt_amount_nonzero"
            ),
            # a transaction settles an invoice or an expense, never both
            models.CheckConstraint(
                condition=~(
                    models.Q(matched_invoice__isnull=False) &
                    models.Q(matched_expense__isnull=False)
                ),
                name="bt_single_match",
            ),
        ]

    def __str__(self):
        return f"{self.date} {self.amount} {self.description[:40]}"

    @property
    def is_inflow(self):
        return self.amount > 0

    def clean(self):
        # Tenancy check for every linked row
        for rel in ("bank_account", "matched_invoice", "matched_expense"):
            obj = getattr(self, rel)
            if obj is not None and obj.company_id != self.company_id:
                raise ValidationError(
                    f"{rel.replace('_', ' ').capitalize()} must belong to the same company."
                )
        # inflows settle invoices, outflows settle expenses
        if self.matched_invoice_id and self.amount is not None and self.amount < 0:
            raise ValidationError("Only inflows can be matched to invoices.")
        if self.matched_expense_id and self.amount is not None and self.amount > 0:
            raise ValidationError("Only outflows can be matched to expenses.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
