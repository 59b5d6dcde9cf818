from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .entitymembership import Company

# Choice Lists
AC_TYPES = [
    # Used in Account model to classify general ledger accounts
    ("asset", "Asset"),
    ("liability", "Liability"),
    ("equity", "Equity"),
    ("revenue", "Revenue"),
    ("expense", "Expense"),
]

# Define whether the account normally increases
# on the debit side or credit side
NORMAL_BALANCE = [
    ("debit", "Debit"),
    ("credit", "Credit"),
]

# Assets/Expenses → Debit, Liabilities/Equity/Revenue → Credit.
NORMAL_BALANCE_BY_TYPE = {
    "asset": "debit",
    "expense": "debit",
    "liability": "credit",
    "equity": "credit",
    "revenue": "credit",
}


class Account(models.Model):
    """
    Actual ledger account entry in Chart of Accounts.
    - code should be unique per company
    - ac_type: determines reporting -BS vs P&L
    - normal_balance: used to interpret sign when building reports
    - parent: optional, same company, never forms a cycle
    """

    company = models.ForeignKey(  # Each account belongs to one company
        Company,  # All reports must filter by company_id to prevent data leaks
        on_delete=models.CASCADE,
    )
    # Every account has a code
    # which lets you sort/group accounts consistently in reports.
    code = models.CharField(max_length=32)
    name = models.CharField(
        max_length=200
    )  # Human-readable name → "Cash and Bank", "Accounts Payable".

    ac_type = models.CharField(
        max_length=10,
        choices=AC_TYPES,
        # This tells system whether the account
        # goes on the Balance Sheet or P&L
    )

    # Filled in from ac_type on save when left blank
    normal_balance = models.CharField(
        max_length=6,
        choices=NORMAL_BALANCE,
        blank=True,
    )
    # Hierarchy: 1000 Assets → 1100 Current Assets → 1110 Cash and Bank
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,  # you can’t delete a parent if children exist
        related_name="children",
    )
    description = models.TextField(blank=True, default="")

    # “soft deactivate” accounts (hide in UI, stop new postings)
    # without deleting history
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    is_control_account = models.BooleanField(
        default=False
    )  # marker for accounts that must reconcile with subledgers (AR, AP)

    objects = TenantManager()

    class Meta:
        ordering = ["company", "code"]
        indexes = [  # Optimize queries
            # For reports grouped by ac_type
            models.Index(fields=["company", "ac_type"], name="account_company_type_idx"),
            models.Index(fields=["company", "parent"], name="account_company_parent_idx"),
        ]

        """ Each company defines its own chart of accounts.
               Codes repeat across companies but must be unique within one. """
        constraints = [
            models.UniqueConstraint(
                fields=["company", "code"], name="uq_company_account_code"
            )
        ]

    def __str__(self):
        return f"{self.code} – {self.name}"

    @property
    def parent_code(self):
        return self.parent.code if self.parent_id else None

    @property
    def is_debit_normal(self):
        return (self.normal_balance or NORMAL_BALANCE_BY_TYPE.get(self.ac_type)) == "debit"

    def ancestors(self):
        """Walk the parent chain upwards, nearest parent first.

        Raises ValidationError if the chain loops back on itself.
        """
        chain = []
        seen = {self.pk} if self.pk else set()
        node = self.parent
        while node is not None:
            if node.pk in seen:
                raise ValidationError(
                    f"Account hierarchy cycle detected at {node.code}"
                )
            seen.add(node.pk)
            chain.append(node)
            node = node.parent
        return chain

    def clean(self):
        """Enforce company consistency (multi-tenancy)"""
        if self.parent_id:
            if self.parent.company_id != self.company_id:
                raise ValidationError(
                    "Parent & child accounts must belong to the same company"
                )
            if self.pk and self.parent_id == self.pk:
                raise ValidationError("An account cannot be its own parent")
            # loops further up the chain
            self.ancestors()

        if self.normal_balance and self.ac_type:
            expected = NORMAL_BALANCE_BY_TYPE[self.ac_type]
            if self.normal_balance != expected:
                raise ValidationError(
                    f"{self.get_ac_type_display()} accounts are {expected}-normal"
                )

    def save(self, *args, **kwargs):
        """Enforce business immutability
        (can’t disable accounts used in journal lines)"""
        if not self.normal_balance and self.ac_type:
            self.normal_balance = NORMAL_BALANCE_BY_TYPE.get(self.ac_type, "debit")
        self.full_clean()

        if self.pk:
            # Fetch the previous version of account from DB
            old = Account.objects.filter(pk=self.pk).first()

            # If account was active before, but now being set to inactive
            if old and old.is_active and not self.is_active:
                from .journal import JournalLine

                if JournalLine.objects.filter(account=self).exists():
                    raise ValidationError(
                        "Cannot disable an account that is used in journal lines."
                    )
        return super().save(*args, **kwargs)
