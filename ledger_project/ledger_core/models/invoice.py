from decimal import ROUND_HALF_UP, Decimal
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .client import Client
from .entitymembership import Company

INV_STATUS_CHOICES = [
    ("draft", "Draft"),
    ("sent", "Sent"),
    ("partial", "Partially paid"),
    ("paid", "Paid"),
    ("void", "Void"),
]

# Statuses that count as issued business (VAT, fraud, health)
ISSUED_STATUSES = ("sent", "partial", "paid")
# Statuses a bank receipt can still be matched against
OPEN_STATUSES = ("sent", "partial")

CENT = Decimal("0.01")


class Invoice(models.Model):  # Represents a customer invoice

    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    client = models.ForeignKey(
        Client,
        null=True,
        blank=True,
        # prevent deleting client who has an invoice
        on_delete=models.PROTECT,
        related_name="invoices",
    )

    # human-readable (e.g. "INV-2025-001")
    invoice_number = models.CharField(max_length=64)
    issue_date = models.DateField()
    due_date = models.DateField(null=True, blank=True)

    status = models.CharField(
        max_length=10, choices=INV_STATUS_CHOICES, default="draft"
    )
    """ Workflow:
        draft = not yet finalized.
        sent = issued, nothing received.
        partial = some payment received.
        paid = fully settled.
        void = canceled. """

    # Amounts: subtotal (net) + tax_amount = total
    subtotal = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    tax_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    total = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    amount_paid = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    notes = models.TextField(blank=True, default="")

    # Set when the recurring scheduler generated this invoice
    recurring_profile = models.ForeignKey(
        "RecurringProfile",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="invoices",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "issue_date"], name="inv_company_issue_date_idx"),
            models.Index(fields=["company", "client"], name="inv_company_client_idx"),
            models.Index(fields=["company", "status"], name="inv_company_status_idx"),
        ]
        constraints = [
            # Within one company, each invoice number must be unique
            models.UniqueConstraint(
                fields=["company", "invoice_number"],
                name="uq_invoice_company_number"
            ),
            models.CheckConstraint(
                condition=models.Q(tax_amount__gte=0) & models.Q(amount_paid__gte=0),
                name="inv_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"Inv {self.invoice_number or self.pk}"

    @property
    def outstanding_amount(self):
        return max(self.total - self.amount_paid, Decimal("0.00"))

    @property
    def client_name(self):
        return self.client.name if self.client_id else ""

    def recalc_totals(self):
        """Recompute subtotal / tax / total from the invoice items."""
        if not self.pk:
            return
        items = list(self.items.all())
        self.subtotal = sum((i.line_total for i in items), Decimal("0.00"))
        self.tax_amount = sum((i.tax_amount for i in items), Decimal("0.00"))
        self.total = self.subtotal + self.tax_amount

    def clean(self):
        if self.client_id and self.client.company_id != self.company_id:
            raise ValidationError("Client must belong to the same company.")

        if abs((self.subtotal + self.tax_amount) - self.total) > CENT:
            raise ValidationError(
                f"Invoice total {self.total} must equal subtotal + tax "
                f"({self.subtotal} + {self.tax_amount})"
            )
        if self.amount_paid > self.total:
            raise ValidationError("Amount paid cannot exceed invoice total")
        if self.due_date and self.due_date < self.issue_date:
            raise ValidationError("Due date cannot be before the issue date")

        # Paid invoices are immutable
        if self.pk and self.status == "paid":
            orig = Invoice.objects.filter(pk=self.pk).first()
            if orig and orig.status == "paid":
                changed = [
                    f for f in ("invoice_number", "total", "company_id", "issue_date")
                    if getattr(orig, f) != getattr(self, f)
                ]
                if changed:
                    raise ValidationError(
                        f"Cannot modify {changed} on a paid invoice."
                    )

    def save(self, *args, **kwargs):
        self.full_clean()  # will trigger clean()
        return super().save(*args, **kwargs)

    def transition_to(self, new_status):
        # Current state vs. allowed next states
        allowed = {
            "draft": ["sent", "void"],
            "sent": ["partial", "paid", "void"],
            "partial": ["paid"],
            "paid": [],
            "void": [],
        }
        if new_status not in allowed.get(self.status, []):
            raise ValidationError(
                f"Cannot go from {self.status} to {new_status}")
        self.status = new_status
        self.save(update_fields=["status"])

    def apply_payment(self, amount):
        """Record a receipt and move the invoice to partial / paid.

        Only the outstanding part is applied; returns the applied amount.
        """
        if amount <= 0:
            raise ValidationError("Applied amount must be positive")
        if self.status not in OPEN_STATUSES:
            raise ValidationError(f"Cannot receive payment on a {self.status} invoice")
        applied = min(Decimal(amount), self.outstanding_amount)
        self.amount_paid += applied
        self.status = "paid" if self.outstanding_amount <= CENT else "partial"
        self.save(update_fields=["amount_paid", "status"])
        return applied


class InvoiceItem(models.Model):  # One product/service line on the invoice

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    invoice = models.ForeignKey(
        Invoice, on_delete=models.CASCADE, related_name="items")
    description = models.CharField(max_length=400)

    # quantity × unit_price = line_total (net); tax is on top
    quantity = models.DecimalField(
        max_digits=14, decimal_places=4, default=Decimal("1")
    )
    unit_price = models.DecimalField(
        max_digits=18, decimal_places=4, default=Decimal("0.00")
    )
    tax_rate = models.DecimalField(  # percent, e.g. 15.00
        max_digits=5, decimal_places=2, default=Decimal("15.00")
    )
    line_total = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )
    tax_amount = models.DecimalField(
        max_digits=18, decimal_places=2, default=Decimal("0.00")
    )

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "invoice"], name="invitem_company_invoice_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gte=0) &
                models.Q(unit_price__gte=0) &
                models.Q(tax_rate__gte=0),
                name="invitem_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"{self.description} x{self.quantity} @ {self.unit_price}"

    def compute_amounts(self):
        net = (self.quantity or Decimal("0")) * (self.unit_price or Decimal("0"))
        self.line_total = net.quantize(CENT, rounding=ROUND_HALF_UP)
        self.tax_amount = (
            self.line_total * (self.tax_rate or Decimal("0")) / Decimal("100")
        ).quantize(CENT, rounding=ROUND_HALF_UP)

    def clean(self):
        if self.invoice_id and self.invoice.company_id != self.company_id:
            raise ValidationError("InvoiceItem.company must match Invoice.company")

    def save(self, *args, **kwargs):
        # copy company from the parent invoice if not given
        if not self.company_id and self.invoice_id:
            self.company_id = self.invoice.company_id
        self.compute_amounts()
        self.full_clean()
        return super().save(*args, **kwargs)
