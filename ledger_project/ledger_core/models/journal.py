import hashlib
import json
from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone
from ..exceptions import AlreadyPostedDifferentPayload, UnbalancedJournalError
from ..managers import TenantManager
from .account import Account
from .entitymembership import Company

JOURNAL_STATUS = [
    ("draft", "Draft"),  # lines still being written
    ("posted", "Posted"),  # finalized, immutable
]

# Business event that produced the journal
JOURNAL_SOURCES = [
    ("invoice", "Invoice"),
    ("expense", "Expense"),
    ("payment", "Payment"),  # bank receipt against an invoice
    ("settlement", "Expense settlement"),  # bank payment of an unpaid expense
    ("manual", "Manual"),
    ("reversal", "Reversal"),
]

CENT = Decimal("0.01")


def balance_tolerance():
    return Decimal(str(getattr(settings, "LEDGER_BALANCE_TOLERANCE", "0.01")))


def posting_payload(company_id, date, lines):
    """Deterministic representation of what matters for posting

    `lines` is an iterable of (account_id, debit, credit).
    Lines are sorted and amounts quantized so the same accounting content
    always produces the same JSON string, whether it comes from a request
    or from rows already stored in the database.
    """
    rows = sorted(
        (
            int(account_id),
            str(Decimal(debit or 0).quantize(CENT)),
            str(Decimal(credit or 0).quantize(CENT)),
        )
        for account_id, debit, credit in lines
    )
    payload = {
        "company": company_id,
        "date": date.isoformat(),  # always ISO, e.g. "2025-09-15"
        "lines": [{"acct": a, "debit": d, "credit": c} for a, d, c in rows],
    }
    return json.dumps(payload, separators=(",", ":"), sort_keys=True)


def posting_fingerprint(company_id, date, lines):
    # sha256 of the payload, stored on the journal once posted
    return hashlib.sha256(
        posting_payload(company_id, date, lines).encode()
    ).hexdigest()


# ---------- Journal (Header) & JournalLine ----------
class JournalEntry(models.Model):  # Represents one accounting transaction
    # Multi-tenant: every entry belongs to a company
    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    date = models.DateField()
    # Where the entry came from: (source, source_id) identifies the event
    source = models.CharField(
        max_length=20, choices=JOURNAL_SOURCES, default="manual"
    )
    source_id = models.PositiveBigIntegerField(null=True, blank=True)
    reference = models.CharField(max_length=200, blank=True, default="")
    memo = models.TextField(blank=True, default="")
    status = models.CharField(
        max_length=10, choices=JOURNAL_STATUS, default="draft"
    )
    posted_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="journal_entries",
    )
    # Fingerprint-based idempotency (safe to post twice if nothing changed)
    posting_fingerprint = models.CharField(max_length=64, null=True, blank=True)
    # Corrections never edit a posted entry, they post a mirror entry instead
    reverses = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="reversals",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = TenantManager()

    class Meta:
        verbose_name_plural = "journal entries"
        indexes = [
            models.Index(fields=["company", "date"], name="je_company_date_idx"),
            models.Index(fields=["company", "status"], name="je_company_status_idx"),
        ]
        constraints = [
            # One journal per business event; closes the double-posting race
            models.UniqueConstraint(
                fields=["company", "source", "source_id"],
                condition=models.Q(source_id__isnull=False),
                name="uq_je_company_source",
            )
        ]

    def __str__(self):
        return f"JE {self.pk} {self.date} {self.source} [{self.status}]"

    # Aggregate all debit and credit amounts across entry’s lines
    def compute_totals(self):
        """Return debits, credits sums for lines"""
        aggs = self.lines.aggregate(
            total_debit=models.Sum("debit"),
            total_credit=models.Sum("credit"),
        )
        return (
            aggs["total_debit"] or Decimal("0.00"),
            aggs["total_credit"] or Decimal("0.00"),
        )

    # True if double-entry rule holds (within rounding tolerance)
    def is_balanced(self):
        debit, credit = self.compute_totals()
        return abs(debit - credit) <= balance_tolerance()

    def _posting_payload(self):
        return posting_payload(
            self.company_id,
            self.date,
            self.lines.order_by("id").values_list("account_id", "debit", "credit"),
        )

    def _fingerprint(self):
        return hashlib.sha256(self._posting_payload().encode()).hexdigest()

    # Post the entry safely inside a database transaction
    @transaction.atomic
    def post(self, user=None):
        """
        Validate the stored lines and mark the entry posted.
        Calling it again on an unchanged posted entry is a no-op.
        """
        # Lock row + lines to prevent concurrent modifications
        je = JournalEntry.objects.select_for_update().get(pk=self.pk)
        lines = list(
            je.lines.select_for_update().select_related("account").order_by("id")
        )

        """ Business validations """
        if len(lines) < 2:
            raise ValidationError(
                "JournalEntry must have at least two JournalLines.")

        # Recompute totals fresh from DB & ignore any stale cached values
        td = sum((line.debit for line in lines), Decimal("0.00"))
        tc = sum((line.credit for line in lines), Decimal("0.00"))
        if abs(td - tc) > balance_tolerance():
            raise UnbalancedJournalError(
                f"Journal not balanced: debits={td}, credits={tc}"
            )

        # every line must belong to same company as journal
        for line in lines:
            if line.company_id != je.company_id or line.account.company_id != je.company_id:
                raise ValidationError(
                    "All journal lines must belong to same company as journal."
                )

        fp = posting_fingerprint(
            je.company_id,
            je.date,
            [(line.account_id, line.debit, line.credit) for line in lines],
        )

        """ Idempotency & immutability """
        if je.status == "posted":
            if je.posting_fingerprint == fp:
                return je
            raise AlreadyPostedDifferentPayload(
                "Journal already posted with different payload."
            )

        je.status = "posted"
        je.posted_at = timezone.now()
        if user:
            je.created_by = user
        je.posting_fingerprint = fp
        je.save(
            update_fields=[
                "status", "posted_at", "created_by", "posting_fingerprint"]
        )
        je.lines.update(is_posted=True)

        # keep the caller's instance in sync
        self.status = je.status
        self.posted_at = je.posted_at
        self.created_by = je.created_by
        self.posting_fingerprint = fp
        return je

    def save(self, *args, **kwargs):
        if self.pk:  # Does this row already exist in DB?
            orig = JournalEntry.objects.filter(pk=self.pk).first()
            if orig and orig.status == "posted":
                if self.status != "posted":
                    raise ValidationError("Cannot unpost a posted journal")
                # compare core fields against the stored version
                for f in ("company_id", "date", "source", "source_id", "memo", "reference"):
                    if getattr(orig, f) != getattr(self, f):
                        raise ValidationError(
                            "Cannot modify a posted JournalEntry. It is immutable."
                        )
        if self.reverses_id and self.reverses.company_id != self.company_id:
            raise ValidationError("A reversal must belong to the same company")
        super().save(*args, **kwargs)


class JournalLine(models.Model):  # Stores Lines ( credits / debits )
    """
    Each line belongs to a journal entry and to a GL account.
    Exactly one of debit / credit is non-zero.
    """

    company = models.ForeignKey(Company, on_delete=models.CASCADE)
    journal = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,
        related_name="lines",
    )

    # Must point to one Account (can’t delete account if lines exist → PROTECT)
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="journal_lines"
    )
    description = models.CharField(max_length=400, blank=True, default="")
    debit = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    credit = models.DecimalField(max_digits=18, decimal_places=2, default=0)

    # audit / immutability marker (populated when journal posted)
    is_posted = models.BooleanField(default=False)

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "account"], name="jl_company_account_idx"),
            models.Index(fields=["company", "journal"], name="jl_company_journal_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(debit__gte=0) & models.Q(credit__gte=0),
                name="jl_non_negative_amounts",
            ),
            # at least one side is non-zero
            models.CheckConstraint(
                condition=~(models.Q(debit=0) & models.Q(credit=0)),
                name="jl_debit_or_credit_nonzero",
            ),
            # never both
            models.CheckConstraint(
                condition=~(models.Q(debit__gt=0) & models.Q(credit__gt=0)),
                name="jl_not_both_debit_and_credit",
            ),
        ]

    def __str__(self):
        side = f"Dr {self.debit}" if self.debit else f"Cr {self.credit}"
        return f"{self.account.code} {side}"

    @property
    def amount(self):
        return self.debit or self.credit

    def clean(self):
        # Tenancy: line, journal and account share one company
        if self.journal_id and self.journal.company_id != self.company_id:
            raise ValidationError(
                "JournalLine company must match its JournalEntry company.")
        if self.account_id and self.account.company_id != self.company_id:
            raise ValidationError(
                "JournalLine account must belong to the same company.")
        # Posted entries are closed for new lines / edits
        if self.journal_id and self.journal.status == "posted":
            raise ValidationError("Cannot add or change lines of a posted journal.")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
