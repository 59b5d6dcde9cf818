import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import DatabaseError, transaction

from ..models import Expense, Invoice, InvoiceItem, JournalEntry
from .audit_helper import log_action
from .posting import post_expense_journal, post_invoice_journal

logger = logging.getLogger(__name__)


@dataclass
class PostingOutcome:
    """Result of creating a business document and posting it.

    `degraded` means the document was saved but its journal was not;
    the ledger is repaired later by repost_missing_journals().
    """

    document: object
    journal: Optional[JournalEntry] = None
    degraded: bool = False
    error: str = ""

    def to_dict(self):
        return {
            "id": self.document.pk,
            "type": self.document.__class__.__name__.lower(),
            "journal_id": self.journal.pk if self.journal else None,
            "degraded": self.degraded,
            "warning": self.error or None,
        }


def post_safely(recipe, document, *args, user=None, **kwargs):
    """
    Run a posting recipe without letting a posting failure escape.

    The business record is already committed; a failed journal is logged,
    written to the audit log and reported as a degraded outcome.
    """
    try:
        # own savepoint so a database error leaves the connection usable
        with transaction.atomic():
            journal = recipe(document, *args, user=user, **kwargs)
    except (ValidationError, ObjectDoesNotExist, DatabaseError) as exc:
        logger.exception(
            "Journal posting failed for %s %s", document.__class__.__name__, document.pk
        )
        log_action(
            action="posting_failed",
            instance=document,
            user=user,
            changes={"recipe": recipe.__name__, "error": str(exc)},
        )
        return PostingOutcome(document=document, degraded=True, error=str(exc))
    return PostingOutcome(document=document, journal=journal)


def next_invoice_number(company):
    # INV-00001, INV-00002, ... skipping numbers already taken
    n = Invoice.objects.for_company(company).count() + 1
    while True:
        number = f"INV-{n:05d}"
        if not Invoice.objects.for_company(company).filter(invoice_number=number).exists():
            return number
        n += 1


# ----------------------------
# Invoice workflows
# ----------------------------
def create_invoice(company, *, client, issue_date, items, invoice_number=None,
                   due_date=None, status="sent", notes="", recurring_profile=None,
                   user=None):
    """
    Persist an invoice with its items, then post it to the ledger.

    `items` is a list of dicts with description, quantity, unit_price and an
    optional tax_rate (percent). Draft invoices are not posted until issued.
    """
    if not items:
        raise ValidationError("An invoice needs at least one item")
    if status not in ("draft", "sent"):
        raise ValidationError("New invoices start as draft or sent")
    if client is not None and client.company_id != company.pk:
        raise ValidationError("Client must belong to the same company.")

    default_rate = getattr(settings, "LEDGER_DEFAULT_VAT_RATE", Decimal("15"))
    if due_date is None and client is not None:
        due_date = issue_date + timedelta(days=client.payment_terms_days)

    with transaction.atomic():
        invoice = Invoice.objects.create(
            company=company,
            client=client,
            invoice_number=invoice_number or next_invoice_number(company),
            issue_date=issue_date,
            due_date=due_date,
            status=status,
            notes=notes,
            recurring_profile=recurring_profile,
        )
        for item in items:
            InvoiceItem.objects.create(
                company=company,
                invoice=invoice,
                description=item.get("description") or "Item",
                quantity=Decimal(str(item.get("quantity", 1))),
                unit_price=Decimal(str(item["unit_price"])),
                tax_rate=Decimal(str(item.get("tax_rate", default_rate))),
            )
        invoice.recalc_totals()
        invoice.save()
        log_action(
            action="create",
            instance=invoice,
            user=user,
            changes={"total": str(invoice.total)},
        )

    if invoice.status == "draft":
        return PostingOutcome(document=invoice)
    return post_safely(post_invoice_journal, invoice, user=user)


def issue_invoice(invoice, user=None):
    """Move a draft invoice to sent and post it."""
    if not invoice.items.exists():
        raise ValidationError("Cannot issue an invoice with no items")
    invoice.transition_to("sent")
    return post_safely(post_invoice_journal, invoice, user=user)


# ----------------------------
# Expense workflows
# ----------------------------
def create_expense(company, *, vendor, date, amount, tax_amount=Decimal("0.00"),
                   category="", account=None, is_paid=True, description="",
                   user=None):
    """Persist an expense, then post it (paid → Cash, unpaid → Accounts Payable)."""
    with transaction.atomic():
        expense = Expense.objects.create(
            company=company,
            vendor=vendor,
            date=date,
            amount=Decimal(str(amount)),
            tax_amount=Decimal(str(tax_amount or 0)),
            category=category,
            account=account,
            is_paid=is_paid,
            description=description,
        )
        log_action(
            action="create",
            instance=expense,
            user=user,
            changes={"total": str(expense.total)},
        )
    return post_safely(post_expense_journal, expense, user=user)


# ----------------------------
# Ledger repair
# ----------------------------
def _posted_source_ids(company, source):
    return set(
        JournalEntry.objects.for_company(company)
        .filter(source=source, source_id__isnull=False)
        .values_list("source_id", flat=True)
    )


def repost_missing_journals(company, user=None):
    """
    Retry posting for issued invoices and expenses that have no journal
    (documents left degraded by an earlier posting failure).
    """
    summary = {"invoices": 0, "expenses": 0, "failed": 0}

    posted_invoices = _posted_source_ids(company, "invoice")
    invoices = (
        Invoice.objects.for_company(company)
        .filter(status__in=("sent", "partial", "paid"))
        .exclude(pk__in=posted_invoices)
    )
    for invoice in invoices:
        outcome = post_safely(post_invoice_journal, invoice, user=user)
        if outcome.degraded:
            summary["failed"] += 1
        else:
            summary["invoices"] += 1

    posted_expenses = _posted_source_ids(company, "expense")
    for expense in Expense.objects.for_company(company).exclude(pk__in=posted_expenses):
        outcome = post_safely(post_expense_journal, expense, user=user)
        if outcome.degraded:
            summary["failed"] += 1
        else:
            summary["expenses"] += 1

    logger.info("Ledger repair for company %s: %s", company.pk, summary)
    return summary
