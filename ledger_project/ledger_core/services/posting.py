import logging
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from ..exceptions import AlreadyPostedDifferentPayload, UnbalancedJournalError
from ..models import Account, JournalEntry, JournalLine
from ..models.journal import CENT, balance_tolerance, posting_fingerprint
from . import chart

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _to_amount(value, field):
    try:
        amount = Decimal(str(value if value is not None else 0))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}") from None
    return amount.quantize(CENT)


def _normalize_lines(company, lines):
    """
    Turn line specs into (account, debit, credit, description) tuples.

    A spec is a dict with "account" (Account instance) or "code",
    plus "debit" / "credit" and an optional "description".
    """
    normalized = []
    for i, spec in enumerate(lines, start=1):
        account = spec.get("account")
        if account is None:
            code = spec.get("code")
            if not code:
                raise ValidationError(f"Line {i} has no account")
            account = chart.resolve_account(company, code)
        if not isinstance(account, Account) or account.company_id != company.pk:
            raise ValidationError(
                f"Line {i}: account must belong to company {company.pk}"
            )

        debit = _to_amount(spec.get("debit"), "debit")
        credit = _to_amount(spec.get("credit"), "credit")
        if debit < 0 or credit < 0:
            raise ValidationError(f"Line {i}: amounts cannot be negative")
        # exactly one side carries the amount
        if (debit > 0) == (credit > 0):
            raise ValidationError(
                f"Line {i}: exactly one of debit/credit must be non-zero"
            )
        normalized.append((account, debit, credit, spec.get("description") or ""))
    return normalized


def _existing_for_source(company, source, source_id, fingerprint):
    """Idempotency check: same event + same payload → existing journal."""
    existing = (
        JournalEntry.objects.for_company(company)
        .filter(source=source, source_id=source_id)
        .first()
    )
    if existing is None:
        return None
    if existing.posting_fingerprint == fingerprint:
        logger.debug(
            "Journal %s already posted for %s:%s", existing.pk, source, source_id
        )
        return existing
    raise AlreadyPostedDifferentPayload(
        f"{source} {source_id} was already posted (journal {existing.pk}) "
        "with a different payload."
    )


def post_journal(company, date, source, source_id, lines, memo="",
                 reference="", user=None, reverses=None):
    """
    Post a balanced double-entry journal.

    Everything is validated before the first write: at least two lines,
    one non-zero side per line, accounts owned by `company` and
    |Σdebit − Σcredit| within tolerance. Header and lines are written in one
    atomic block so a failure never leaves a partial journal behind.

    Re-posting the same (company, source, source_id) returns the existing
    journal when the payload is unchanged and raises
    AlreadyPostedDifferentPayload otherwise.
    """
    normalized = _normalize_lines(company, lines)
    if len(normalized) < 2:
        raise ValidationError("A journal needs at least two lines")

    total_debit = sum((d for _, d, _, _ in normalized), ZERO)
    total_credit = sum((c for _, _, c, _ in normalized), ZERO)
    if abs(total_debit - total_credit) > balance_tolerance():
        raise UnbalancedJournalError(
            f"Journal not balanced: debits={total_debit}, credits={total_credit}"
        )

    fingerprint = posting_fingerprint(
        company.pk, date, [(a.pk, d, c) for a, d, c, _ in normalized]
    )
    if source_id is not None:
        existing = _existing_for_source(company, source, source_id, fingerprint)
        if existing is not None:
            return existing

    try:
        with transaction.atomic():
            je = JournalEntry.objects.create(
                company=company,
                date=date,
                source=source,
                source_id=source_id,
                reference=reference or "",
                memo=memo or "",
                status="draft",
                created_by=user,
                reverses=reverses,
            )
            for account, debit, credit, description in normalized:
                JournalLine.objects.create(
                    company=company,
                    journal=je,
                    account=account,
                    debit=debit,
                    credit=credit,
                    description=description,
                )
            # re-checks the stored rows and stamps the fingerprint
            je.post(user=user)
    except IntegrityError:
        # lost a race against a concurrent posting of the same event
        if source_id is None:
            raise
        existing = _existing_for_source(company, source, source_id, fingerprint)
        if existing is None:
            raise
        return existing

    logger.info(
        "Posted journal %s (%s:%s) debits=%s credits=%s",
        je.pk, source, source_id, total_debit, total_credit,
    )
    return je


# ----------------------------
# Posting recipes
# ----------------------------
def post_invoice_journal(invoice, user=None):
    """
    Revenue recognition:
      Debit: Accounts Receivable = total
      Credit: Sales Revenue = total - tax
      Credit: VAT Output = tax
    """
    company = invoice.company
    total = invoice.total
    tax = invoice.tax_amount or ZERO
    if total <= 0:
        raise ValidationError("Invoice total must be > 0 to post revenue JE")
    if tax < 0 or tax > total:
        raise ValidationError("Invoice tax must be between 0 and the total")

    lines = [
        {"code": chart.ACCOUNTS_RECEIVABLE, "debit": total,
         "description": f"AR for invoice {invoice.invoice_number}"},
        {"code": chart.SALES_REVENUE, "credit": total - tax,
         "description": f"Revenue: invoice {invoice.invoice_number}"},
    ]
    if tax > 0:
        lines.append({"code": chart.VAT_OUTPUT, "credit": tax,
                      "description": f"VAT on invoice {invoice.invoice_number}"})
    return post_journal(
        company,
        invoice.issue_date,
        "invoice",
        invoice.pk,
        lines,
        memo=f"Invoice {invoice.invoice_number}",
        reference=invoice.invoice_number,
        user=user,
    )


def post_expense_journal(expense, user=None):
    """
    Expense recognition:
      Debit: expense account (default 5200) = total - tax
      Debit: VAT Input = tax
      Credit: Cash and Bank (paid) or Accounts Payable (unpaid) = total
    """
    company = expense.company
    total = expense.total
    tax = expense.tax_amount or ZERO
    if total <= 0:
        raise ValidationError("Expense total must be > 0 to post")
    if tax < 0 or tax > total:
        raise ValidationError("Expense tax must be between 0 and the total")

    expense_account = expense.account or chart.resolve_account(
        company, chart.OPERATING_EXPENSES
    )
    credit_code = chart.CASH if expense.is_paid else chart.ACCOUNTS_PAYABLE

    lines = []
    if total - tax > 0:
        lines.append({"account": expense_account, "debit": total - tax,
                      "description": f"{expense.vendor} {expense.category}".strip()})
    if tax > 0:
        lines.append({"code": chart.VAT_INPUT, "debit": tax,
                      "description": f"VAT on {expense.vendor}"})
    lines.append({"code": credit_code, "credit": total,
                  "description": f"{'Paid' if expense.is_paid else 'Owed'} to {expense.vendor}"})
    return post_journal(
        company,
        expense.date,
        "expense",
        expense.pk,
        lines,
        memo=f"Expense: {expense.vendor}",
        user=user,
    )


def _bank_ledger_account(bank_tx):
    # Prefer the bank account's own GL account, else 1110 Cash and Bank
    bank_account = bank_tx.bank_account
    if bank_account is not None and bank_account.ledger_account_id:
        return bank_account.ledger_account
    return chart.resolve_account(bank_tx.company, chart.CASH)


def post_payment_journal(bank_tx, invoice, amount, user=None):
    """Bank receipt against an invoice: Dr Cash and Bank, Cr Accounts Receivable."""
    if amount <= 0:
        raise ValidationError("Applied amount must be positive")
    if bank_tx.company_id != invoice.company_id:
        raise ValidationError("Bank transaction and invoice must belong to same company")

    lines = [
        {"account": _bank_ledger_account(bank_tx), "debit": amount,
         "description": f"Bank receipt for invoice {invoice.invoice_number}"},
        {"code": chart.ACCOUNTS_RECEIVABLE, "credit": amount,
         "description": f"Clear AR for invoice {invoice.invoice_number}"},
    ]
    return post_journal(
        bank_tx.company,
        bank_tx.date,
        "payment",
        bank_tx.pk,
        lines,
        memo=f"Payment for invoice {invoice.invoice_number}",
        reference=bank_tx.reference,
        user=user,
    )


def post_expense_settlement(bank_tx, expense, amount, user=None):
    """Bank payment of an expense booked on account: Dr Accounts Payable, Cr Cash and Bank."""
    if amount <= 0:
        raise ValidationError("Settled amount must be positive")
    if bank_tx.company_id != expense.company_id:
        raise ValidationError("Bank transaction and expense must belong to same company")

    lines = [
        {"code": chart.ACCOUNTS_PAYABLE, "debit": amount,
         "description": f"Settle {expense.vendor}"},
        {"account": _bank_ledger_account(bank_tx), "credit": amount,
         "description": f"Bank payment to {expense.vendor}"},
    ]
    return post_journal(
        bank_tx.company,
        bank_tx.date,
        "settlement",
        bank_tx.pk,
        lines,
        memo=f"Settlement of expense {expense.pk}",
        reference=bank_tx.reference,
        user=user,
    )


def reverse_journal(journal, date=None, memo="", user=None):
    """Post a mirror journal that cancels a posted one (debits ↔ credits)."""
    if journal.status != "posted":
        raise ValidationError("Only posted journals can be reversed")
    lines = [
        {
            "account": line.account,
            "debit": line.credit,
            "credit": line.debit,
            "description": f"Reversal: {line.description}".strip(),
        }
        for line in journal.lines.select_related("account").order_by("id")
    ]
    return post_journal(
        journal.company,
        date or journal.date,
        "reversal",
        journal.pk,
        lines,
        memo=memo or f"Reversal of journal {journal.pk}",
        reference=journal.reference,
        user=user,
        reverses=journal,
    )
