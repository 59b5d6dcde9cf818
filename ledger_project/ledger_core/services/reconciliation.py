import logging
from dataclasses import dataclass, field
from decimal import Decimal
from difflib import SequenceMatcher

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..models import BankTransaction, Expense, Invoice
from ..models.invoice import OPEN_STATUSES
from .audit_helper import log_action
from .documents import post_safely
from .posting import post_expense_settlement, post_payment_journal

logger = logging.getLogger(__name__)

AMOUNT_WEIGHT = 0.5
DATE_WEIGHT = 0.3
TEXT_WEIGHT = 0.2


# ----------------------------
# Similarity measures, each in [0, 1]
# ----------------------------
def amount_similarity(a, b):
    a, b = abs(Decimal(a)), abs(Decimal(b))
    if a == b:
        return 1.0
    avg = (a + b) / 2
    if not avg:
        return 0.0
    pct = (a - b).copy_abs() / avg
    if pct < Decimal("0.01"):
        return 0.95
    if pct < Decimal("0.05"):
        return 0.8
    if pct < Decimal("0.10"):
        return 0.6
    return 0.0


def date_similarity(d1, d2):
    days = abs((d1 - d2).days)
    if days == 0:
        return 1.0
    for limit, score in ((3, 0.9), (7, 0.7), (14, 0.5), (30, 0.3)):
        if days <= limit:
            return score
    return 0.0


def text_similarity(s1, s2):
    s1 = (s1 or "").strip().lower()
    s2 = (s2 or "").strip().lower()
    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0
    longer, shorter = (s1, s2) if len(s1) >= len(s2) else (s2, s1)
    if shorter in longer:
        return max(0.8, SequenceMatcher(None, s1, s2).ratio())
    return SequenceMatcher(None, s1, s2).ratio()


# ----------------------------
# Candidates
# ----------------------------
@dataclass
class MatchCandidate:
    bank_tx: BankTransaction
    target: object  # Invoice or Expense
    score: float
    amount_score: float
    date_score: float
    text_score: float

    @property
    def kind(self):
        return "invoice" if isinstance(self.target, Invoice) else "expense"

    @property
    def target_amount(self):
        if isinstance(self.target, Invoice):
            return self.target.outstanding_amount
        return self.target.total

    @property
    def target_date(self):
        if isinstance(self.target, Invoice):
            return self.target.issue_date
        return self.target.date

    @property
    def date_delta(self):
        return abs((self.bank_tx.date - self.target_date).days)

    @property
    def amount_delta(self):
        return abs(abs(self.bank_tx.amount) - self.target_amount)

    @property
    def confidence(self):
        if self.score >= 0.85:
            return "high"
        if self.score >= 0.65:
            return "medium"
        return "low"

    @property
    def reasons(self):
        reasons = []
        if self.amount_score > 0.9:
            reasons.append("Exact amount match")
        elif self.amount_score > 0.7:
            reasons.append("Similar amount")
        if self.date_score > 0.9:
            reasons.append("Same date")
        elif self.date_score > 0.6:
            reasons.append("Close date proximity")
        if self.text_score > 0.7:
            reasons.append(
                "Description matches" if self.kind == "invoice"
                else "Vendor/category matches"
            )
        return reasons

    def sort_key(self):
        # best score first; ties go to the closest date, then the smallest amount gap
        return (-self.score, self.date_delta, self.amount_delta, self.bank_tx.pk, self.target.pk)

    def to_dict(self):
        return {
            "transaction_id": self.bank_tx.pk,
            "match_type": self.kind,
            "match_id": self.target.pk,
            "score": round(self.score, 4),
            "confidence": self.confidence,
            "reasons": self.reasons,
        }


def score_pair(bank_tx, target):
    if isinstance(target, Invoice):
        amount = amount_similarity(bank_tx.amount, target.outstanding_amount)
        text = max(
            text_similarity(bank_tx.description, target.invoice_number),
            text_similarity(bank_tx.description, target.client_name),
        )
        day = target.issue_date
    else:
        amount = amount_similarity(bank_tx.amount, target.total)
        text = max(
            text_similarity(bank_tx.description, target.vendor),
            text_similarity(bank_tx.description, target.category),
        )
        day = target.date
    date = date_similarity(bank_tx.date, day)
    return MatchCandidate(
        bank_tx=bank_tx,
        target=target,
        score=AMOUNT_WEIGHT * amount + DATE_WEIGHT * date + TEXT_WEIGHT * text,
        amount_score=amount,
        date_score=date,
        text_score=text,
    )


def _open_invoices(company):
    return list(
        Invoice.objects.for_company(company)
        .filter(status__in=OPEN_STATUSES, bank_transactions__isnull=True)
        .select_related("client")
    )


def _unlinked_expenses(company):
    return list(
        Expense.objects.for_company(company).filter(bank_transactions__isnull=True)
    )


def _suggest_floor():
    return getattr(settings, "LEDGER_RECONCILE_SUGGEST_FLOOR", 0.4)


def _candidates_for(bank_tx, invoices, expenses):
    targets = invoices if bank_tx.is_inflow else expenses
    floor = _suggest_floor()
    return [c for c in (score_pair(bank_tx, t) for t in targets) if c.score >= floor]


def suggest_matches(bank_tx, limit=5):
    """Ranked match candidates for a single bank transaction."""
    company = bank_tx.company
    if bank_tx.is_inflow:
        candidates = _candidates_for(bank_tx, _open_invoices(company), [])
    else:
        candidates = _candidates_for(bank_tx, [], _unlinked_expenses(company))
    return sorted(candidates, key=MatchCandidate.sort_key)[:limit]


# ----------------------------
# Auto reconciliation
# ----------------------------
@dataclass
class ReconciliationResult:
    matched: list = field(default_factory=list)
    suggested: list = field(default_factory=list)
    unmatched: list = field(default_factory=list)
    degraded: list = field(default_factory=list)

    def to_dict(self):
        return {
            "matched": len(self.matched),
            "suggested": len(self.suggested),
            "unmatched": len(self.unmatched),
            "autoMatched": [c.to_dict() for c in self.matched],
            "needsReview": [c.to_dict() for c in self.suggested],
            "degraded": self.degraded,
        }


def _apply_match(candidate, user=None):
    """
    Link the bank transaction to its record and book the cash movement.

    Returns the PostingOutcome of the payment/settlement journal, or None
    when no journal is needed.
    """
    with transaction.atomic():
        tx = BankTransaction.objects.select_for_update().get(pk=candidate.bank_tx.pk)
        if tx.is_reconciled:
            return None
        target = (
            type(candidate.target).objects.select_for_update().get(pk=candidate.target.pk)
        )
        applied = None
        if isinstance(target, Invoice):
            tx.matched_invoice = target
            applied = target.apply_payment(abs(tx.amount))
        else:
            tx.matched_expense = target
        tx.is_reconciled = True
        tx.match_score = Decimal(str(round(candidate.score, 4)))
        tx.reconciled_at = timezone.now()
        tx.save()
        log_action(
            action="reconcile",
            instance=tx,
            user=user,
            changes={
                "match_type": candidate.kind,
                "match_id": target.pk,
                "score": tx.match_score,
                "applied": applied,
            },
        )

    if isinstance(target, Invoice):
        return post_safely(post_payment_journal, tx, target, applied, user=user)
    if not target.is_paid:
        # booked on account; clear Accounts Payable
        return post_safely(
            post_expense_settlement, tx, target, min(abs(tx.amount), target.total), user=user
        )
    return None


def auto_reconcile_transactions(company, threshold=None, user=None):
    """
    Match unreconciled bank transactions to open invoices and unlinked
    expenses.

    Every (transaction, record) pair is scored and ranked globally, then
    accepted greedily, so a transaction or a record is consumed at most
    once per run. Pairs at or above `threshold` are applied; the best
    remaining candidate of each other transaction is returned as a
    suggestion when it clears the suggestion floor.
    """
    if threshold is None:
        threshold = getattr(settings, "LEDGER_RECONCILE_THRESHOLD", 0.85)
    try:
        threshold = float(threshold)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid threshold: {threshold!r}") from None
    if not 0 < threshold <= 1:
        raise ValidationError("Threshold must be in (0, 1]")

    transactions = list(
        BankTransaction.objects.for_company(company)
        .filter(is_reconciled=False)
        .order_by("-date", "id")
    )
    result = ReconciliationResult()
    if not transactions:
        return result

    invoices = _open_invoices(company)
    expenses = _unlinked_expenses(company)

    pairs = []
    for tx in transactions:
        pairs.extend(_candidates_for(tx, invoices, expenses))
    pairs.sort(key=MatchCandidate.sort_key)

    used_tx, used_targets = set(), set()
    best_rejected = {}
    for candidate in pairs:
        tx_id = candidate.bank_tx.pk
        target_key = (candidate.kind, candidate.target.pk)
        if tx_id in used_tx or target_key in used_targets:
            continue
        if candidate.score >= threshold:
            used_tx.add(tx_id)
            used_targets.add(target_key)
            result.matched.append(candidate)
        else:
            # pairs arrive best-first, so the first one seen is the best
            best_rejected.setdefault(tx_id, candidate)

    for candidate in result.matched:
        outcome = _apply_match(candidate, user=user)
        if outcome is not None and outcome.degraded:
            result.degraded.append(candidate.bank_tx.pk)

    for tx in transactions:
        if tx.pk in used_tx:
            continue
        if tx.pk in best_rejected:
            result.suggested.append(best_rejected[tx.pk])
        else:
            result.unmatched.append(tx.pk)

    logger.info(
        "Reconciliation for company %s: matched=%s suggested=%s unmatched=%s",
        company.pk, len(result.matched), len(result.suggested), len(result.unmatched),
    )
    return result
