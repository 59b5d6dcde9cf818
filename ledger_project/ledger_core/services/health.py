import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from ..models import Account, Invoice
from ..models.invoice import OPEN_STATUSES
from . import chart
from .reporting import account_totals, profit_and_loss, signed_balance

logger = logging.getLogger(__name__)

PILLAR_WEIGHTS = {
    "profitability": 0.30,
    "liquidity": 0.25,
    "efficiency": 0.25,
    "growth": 0.20,
}
NEUTRAL = 50
MAX_PERFORMANCE = 1.2
PRIORITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}
AGING_BUCKETS = (
    ("current", None, 0),
    ("1_30", 1, 30),
    ("31_60", 31, 60),
    ("61_90", 61, 90),
    ("90_plus", 91, None),
)


@dataclass
class HealthScore:
    total_score: int
    pillars: dict
    ar_aging: dict = field(default_factory=dict)
    recommendations: list = field(default_factory=list)

    def to_dict(self):
        return {
            "totalScore": self.total_score,
            "pillars": self.pillars,
            "arAging": {k: str(v) for k, v in self.ar_aging.items()},
            "recommendations": self.recommendations,
        }


def clamp(value, low=0, high=100):
    return max(low, min(high, value))


def sub_score(metrics):
    """
    Weighted score in [0, 100] from (value, target, weight) triples.

    A metric whose value is None (no data) contributes the neutral 50.
    """
    score = 0.0
    for value, target, weight in metrics:
        if value is None:
            score += NEUTRAL * weight
            continue
        performance = clamp(value / target, 0, MAX_PERFORMANCE)
        score += performance * 100 * weight
    return int(round(clamp(score)))


def _ratio(numerator, denominator, when_no_denominator=None):
    if denominator:
        return float(numerator) / float(denominator)
    return when_no_denominator


# ----------------------------
# Ledger figures
# ----------------------------
def _subtree_balance(root_code, accounts, totals):
    by_pk = {a.pk: a for a in accounts}
    total = Decimal("0.00")
    for account in accounts:
        node = account
        while node is not None and node.code != root_code:
            node = by_pk.get(node.parent_id)
        if node is None:
            continue
        debit, credit = totals.get(account.pk, (Decimal("0"), Decimal("0")))
        total += signed_balance(account, debit, credit)
    return total


def _balances(company, today):
    accounts = list(Account.objects.for_company(company))
    totals = account_totals(company, None, today)
    return {
        "cash": _subtree_balance(chart.CASH, accounts, totals),
        "receivables": _subtree_balance(chart.ACCOUNTS_RECEIVABLE, accounts, totals),
        "current_assets": _subtree_balance("1100", accounts, totals),
        "current_liabilities": _subtree_balance("2100", accounts, totals),
    }


def ar_aging(company, today):
    """Outstanding invoice amounts bucketed by days past due."""
    buckets = {name: Decimal("0.00") for name, _, _ in AGING_BUCKETS}
    open_invoices = Invoice.objects.for_company(company).filter(status__in=OPEN_STATUSES)
    for inv in open_invoices:
        days = (today - (inv.due_date or inv.issue_date)).days
        for name, low, high in AGING_BUCKETS:
            if (low is None or days >= low) and (high is None or days <= high):
                buckets[name] += inv.outstanding_amount
                break
    return buckets


def _revenue_growth(company, today):
    # last 30 days against the 30 before, in percent
    current = profit_and_loss(company, today - timedelta(days=29), today)["total_revenue"]
    previous = profit_and_loss(
        company, today - timedelta(days=59), today - timedelta(days=30)
    )["total_revenue"]
    if not previous:
        return None
    return float((current - previous) / previous * 100)


# ----------------------------
# Recommendations
# ----------------------------
def _recommendations(m, pillars):
    recs = []

    def add(message, priority, category):
        recs.append({"message": message, "priority": priority, "category": category})

    runway = m["cash_runway"]
    if runway is not None and runway < 3:
        add("Cash runway is below 3 months. Reduce expenses, collect receivables "
            "or secure funding.", "critical", "Liquidity")
    elif runway is not None and runway < 6:
        add("Cash runway is below 6 months. Review major expenses and accelerate "
            "collections.", "high", "Liquidity")
    if m["quick_ratio"] is not None and m["quick_ratio"] < 0.8:
        add("Quick ratio is low. Collect outstanding invoices to improve "
            "immediate liquidity.", "high", "Liquidity")
    if m["working_capital"] < 0:
        add("Short-term liabilities exceed current assets. Review payment terms "
            "with suppliers.", "critical", "Liquidity")
    if m["ar_90_plus"] > 0:
        add(f"R{m['ar_90_plus']:,.2f} is overdue by more than 90 days. Consider "
            "collection or write-off.", "high", "Efficiency")
    if m["ar_31_plus"] > 0 and m["overdue_pct"] > 20:
        add("A high share of invoices is overdue. Send payment reminders and "
            "review credit terms.", "medium", "Efficiency")
    if m["dso"] is not None and m["dso"] > 45:
        add(f"Average collection period is {round(m['dso'])} days; aim for 30-45.",
            "medium", "Efficiency")
    if m["expense_ratio"] is not None and m["expense_ratio"] > 80:
        add("Expenses consume over 80% of revenue. Look for savings in operating "
            "costs.", "high", "Profitability")
    if m["net_margin"] is not None and m["net_margin"] < 5:
        add("Net margin is below 5%. Review pricing and cost structure.",
            "high", "Profitability")
    elif m["net_margin"] is not None and m["net_margin"] < 10:
        add("Net margin could be improved by reducing costs or raising prices.",
            "medium", "Profitability")
    if all(pillars[p]["score"] >= 80 for p in ("liquidity", "profitability", "efficiency")):
        add("Financial health is excellent. Consider investing surplus cash in "
            "growth or building reserves.", "low", "Growth")
    if not recs:
        add("Health metrics are strong. Keep current practices.", "low", "General")

    return sorted(recs, key=lambda r: PRIORITY_ORDER[r["priority"]])


# ----------------------------
# Entry point
# ----------------------------
def calculate_health_score(company, today=None):
    """
    Score the company 0-100 from ledger balances, trailing-year P&L and
    open invoices. Recomputed on every call.
    """
    today = today or timezone.localdate()
    pnl = profit_and_loss(company, today - timedelta(days=364), today)
    revenue = pnl["total_revenue"]
    balances = _balances(company, today)
    aging = ar_aging(company, today)

    # profitability
    net_margin = _ratio(pnl["net_profit"] * 100, revenue)
    gross_margin = _ratio(pnl["gross_profit"] * 100, revenue)

    # liquidity
    cash = balances["cash"]
    current_assets = balances["current_assets"]
    current_liabilities = balances["current_liabilities"]
    no_liability_ratio = 10.0 if current_assets > 0 else None
    current_ratio = _ratio(current_assets, current_liabilities, no_liability_ratio)
    quick_ratio = _ratio(cash + balances["receivables"], current_liabilities, no_liability_ratio)
    monthly_burn = pnl["total_expenses"] / 12
    cash_runway = _ratio(cash, monthly_burn, 12.0 if cash > 0 else None)

    # efficiency
    receivables = sum(aging.values(), Decimal("0.00"))
    overdue = receivables - aging["current"]
    overdue_pct = _ratio(overdue * 100, receivables, 0.0)
    dso = _ratio(receivables * 365, revenue)
    expense_ratio = _ratio(pnl["total_expenses"] * 100, revenue)

    growth = _revenue_growth(company, today)

    pillars = {
        "profitability": {
            "score": sub_score([(net_margin, 20, 0.6), (gross_margin, 40, 0.4)]),
            "metrics": {"netMargin": net_margin, "grossMargin": gross_margin},
        },
        "liquidity": {
            "score": sub_score([
                (current_ratio, 1.5, 0.3),
                (quick_ratio, 1.0, 0.3),
                (cash_runway, 6, 0.4),
            ]),
            "metrics": {
                "currentRatio": current_ratio,
                "quickRatio": quick_ratio,
                "cashRunway": cash_runway,
                "workingCapital": float(current_assets - current_liabilities),
            },
        },
        "efficiency": {
            "score": sub_score([
                (100 - overdue_pct, 90, 0.4),
                (None if dso is None else max(0.0, 100 - dso), 70, 0.3),
                (None if expense_ratio is None else 100 - expense_ratio, 30, 0.3),
            ]),
            "metrics": {"overduePct": overdue_pct, "dso": dso, "expenseRatio": expense_ratio},
        },
        "growth": {
            "score": sub_score([(growth, 5, 1.0)]),
            "metrics": {"revenueGrowth": growth},
        },
    }
    for name, weight in PILLAR_WEIGHTS.items():
        pillars[name]["weight"] = weight

    total = int(round(clamp(sum(
        pillars[name]["score"] * weight for name, weight in PILLAR_WEIGHTS.items()
    ))))

    recommendations = _recommendations(
        {
            "cash_runway": cash_runway,
            "quick_ratio": quick_ratio,
            "working_capital": current_assets - current_liabilities,
            "ar_90_plus": aging["90_plus"],
            "ar_31_plus": aging["31_60"] + aging["61_90"] + aging["90_plus"],
            "overdue_pct": overdue_pct,
            "dso": dso,
            "expense_ratio": expense_ratio,
            "net_margin": net_margin,
        },
        pillars,
    )
    logger.debug("Health score for company %s: %s", company.pk, total)
    return HealthScore(
        total_score=total,
        pillars=pillars,
        ar_aging=aging,
        recommendations=recommendations,
    )
