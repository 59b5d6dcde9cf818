import logging
import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

from django.conf import settings

from ..models import Company, Expense, Invoice

logger = logging.getLogger(__name__)

SEVERITY_RANK = {"high": 3, "medium": 2, "low": 1}
SATURDAY, SUNDAY = 5, 6


@dataclass
class FraudAlert:
    """A suspicious pattern found in one pass. Never persisted."""

    alert_type: str  # duplicate / outlier / weekend
    severity: str
    source_type: str  # invoice / expense
    source_id: int
    company_id: int
    date: object
    amount: Decimal
    description: str
    evidence: dict = field(default_factory=dict)

    @property
    def alert_id(self):
        return f"fraud-{self.alert_type}-{self.source_type}-{self.source_id}"

    def to_dict(self):
        return {
            "id": self.alert_id,
            "type": self.alert_type,
            "severity": self.severity,
            "sourceType": self.source_type,
            "sourceId": self.source_id,
            "companyId": self.company_id,
            "date": self.date.isoformat(),
            "amount": str(self.amount),
            "description": self.description,
            "evidence": self.evidence,
        }


# ----------------------------
# Heuristics
# ----------------------------
def detect_duplicate_invoices(invoices):
    groups = defaultdict(list)
    for inv in invoices:
        if inv.client_id is None:
            continue
        groups[(inv.client_id, inv.total, inv.issue_date)].append(inv)

    alerts = []
    for (client_id, total, issue_date), members in groups.items():
        if len(members) < 2:
            continue
        ids = sorted(m.pk for m in members)
        alerts.append(FraudAlert(
            alert_type="duplicate",
            severity="high",
            source_type="invoice",
            source_id=ids[0],
            company_id=members[0].company_id,
            date=issue_date,
            amount=total,
            description=f"{len(ids)} invoices for {total} to the same client on {issue_date}",
            evidence={"invoice_ids": ids, "client_id": client_id},
        ))
    return alerts


def detect_duplicate_expenses(expenses):
    groups = defaultdict(list)
    for exp in expenses:
        groups[(exp.vendor.strip().lower(), exp.total, exp.date)].append(exp)

    alerts = []
    for (vendor, total, day), members in groups.items():
        if len(members) < 2:
            continue
        ids = sorted(m.pk for m in members)
        alerts.append(FraudAlert(
            alert_type="duplicate",
            # recurring expenses are common
            severity="medium",
            source_type="expense",
            source_id=ids[0],
            company_id=members[0].company_id,
            date=day,
            amount=total,
            description=f"{len(ids)} expenses for {total} to {members[0].vendor} on {day}",
            evidence={"expense_ids": ids, "vendor": members[0].vendor},
        ))
    return alerts


def detect_outliers(invoices, k=None, min_sample=None, window_days=None):
    """
    Flag invoices far above the company's usual amounts.

    Each invoice is compared with the *other* invoices issued within
    `window_days` of the latest one: bound = mean + k * max(stddev, mean / 4).
    At least `min_sample` invoices, the candidate included, are required.
    """
    k = Decimal(str(k if k is not None else getattr(settings, "LEDGER_FRAUD_OUTLIER_K", 3)))
    min_sample = min_sample or getattr(settings, "LEDGER_FRAUD_MIN_SAMPLE", 5)
    window_days = window_days or getattr(settings, "LEDGER_FRAUD_OUTLIER_WINDOW_DAYS", 365)

    if len(invoices) < min_sample:
        return []
    latest = max(inv.issue_date for inv in invoices)
    recent = [inv for inv in invoices if inv.issue_date >= latest - timedelta(days=window_days)]

    alerts = []
    for inv in recent:
        baseline = [other.total for other in recent if other.pk != inv.pk]
        # the candidate itself counts toward the minimum sample
        if len(baseline) + 1 < min_sample:
            continue
        mean = statistics.mean(baseline)
        if mean <= 0:
            continue
        spread = max(statistics.pstdev(baseline), mean / 4)
        bound = mean + k * spread
        if inv.total <= bound:
            continue
        alerts.append(FraudAlert(
            alert_type="outlier",
            severity="high" if inv.total >= mean * 10 else "medium",
            source_type="invoice",
            source_id=inv.pk,
            company_id=inv.company_id,
            date=inv.issue_date,
            amount=inv.total,
            description=f"Unusually high invoice amount ({inv.total} vs avg {mean:.2f})",
            evidence={
                "mean": str(round(mean, 2)),
                "bound": str(round(bound, 2)),
                "sample_size": len(baseline),
            },
        ))
    return alerts


def detect_weekend_activity(invoices, expenses):
    alerts = []
    for inv in invoices:
        if inv.issue_date.weekday() in (SATURDAY, SUNDAY):
            alerts.append(FraudAlert(
                alert_type="weekend",
                severity="low",
                source_type="invoice",
                source_id=inv.pk,
                company_id=inv.company_id,
                date=inv.issue_date,
                amount=inv.total,
                description=f"Invoice issued on a {inv.issue_date:%A}",
            ))
    for exp in expenses:
        if exp.date.weekday() in (SATURDAY, SUNDAY):
            alerts.append(FraudAlert(
                alert_type="weekend",
                severity="low",
                source_type="expense",
                source_id=exp.pk,
                company_id=exp.company_id,
                date=exp.date,
                amount=exp.total,
                description=f"Expense recorded on a {exp.date:%A}",
            ))
    return alerts


# ----------------------------
# Entry point
# ----------------------------
def _analyze_company(company):
    invoices = list(Invoice.objects.for_company(company).exclude(status="void"))
    expenses = list(Expense.objects.for_company(company))
    return (
        detect_duplicate_invoices(invoices)
        + detect_duplicate_expenses(expenses)
        + detect_outliers(invoices)
        + detect_weekend_activity(invoices, expenses)
    )


def analyze_fraud(company=None):
    """
    Scan invoices and expenses for duplicate, outlier and weekend patterns.

    Without a company every tenant is scanned, each on its own data only.
    Alerts are sorted by severity, then newest first.
    """
    companies = [company] if company is not None else Company.objects.order_by("pk")
    alerts = []
    for c in companies:
        alerts.extend(_analyze_company(c))

    alerts.sort(key=lambda a: a.date, reverse=True)
    alerts.sort(key=lambda a: SEVERITY_RANK[a.severity], reverse=True)
    logger.info(
        "Fraud scan (%s): %s alerts",
        f"company {company.pk}" if company is not None else "all companies",
        len(alerts),
    )
    return alerts
