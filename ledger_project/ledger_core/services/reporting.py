import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db.models import Sum

from ..models import Account, JournalLine
from ..models.journal import balance_tolerance
from . import chart

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass
class TrialBalanceRow:
    code: str
    name: str
    ac_type: str
    debit: Decimal
    credit: Decimal
    balance: Decimal

    def to_dict(self):
        return {
            "code": self.code,
            "name": self.name,
            "type": self.ac_type,
            "debit": str(self.debit),
            "credit": str(self.credit),
            "balance": str(self.balance),
        }


@dataclass
class TrialBalance:
    start_date: object
    end_date: object
    rows: list = field(default_factory=list)
    total_debit: Decimal = ZERO
    total_credit: Decimal = ZERO
    is_balanced: bool = True
    # problems found while building the report (never raised)
    diagnostics: list = field(default_factory=list)

    def to_dict(self):
        return {
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "accounts": [r.to_dict() for r in self.rows],
            "totalDebit": str(self.total_debit),
            "totalCredit": str(self.total_credit),
            "isBalanced": self.is_balanced,
            "diagnostics": self.diagnostics,
        }


def _check_range(start_date, end_date):
    if start_date and end_date and start_date > end_date:
        raise ValidationError(
            f"Start date {start_date} is after end date {end_date}"
        )


def _posted_lines(company, start_date=None, end_date=None):
    qs = JournalLine.objects.for_company(company).filter(journal__status="posted")
    if start_date:
        qs = qs.filter(journal__date__gte=start_date)
    if end_date:
        qs = qs.filter(journal__date__lte=end_date)
    return qs


def account_totals(company, start_date=None, end_date=None):
    """Return {account_id: (debit, credit)} for posted lines in the window."""
    _check_range(start_date, end_date)
    rows = (
        _posted_lines(company, start_date, end_date)
        .values("account_id")
        .annotate(debit=Sum("debit"), credit=Sum("credit"))
    )
    return {
        r["account_id"]: (r["debit"] or ZERO, r["credit"] or ZERO) for r in rows
    }


def signed_balance(account, debit, credit):
    # Asset/Expense: debit-normal; Liability/Equity/Revenue: credit-normal
    return debit - credit if account.is_debit_normal else credit - debit


def trial_balance(company, start_date=None, end_date=None):
    """
    Sum posted journal lines per account over [start_date, end_date].

    Accounts without activity are left out. An out-of-balance ledger is
    reported in `diagnostics` and logged, never raised.
    """
    totals = account_totals(company, start_date, end_date)
    report = TrialBalance(start_date=start_date, end_date=end_date)

    for account in Account.objects.for_company(company).order_by("code"):
        debit, credit = totals.get(account.pk, (ZERO, ZERO))
        if not debit and not credit:
            continue
        report.rows.append(
            TrialBalanceRow(
                code=account.code,
                name=account.name,
                ac_type=account.ac_type,
                debit=debit,
                credit=credit,
                balance=signed_balance(account, debit, credit),
            )
        )
        report.total_debit += debit
        report.total_credit += credit

    difference = report.total_debit - report.total_credit
    if abs(difference) > balance_tolerance():
        report.is_balanced = False
        report.diagnostics.append(
            f"Ledger out of balance by {difference}: "
            f"debits={report.total_debit}, credits={report.total_credit}"
        )
        # name the journals responsible
        per_journal = (
            _posted_lines(company, start_date, end_date)
            .values("journal_id")
            .annotate(debit=Sum("debit"), credit=Sum("credit"))
        )
        for j in per_journal:
            if abs((j["debit"] or ZERO) - (j["credit"] or ZERO)) > balance_tolerance():
                report.diagnostics.append(
                    f"Journal {j['journal_id']} unbalanced: "
                    f"debits={j['debit']}, credits={j['credit']}"
                )
        logger.warning(
            "Trial balance for company %s does not balance: %s",
            company.pk, "; ".join(report.diagnostics),
        )
    return report


def account_balance(company, code, start_date=None, end_date=None):
    """Signed balance of one account (normal side positive)."""
    account = chart.resolve_account(company, code)
    _check_range(start_date, end_date)
    agg = (
        _posted_lines(company, start_date, end_date)
        .filter(account=account)
        .aggregate(debit=Sum("debit"), credit=Sum("credit"))
    )
    return signed_balance(account, agg["debit"] or ZERO, agg["credit"] or ZERO)


def _descends_from(account, code, by_pk):
    node = account
    while node is not None:
        if node.code == code:
            return True
        node = by_pk.get(node.parent_id)
    return False


def profit_and_loss(company, start_date=None, end_date=None):
    """Revenue and expenses over the window, with gross and net profit."""
    totals = account_totals(company, start_date, end_date)
    accounts = list(
        Account.objects.for_company(company).filter(ac_type__in=("revenue", "expense"))
    )
    by_pk = {a.pk: a for a in accounts}

    revenue, expenses = [], []
    total_revenue = total_expenses = cost_of_sales = ZERO
    for account in sorted(accounts, key=lambda a: a.code):
        debit, credit = totals.get(account.pk, (ZERO, ZERO))
        amount = signed_balance(account, debit, credit)
        if not amount:
            continue
        row = {"code": account.code, "name": account.name, "amount": amount}
        if account.ac_type == "revenue":
            revenue.append(row)
            total_revenue += amount
        else:
            expenses.append(row)
            total_expenses += amount
            if _descends_from(account, chart.COST_OF_SALES, by_pk):
                cost_of_sales += amount

    return {
        "start_date": start_date,
        "end_date": end_date,
        "revenue": revenue,
        "expenses": expenses,
        "total_revenue": total_revenue,
        "cost_of_sales": cost_of_sales,
        "total_expenses": total_expenses,
        "gross_profit": total_revenue - cost_of_sales,
        "net_profit": total_revenue - total_expenses,
    }


def balance_sheet(company, as_of=None):
    """
    Assets, liabilities and equity up to `as_of`.

    Profit not yet closed to Retained Earnings is shown as
    "Current Year Earnings" so the sheet balances.
    """
    totals = account_totals(company, None, as_of)
    sections = {"asset": [], "liability": [], "equity": []}
    section_totals = {"asset": ZERO, "liability": ZERO, "equity": ZERO}
    unclosed_profit = ZERO

    for account in Account.objects.for_company(company).order_by("code"):
        debit, credit = totals.get(account.pk, (ZERO, ZERO))
        amount = signed_balance(account, debit, credit)
        if account.ac_type == "revenue":
            unclosed_profit += amount
            continue
        if account.ac_type == "expense":
            unclosed_profit -= amount
            continue
        if not amount:
            continue
        sections[account.ac_type].append(
            {"code": account.code, "name": account.name, "amount": amount}
        )
        section_totals[account.ac_type] += amount

    if unclosed_profit:
        sections["equity"].append(
            {"code": None, "name": "Current Year Earnings", "amount": unclosed_profit}
        )
        section_totals["equity"] += unclosed_profit

    liabilities_and_equity = section_totals["liability"] + section_totals["equity"]
    return {
        "as_of": as_of,
        "assets": sections["asset"],
        "liabilities": sections["liability"],
        "equity": sections["equity"],
        "total_assets": section_totals["asset"],
        "total_liabilities": section_totals["liability"],
        "total_equity": section_totals["equity"],
        "is_balanced": abs(section_totals["asset"] - liabilities_and_equity) <= balance_tolerance(),
    }
