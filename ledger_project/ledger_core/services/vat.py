import calendar
import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal

from dateutil.relativedelta import relativedelta
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db.models import Count, Sum
from django.utils import timezone

from ..models import Expense, Invoice
from ..models.invoice import ISSUED_STATUSES
from . import chart
from .reporting import ZERO, _check_range, _posted_lines

logger = logging.getLogger(__name__)

VAT_FREQUENCIES = ("monthly", "bimonthly")


@dataclass(frozen=True)
class VATPeriod:
    start_date: date
    end_date: date
    due_date: date
    label: str

    def to_dict(self):
        return {k: v.isoformat() if isinstance(v, date) else v for k, v in asdict(self).items()}


@dataclass
class VATSummary:
    period: VATPeriod
    output_tax: Decimal
    input_tax: Decimal
    net_payable: Decimal
    total_sales: Decimal
    total_purchases: Decimal
    invoice_count: int
    expense_count: int

    def to_dict(self):
        return {
            "period": self.period.to_dict(),
            "outputVAT": str(self.output_tax),
            "inputVAT": str(self.input_tax),
            "netVAT": str(self.net_payable),
            "totalSales": str(self.total_sales),
            "totalPurchases": str(self.total_purchases),
            "invoiceCount": self.invoice_count,
            "expenseCount": self.expense_count,
        }


def _default_frequency():
    return getattr(settings, "LEDGER_VAT_FREQUENCY", "bimonthly")


def vat_period_for_date(day, frequency=None):
    """
    Filing period containing `day`.

    Monthly periods are labelled YYYY-MM, bimonthly ones (Jan-Feb, Mar-Apr, ...)
    YYYY-P1..P6. Returns are due on the 25th of the second month after the
    period ends.
    """
    frequency = frequency or _default_frequency()
    if frequency not in VAT_FREQUENCIES:
        raise ValidationError(f"Unknown VAT frequency: {frequency}")

    if frequency == "monthly":
        start_month = end_month = day.month
        label = f"{day.year}-{day.month:02d}"
    else:
        index = (day.month - 1) // 2
        start_month = index * 2 + 1
        end_month = start_month + 1
        label = f"{day.year}-P{index + 1}"

    start = date(day.year, start_month, 1)
    end = date(day.year, end_month, calendar.monthrange(day.year, end_month)[1])
    due = date(day.year, end_month, 25) + relativedelta(months=2)
    return VATPeriod(start_date=start, end_date=end, due_date=due, label=label)


def get_current_vat_period(frequency=None, today=None):
    return vat_period_for_date(today or timezone.localdate(), frequency)


def upcoming_vat_due_dates(count=3, frequency=None, today=None):
    """The current period and the ones before it, ordered by due date."""
    today = today or timezone.localdate()
    step = 1 if (frequency or _default_frequency()) == "monthly" else 2
    anchor = today.replace(day=1)
    periods = [
        vat_period_for_date(anchor - relativedelta(months=i * step), frequency)
        for i in range(count)
    ]
    return sorted(periods, key=lambda p: p.due_date)


def is_vat_overdue(due_date, today=None):
    return due_date < (today or timezone.localdate())


def days_until_vat_due(due_date, today=None):
    return (due_date - (today or timezone.localdate())).days


def parse_period_param(value, company=None, today=None):
    """
    Turn a ?period= query value into (start, end).

    Accepts "current" (or nothing) and "YYYY-MM-DD_YYYY-MM-DD".
    """
    if not value or value == "current":
        frequency = company.vat_frequency if company is not None else None
        period = get_current_vat_period(frequency, today=today)
        return period.start_date, period.end_date

    try:
        raw_start, raw_end = value.split("_")
        start = datetime.strptime(raw_start, "%Y-%m-%d").date()
        end = datetime.strptime(raw_end, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(
            f"Invalid period {value!r}; use 'current' or YYYY-MM-DD_YYYY-MM-DD"
        ) from None
    _check_range(start, end)
    return start, end


def _net_movement(company, code, start_date, end_date, debit_side):
    account = chart.resolve_account(company, code)
    agg = (
        _posted_lines(company, start_date, end_date)
        .filter(account=account)
        .aggregate(debit=Sum("debit"), credit=Sum("credit"))
    )
    debit, credit = agg["debit"] or ZERO, agg["credit"] or ZERO
    return debit - credit if debit_side else credit - debit


def calculate_vat_for_period(company, start_date, end_date):
    """
    VAT position for a window.

    Output and input tax come from the ledger (net credits on VAT Output,
    net debits on VAT Input), so reversals and repairs are reflected.
    Sales and purchase totals come from the documents themselves.
    """
    _check_range(start_date, end_date)

    output_tax = _net_movement(company, chart.VAT_OUTPUT, start_date, end_date, debit_side=False)
    input_tax = _net_movement(company, chart.VAT_INPUT, start_date, end_date, debit_side=True)

    sales = (
        Invoice.objects.for_company(company)
        .filter(status__in=ISSUED_STATUSES, issue_date__range=(start_date, end_date))
        .aggregate(total=Sum("total"), count=Count("id"))
    )
    purchases = (
        Expense.objects.for_company(company)
        .filter(date__range=(start_date, end_date))
        .aggregate(total=Sum("total"), count=Count("id"))
    )

    summary = VATSummary(
        period=vat_period_for_date(start_date, company.vat_frequency),
        output_tax=output_tax,
        input_tax=input_tax,
        net_payable=output_tax - input_tax,
        total_sales=sales["total"] or ZERO,
        total_purchases=purchases["total"] or ZERO,
        invoice_count=sales["count"],
        expense_count=purchases["count"],
    )
    logger.debug(
        "VAT %s..%s for company %s: output=%s input=%s",
        start_date, end_date, company.pk, output_tax, input_tax,
    )
    return summary


def vat201_from_summary(summary):
    # all supplies treated as standard-rated
    standard_sales = summary.total_sales - summary.output_tax
    standard_purchases = summary.total_purchases - summary.input_tax
    return {
        "period": summary.period.to_dict(),
        "box1_standardRateSales": standard_sales,
        "box2_zeroRatedSales": ZERO,
        "box3_exemptSales": ZERO,
        "box4_totalSales": standard_sales,
        "box5_outputTaxStandardRate": summary.output_tax,
        "box6_outputTaxOtherRates": ZERO,
        "box7_totalOutputTax": summary.output_tax,
        "box9_standardRatePurchases": standard_purchases,
        "box10_zeroRatedPurchases": ZERO,
        "box11_totalPurchases": standard_purchases,
        "box12_inputTaxStandardRate": summary.input_tax,
        "box13_inputTaxOtherRates": ZERO,
        "box14_totalInputTax": summary.input_tax,
        "box15_netVATPayableRefundable": summary.net_payable,
        "box16_badDebtsWrittenOff": ZERO,
        "box17_totalVATPayableRefundable": summary.net_payable,
    }


def generate_vat201_form(company, start_date, end_date):
    return vat201_from_summary(calculate_vat_for_period(company, start_date, end_date))
