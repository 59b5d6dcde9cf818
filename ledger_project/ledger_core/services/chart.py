import logging

from django.db import transaction

from ..exceptions import AccountNotFound
from ..models import Account, Company

logger = logging.getLogger(__name__)

# ---------- Standard account codes used by the posting recipes ----------
CASH = "1110"
ACCOUNTS_RECEIVABLE = "1120"
VAT_INPUT = "1130"
ACCOUNTS_PAYABLE = "2110"
VAT_OUTPUT = "2130"
RETAINED_EARNINGS = "3100"
SALES_REVENUE = "4100"
COST_OF_SALES = "5100"
OPERATING_EXPENSES = "5200"

# (code, name, type, parent code, description)
# Parents always appear before their children.
DEFAULT_CHART = [
    ("1000", "Assets", "asset", None, "Everything the business owns"),
    ("1100", "Current Assets", "asset", "1000", "Assets expected to turn into cash within a year"),
    ("1110", "Cash and Bank", "asset", "1100", "Cash on hand and in bank accounts"),
    ("1120", "Accounts Receivable", "asset", "1100", "Money owed by clients"),
    ("1130", "VAT Input", "asset", "1100", "VAT paid on purchases, claimable"),
    ("1200", "Fixed Assets", "asset", "1000", "Equipment, vehicles and property"),
    ("2000", "Liabilities", "liability", None, "Everything the business owes"),
    ("2100", "Current Liabilities", "liability", "2000", "Obligations due within a year"),
    ("2110", "Accounts Payable", "liability", "2100", "Money owed to suppliers"),
    ("2120", "VAT Payable", "liability", "2100", "Net VAT due to the revenue service"),
    ("2130", "VAT Output", "liability", "2100", "VAT charged on sales"),
    ("3000", "Equity", "equity", None, "Owner's interest in the business"),
    ("3100", "Retained Earnings", "equity", "3000", "Accumulated profits"),
    ("4000", "Revenue", "revenue", None, "Income from business activity"),
    ("4100", "Sales Revenue", "revenue", "4000", "Income from invoiced sales"),
    ("4200", "Other Income", "revenue", "4000", "Interest and sundry income"),
    ("5000", "Expenses", "expense", None, "Costs of running the business"),
    ("5100", "Cost of Sales", "expense", "5000", "Direct costs of goods and services sold"),
    ("5200", "Operating Expenses", "expense", "5000", "General running costs"),
    ("5210", "Rent", "expense", "5200", "Office and premises rent"),
    ("5220", "Utilities", "expense", "5200", "Electricity, water and internet"),
    ("5230", "Office Supplies", "expense", "5200", "Stationery and consumables"),
]

# AR and AP are reconciled against their subledgers
CONTROL_ACCOUNTS = {ACCOUNTS_RECEIVABLE, ACCOUNTS_PAYABLE}


def initialize_chart_of_accounts(company):
    """
    Seed the standard chart for a company.

    Upsert by code inside one transaction holding a lock on the company row,
    so concurrent or repeated calls never create duplicates and a partially
    seeded chart gets completed. Returns the number of accounts created.
    """
    with transaction.atomic():
        # serialize seeding per company
        Company.objects.select_for_update().get(pk=company.pk)

        existing = {a.code: a for a in Account.objects.for_company(company)}
        created = 0
        for code, name, ac_type, parent_code, description in DEFAULT_CHART:
            if code in existing:
                continue
            account = Account(
                company=company,
                code=code,
                name=name,
                ac_type=ac_type,
                parent=existing.get(parent_code) if parent_code else None,
                description=description,
                is_control_account=code in CONTROL_ACCOUNTS,
            )
            account.save()
            existing[code] = account
            created += 1

    if created:
        logger.info("Seeded %s accounts for company %s", created, company.pk)
    return created


def resolve_account(company, code):
    """Return the company's account with `code` or raise AccountNotFound."""
    try:
        return Account.objects.get(company=company, code=code)
    except Account.DoesNotExist:
        raise AccountNotFound(
            f"Account {code} not found for company {company.pk}"
        ) from None


def account_ancestors(account):
    # nearest parent first; raises ValidationError on a cycle
    return account.ancestors()


def chart_tree(company):
    """Return the company's chart as a forest of nested dicts."""
    accounts = list(Account.objects.for_company(company).order_by("code"))
    nodes = {
        a.pk: {
            "code": a.code,
            "name": a.name,
            "type": a.ac_type,
            "parent_code": None,
            "children": [],
        }
        for a in accounts
    }
    by_pk = {a.pk: a for a in accounts}
    roots = []
    for a in accounts:
        node = nodes[a.pk]
        if a.parent_id and a.parent_id in nodes:
            node["parent_code"] = by_pk[a.parent_id].code
            nodes[a.parent_id]["children"].append(node)
        else:
            roots.append(node)
    return roots
