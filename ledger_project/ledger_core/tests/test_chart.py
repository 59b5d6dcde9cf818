from django.core.exceptions import ValidationError
from django.test import TestCase

from ledger_core.exceptions import AccountNotFound
from ledger_core.models import Account
from ledger_core.services import chart
from ledger_core.tests.factories import make_company


class ChartOfAccountsTests(TestCase):
    def setUp(self):
        self.company = make_company()

    def test_new_company_gets_standard_chart(self):
        """ Test a new company is seeded with every default account """
        codes = set(
            Account.objects.for_company(self.company).values_list("code", flat=True)
        )
        self.assertEqual(codes, {row[0] for row in chart.DEFAULT_CHART})
        self.assertEqual(len(codes), 22)

    def test_seeding_is_idempotent(self):
        """ Test re-running the seed creates nothing new """
        self.assertEqual(chart.initialize_chart_of_accounts(self.company), 0)
        self.assertEqual(chart.initialize_chart_of_accounts(self.company), 0)
        self.assertEqual(Account.objects.for_company(self.company).count(), 22)

    def test_partial_chart_is_completed(self):
        """ Test missing leaf accounts are recreated on the next seed """
        Account.objects.for_company(self.company).filter(code__in=["5230", "1130"]).delete()

        self.assertEqual(chart.initialize_chart_of_accounts(self.company), 2)
        vat_input = chart.resolve_account(self.company, "1130")
        self.assertEqual(vat_input.parent.code, "1100")

    def test_normal_balance_follows_type(self):
        self.assertEqual(chart.resolve_account(self.company, "1110").normal_balance, "debit")
        self.assertEqual(chart.resolve_account(self.company, "2110").normal_balance, "credit")
        self.assertEqual(chart.resolve_account(self.company, "4100").normal_balance, "credit")
        self.assertTrue(chart.resolve_account(self.company, "1120").is_control_account)

    def test_resolve_unknown_code_raises(self):
        with self.assertRaises(AccountNotFound):
            chart.resolve_account(self.company, "9999")

    def test_resolve_is_scoped_to_company(self):
        """ Test the same code resolves to each company's own account """
        other = make_company("Other Co")
        mine = chart.resolve_account(self.company, "1110")
        theirs = chart.resolve_account(other, "1110")
        self.assertNotEqual(mine.pk, theirs.pk)
        self.assertEqual(theirs.company, other)

    def test_parent_cycle_rejected(self):
        """ Test an account cannot become a descendant of its own child """
        assets = chart.resolve_account(self.company, "1000")
        cash = chart.resolve_account(self.company, "1110")
        assets.parent = cash
        with self.assertRaises(ValidationError):
            assets.save()

    def test_parent_from_other_company_rejected(self):
        other = make_company("Other Co")
        account = Account(
            company=self.company,
            code="1300",
            name="Loans",
            ac_type="asset",
            parent=chart.resolve_account(other, "1000"),
        )
        with self.assertRaises(ValidationError):
            account.save()

    def test_normal_balance_must_match_type(self):
        account = Account(
            company=self.company, code="4300", name="Grants",
            ac_type="revenue", normal_balance="debit",
        )
        with self.assertRaises(ValidationError):
            account.save()

    def test_ancestors_nearest_first(self):
        rent = chart.resolve_account(self.company, "5210")
        self.assertEqual(
            [a.code for a in chart.account_ancestors(rent)], ["5200", "5000"]
        )

    def test_chart_tree(self):
        tree = chart.chart_tree(self.company)
        self.assertEqual([n["code"] for n in tree], ["1000", "2000", "3000", "4000", "5000"])

        assets = tree[0]
        self.assertEqual([n["code"] for n in assets["children"]], ["1100", "1200"])
        current = assets["children"][0]
        self.assertEqual(
            [n["code"] for n in current["children"]], ["1110", "1120", "1130"]
        )
        self.assertEqual(current["children"][0]["parent_code"], "1100")
