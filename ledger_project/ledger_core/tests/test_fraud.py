import datetime
from decimal import Decimal

from django.test import TestCase

from ledger_core.services import fraud
from ledger_core.tests.factories import (
    WEEKDAY,
    make_client,
    make_company,
    make_expense,
    make_invoice,
)

MONDAY = datetime.date(2025, 10, 6)


class FraudDetectionTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.client_obj = make_client(self.company)

    def _invoice(self, amount, day=WEEKDAY, **kwargs):
        return make_invoice(self.company, self.client_obj, amount, issue_date=day, tax_rate="0", **kwargs)

    def _of_type(self, alerts, alert_type):
        return [a for a in alerts if a.alert_type == alert_type]

    def test_duplicate_invoices(self):
        """ Test same client, amount and day is flagged once for the pair """
        first = self._invoice("1234.56")
        second = self._invoice("1234.56")

        duplicates = self._of_type(fraud.analyze_fraud(self.company), "duplicate")

        self.assertEqual(len(duplicates), 1)
        alert = duplicates[0]
        self.assertEqual(alert.severity, "high")
        self.assertEqual(alert.amount, Decimal("1234.56"))
        self.assertEqual(alert.evidence["invoice_ids"], [first.pk, second.pk])
        self.assertEqual(alert.to_dict()["id"], f"fraud-duplicate-invoice-{first.pk}")

    def test_different_day_is_not_duplicate(self):
        self._invoice("1234.56")
        self._invoice("1234.56", day=WEEKDAY + datetime.timedelta(days=1))
        self.assertEqual(self._of_type(fraud.analyze_fraud(self.company), "duplicate"), [])

    def test_invoices_without_client_are_not_duplicates(self):
        make_invoice(self.company, None, "1234.56", tax_rate="0")
        make_invoice(self.company, None, "1234.56", tax_rate="0")
        self.assertEqual(self._of_type(fraud.analyze_fraud(self.company), "duplicate"), [])

    def test_void_invoice_ignored(self):
        self._invoice("1234.56")
        self._invoice("1234.56").transition_to("void")
        self.assertEqual(self._of_type(fraud.analyze_fraud(self.company), "duplicate"), [])

    def test_duplicate_expenses(self):
        make_expense(self.company, "Office Mart", "99.00")
        make_expense(self.company, "office mart ", "99.00")

        duplicates = self._of_type(fraud.analyze_fraud(self.company), "duplicate")

        self.assertEqual(len(duplicates), 1)
        self.assertEqual(duplicates[0].source_type, "expense")
        self.assertEqual(duplicates[0].severity, "medium")

    def test_outlier_invoice(self):
        """ Test a 1,000,000 invoice against a ~1,000 baseline is flagged """
        for i, amount in enumerate(["1000", "1010", "990", "1005", "995"]):
            self._invoice(amount, day=MONDAY + datetime.timedelta(days=i))
        big = self._invoice("1000000", day=MONDAY + datetime.timedelta(days=7))

        outliers = self._of_type(fraud.analyze_fraud(self.company), "outlier")

        self.assertEqual([a.source_id for a in outliers], [big.pk])
        self.assertEqual(outliers[0].severity, "high")
        self.assertEqual(outliers[0].evidence["sample_size"], 5)

    def test_outlier_with_five_invoices(self):
        """ Test the flagged invoice counts toward the minimum sample """
        for i, amount in enumerate(["1000", "1010", "990", "1005"]):
            self._invoice(amount, day=MONDAY + datetime.timedelta(days=i))
        big = self._invoice("1000000", day=MONDAY + datetime.timedelta(days=7))

        outliers = self._of_type(fraud.analyze_fraud(self.company), "outlier")

        self.assertEqual([a.source_id for a in outliers], [big.pk])
        self.assertEqual(outliers[0].evidence["sample_size"], 4)

    def test_outlier_needs_sample(self):
        for i, amount in enumerate(["1000", "1010", "990"]):
            self._invoice(amount, day=MONDAY + datetime.timedelta(days=i))
        self._invoice("1000000", day=MONDAY + datetime.timedelta(days=7))
        self.assertEqual(self._of_type(fraud.analyze_fraud(self.company), "outlier"), [])

    def test_normal_spread_not_flagged(self):
        for i, amount in enumerate(["800", "1200", "950", "1100", "1000", "1300"]):
            self._invoice(amount, day=MONDAY + datetime.timedelta(days=i % 5))
        self.assertEqual(self._of_type(fraud.analyze_fraud(self.company), "outlier"), [])

    def test_weekend_activity(self):
        """ Test invoices and expenses dated on a weekend raise low alerts """
        sunday = datetime.date(2025, 10, 12)
        invoice = self._invoice("500", day=sunday)
        expense = make_expense(self.company, "Fuel Stop", "60.00", date=sunday - datetime.timedelta(days=1))

        weekend = self._of_type(fraud.analyze_fraud(self.company), "weekend")

        self.assertEqual(
            {(a.source_type, a.source_id) for a in weekend},
            {("invoice", invoice.pk), ("expense", expense.pk)},
        )
        self.assertTrue(all(a.severity == "low" for a in weekend))
        self.assertIn("Sunday", [a.description for a in weekend if a.source_type == "invoice"][0])

    def test_alerts_sorted_by_severity_then_date(self):
        self._invoice("1234.56")
        self._invoice("1234.56")
        make_expense(self.company, "Cafe", "20.00", date=datetime.date(2025, 10, 4))
        make_expense(self.company, "Cafe", "30.00", date=datetime.date(2025, 10, 11))

        alerts = fraud.analyze_fraud(self.company)

        self.assertEqual([a.severity for a in alerts], ["high", "low", "low"])
        self.assertEqual(
            [a.date for a in alerts[1:]],
            [datetime.date(2025, 10, 11), datetime.date(2025, 10, 4)],
        )

    def test_clean_books_have_no_alerts(self):
        self._invoice("100")
        make_expense(self.company, "Office Mart", "50.00")
        self.assertEqual(fraud.analyze_fraud(self.company), [])

    def test_all_companies_scanned_separately(self):
        other = make_company("Other Co")
        other_client = make_client(other)
        self._invoice("1234.56")
        make_invoice(other, other_client, "1234.56", tax_rate="0")

        alerts = fraud.analyze_fraud()
        # one invoice per company is not a duplicate
        self.assertEqual(self._of_type(alerts, "duplicate"), [])

        make_invoice(other, other_client, "1234.56", tax_rate="0")
        alerts = fraud.analyze_fraud()
        self.assertEqual(
            [a.company_id for a in self._of_type(alerts, "duplicate")], [other.pk]
        )
