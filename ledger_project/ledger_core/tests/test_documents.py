import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from ledger_core.models import AuditLog, Invoice, JournalEntry
from ledger_core.services import chart
from ledger_core.services.documents import (
    create_expense,
    create_invoice,
    issue_invoice,
    next_invoice_number,
    repost_missing_journals,
)
from ledger_core.tests.factories import make_client, make_company


class InvoiceWorkflowTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.client_obj = make_client(self.company, payment_terms_days=14)
        self.day = datetime.date(2025, 10, 15)

    def _create(self, **kwargs):
        kwargs.setdefault("items", [
            {"description": "Design", "quantity": "2", "unit_price": "250.00"},
            {"description": "Hosting", "unit_price": "100.00", "tax_rate": "0"},
        ])
        return create_invoice(
            self.company, client=self.client_obj, issue_date=self.day, **kwargs
        )

    def test_totals_computed_from_items(self):
        """ Test subtotal, tax and total are derived from the items """
        invoice = self._create().document
        self.assertEqual(invoice.subtotal, Decimal("600.00"))
        self.assertEqual(invoice.tax_amount, Decimal("75.00"))
        self.assertEqual(invoice.total, Decimal("675.00"))
        self.assertEqual(invoice.due_date, self.day + datetime.timedelta(days=14))
        self.assertEqual(invoice.invoice_number, "INV-00001")

    def test_sent_invoice_is_posted(self):
        outcome = self._create()
        self.assertFalse(outcome.degraded)
        self.assertEqual(outcome.journal.source_id, outcome.document.pk)
        self.assertEqual(outcome.to_dict()["journal_id"], outcome.journal.pk)

    def test_draft_is_posted_when_issued(self):
        """ Test a draft stays off the ledger until issue_invoice """
        invoice = self._create(status="draft").document
        self.assertFalse(
            JournalEntry.objects.for_company(self.company).filter(source="invoice").exists()
        )

        outcome = issue_invoice(invoice)
        invoice.refresh_from_db()
        self.assertEqual(invoice.status, "sent")
        self.assertIsNotNone(outcome.journal)

    def test_invoice_needs_items(self):
        with self.assertRaises(ValidationError):
            self._create(items=[])

    def test_client_from_other_company_rejected(self):
        other = make_company("Other Co")
        with self.assertRaises(ValidationError):
            create_invoice(
                self.company,
                client=make_client(other),
                issue_date=self.day,
                items=[{"unit_price": "10"}],
            )

    def test_invoice_total_must_add_up(self):
        invoice = self._create().document
        invoice.total = Decimal("1.00")
        with self.assertRaises(ValidationError):
            invoice.save()

    def test_next_invoice_number_skips_taken_numbers(self):
        self._create(invoice_number="INV-00002")
        self.assertEqual(next_invoice_number(self.company), "INV-00003")

    def test_payment_moves_invoice_to_partial_then_paid(self):
        invoice = self._create().document
        self.assertEqual(invoice.apply_payment(Decimal("175.00")), Decimal("175.00"))
        self.assertEqual(invoice.status, "partial")
        # only the outstanding part is applied
        self.assertEqual(invoice.apply_payment(Decimal("900.00")), Decimal("500.00"))
        self.assertEqual(invoice.status, "paid")
        with self.assertRaises(ValidationError):
            invoice.apply_payment(Decimal("1.00"))

    def test_invalid_status_transition(self):
        invoice = self._create().document
        with self.assertRaises(ValidationError):
            invoice.transition_to("draft")


class ExpenseWorkflowTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.day = datetime.date(2025, 10, 15)

    def _lines(self, expense):
        je = JournalEntry.objects.get(company=self.company, source="expense", source_id=expense.pk)
        return {
            line.account.code: (line.debit, line.credit)
            for line in je.lines.select_related("account")
        }

    def test_paid_expense_credits_cash(self):
        expense = create_expense(
            self.company, vendor="Office Mart", date=self.day,
            amount=Decimal("200.00"), tax_amount=Decimal("30.00"),
        ).document
        self.assertEqual(expense.total, Decimal("230.00"))
        self.assertEqual(self._lines(expense), {
            "5200": (Decimal("200.00"), Decimal("0.00")),
            "1130": (Decimal("30.00"), Decimal("0.00")),
            "1110": (Decimal("0.00"), Decimal("230.00")),
        })

    def test_unpaid_expense_credits_payables(self):
        rent = chart.resolve_account(self.company, "5210")
        expense = create_expense(
            self.company, vendor="Landlord", date=self.day,
            amount=Decimal("5000.00"), account=rent, is_paid=False,
        ).document
        self.assertEqual(self._lines(expense), {
            "5210": (Decimal("5000.00"), Decimal("0.00")),
            "2110": (Decimal("0.00"), Decimal("5000.00")),
        })

    def test_expense_account_must_be_expense_type(self):
        with self.assertRaises(ValidationError):
            create_expense(
                self.company, vendor="Bank", date=self.day, amount=Decimal("10.00"),
                account=chart.resolve_account(self.company, "1110"),
            )


class DegradedPostingTests(TestCase):
    def setUp(self):
        self.company = make_company()
        self.client_obj = make_client(self.company)
        # VAT Output missing: invoices with tax cannot be posted
        chart.resolve_account(self.company, "2130").delete()

    def _create(self):
        return create_invoice(
            self.company,
            client=self.client_obj,
            issue_date=datetime.date(2025, 10, 15),
            items=[{"description": "Support", "unit_price": "100.00"}],
        )

    def test_invoice_saved_without_journal(self):
        """ Test a posting failure keeps the invoice and reports degraded """
        outcome = self._create()

        self.assertTrue(outcome.degraded)
        self.assertIsNone(outcome.journal)
        self.assertIn("2130", outcome.error)
        self.assertTrue(Invoice.objects.filter(pk=outcome.document.pk, status="sent").exists())
        self.assertFalse(JournalEntry.objects.for_company(self.company).exists())

    def test_failure_is_audited(self):
        outcome = self._create()
        log = AuditLog.objects.get(company=self.company, action="posting_failed")
        self.assertEqual(log.object_type, "Invoice")
        self.assertEqual(log.object_id, str(outcome.document.pk))
        self.assertEqual(log.changes["recipe"], "post_invoice_journal")

    def test_repair_posts_missing_journals(self):
        """ Test repost_missing_journals heals the ledger once the chart is fixed """
        invoice = self._create().document
        self.assertEqual(repost_missing_journals(self.company)["failed"], 1)

        self.assertEqual(chart.initialize_chart_of_accounts(self.company), 1)
        summary = repost_missing_journals(self.company)

        self.assertEqual(summary, {"invoices": 1, "expenses": 0, "failed": 0})
        self.assertTrue(
            JournalEntry.objects.filter(source="invoice", source_id=invoice.pk).exists()
        )
        # nothing left to repair
        self.assertEqual(repost_missing_journals(self.company)["invoices"], 0)
