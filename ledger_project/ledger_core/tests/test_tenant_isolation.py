import datetime
import json
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.test import RequestFactory, TestCase

from ledger_core.models import BankTransaction, Company, Invoice, JournalLine
from ledger_core.services import chart
from ledger_core.tests.factories import make_bank_tx, make_client, make_company, make_invoice
from ledger_core.views import fraud_alerts_view, trial_balance_view


class TenantIsolationManagerTests(TestCase):
    def setUp(self):
        self.company_a = make_company("Company A")
        self.company_b = make_company("Company B")

        # one invoice per company
        self.inv_a = make_invoice(self.company_a, make_client(self.company_a), "200.00")
        self.inv_b = make_invoice(self.company_b, make_client(self.company_b), "100.00")

    def test_for_company_returns_only_that_company_objects(self):
        """Compare invoice primary keys"""
        self.assertListEqual(
            list(
                Invoice.objects.for_company(self.company_a)
                .order_by("id")
                .values_list("pk", flat=True)
            ),
            [self.inv_a.pk],
        )
        self.assertListEqual(
            list(
                Invoice.objects.for_company(self.company_b)
                .order_by("id")
                .values_list("pk", flat=True)
            ),
            [self.inv_b.pk],
        )

    def test_get_other_company_object_raises_does_not_exist(self):
        # `for_company` shouldn't return the other company's record
        with self.assertRaises(Invoice.DoesNotExist):
            Invoice.objects.for_company(self.company_a).get(pk=self.inv_b.pk)

    def test_journal_lines_scoped(self):
        accounts = set(
            JournalLine.objects.for_company(self.company_a)
            .values_list("account__company_id", flat=True)
        )
        self.assertEqual(accounts, {self.company_a.pk})

    def test_bank_transaction_cannot_match_foreign_invoice(self):
        """ Test a bank line of company A cannot point at company B's invoice """
        tx = make_bank_tx(self.company_a, "115.00")
        tx.matched_invoice = self.inv_b
        with self.assertRaises(ValidationError):
            tx.save()

    def test_journal_line_cannot_use_foreign_account(self):
        je_line = JournalLine.objects.for_company(self.company_a).first()
        je_line.account = chart.resolve_account(self.company_b, "4100")
        with self.assertRaises(ValidationError):
            je_line.full_clean()

    def test_outflow_cannot_match_invoice(self):
        tx = BankTransaction(
            company=self.company_a,
            date=datetime.date(2025, 10, 15),
            amount=Decimal("-230.00"),
            matched_invoice=self.inv_a,
        )
        with self.assertRaises(ValidationError):
            tx.save()


@pytest.mark.django_db
def test_trial_balance_returns_only_tenant_data(django_user_model):
    c1 = make_company("Company A")
    c2 = make_company("Company B")
    u1 = django_user_model.objects.create_user(username="alice", password="pw")
    make_invoice(c1, make_client(c1), "100.00")
    make_invoice(c2, make_client(c2), "900.00")

    # Bypass client & call view with a RequestFactory
    request = RequestFactory().get("/api/reports/trial-balance")
    request.user = u1
    request.company = c1  # manually simulate middleware

    response = trial_balance_view(request)
    data = json.loads(response.content)["data"]
    assert data["totalDebit"] == "115.00"  # only c1's invoice
    assert {row["code"] for row in data["accounts"]} == {"1120", "2130", "4100"}


@pytest.mark.django_db
def test_fraud_view_scoped_to_request_company(django_user_model):
    c1 = make_company("Company A")
    c2 = make_company("Company B")
    client_b = make_client(c2)
    # duplicates in company B only
    make_invoice(c2, client_b, "50.00")
    make_invoice(c2, client_b, "50.00")

    request = RequestFactory().get("/api/analytics/fraud")
    request.user = django_user_model.objects.create_user(username="bob", password="pw")
    request.company = c1

    assert json.loads(fraud_alerts_view(request).content)["data"] == []
    assert Company.objects.count() == 2
